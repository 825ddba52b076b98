"""
Tests for the causal method selection stream.
"""

import pytest

from governance_engine.canon import compute_input_hash
from governance_engine.catalog import DataRegime
from governance_engine.causal_method_selection import (
    GATE_DISQUALIFIED_SELECTED,
    GATE_SELECTION_ACCURACY,
    run_causal_method_evaluation,
    select_method,
)
from governance_engine.prng import SeededGenerator


class TestConcreteRegime:
    """Large interventional dataset with low noise."""

    @pytest.mark.parametrize("seed", [1, 2, 42, 2026])
    def test_do_calculus_eligible_for_every_seed(self, causal_pack, seed, now):
        output = run_causal_method_evaluation(causal_pack, seed, now=now)[0]
        eligibility = {r.entry_id: r.eligible for r in output.eligibility_results}
        assert eligibility["do_calculus"] is True
        assert eligibility["granger"] is False

    def test_reference_selection_seed_42(self, causal_pack, now):
        outputs = run_causal_method_evaluation(causal_pack, 42, now=now)
        assert outputs[0].selected_method == "instrumental_variable"
        assert outputs[0].decision == "instrumental_variable"
        assert outputs[1].selected_method == "granger"
        assert all(o.hard_gate_failures == [] for o in outputs)

    def test_selected_is_top_ranked(self, causal_pack, now):
        output = run_causal_method_evaluation(causal_pack, 7, now=now)[0]
        assert output.ranked_methods[0] == output.selected_method
        assert output.selection_score == output.method_scores[output.selected_method]
        scores = [output.method_scores[m] for m in output.ranked_methods]
        assert scores == sorted(scores, reverse=True)


class TestSharedGenerator:
    def test_scenarios_consume_one_generator_in_order(self, causal_pack, now):
        first = DataRegime.from_dict(causal_pack["scenarios"][0]["dataRegime"])
        rng = SeededGenerator(42)
        select_method(first, rng)
        assert rng.draws == 9

        causal_pack["scenarios"][1]["dataRegime"] = causal_pack["scenarios"][0]["dataRegime"]
        causal_pack["scenarios"][1]["expectedDecision"] = "instrumental_variable"
        second = DataRegime.from_dict(causal_pack["scenarios"][1]["dataRegime"])
        expected = select_method(second, rng)

        outputs = run_causal_method_evaluation(causal_pack, 42, now=now)
        assert outputs[1].ranked_methods == expected.ranking.ranked_ids
        assert outputs[1].method_scores == expected.ranking.scores

    def test_input_hash_is_pack_level(self, causal_pack, now):
        outputs = run_causal_method_evaluation(causal_pack, 1, now=now)
        assert {o.input_hash for o in outputs} == {compute_input_hash(causal_pack)}

    def test_hash_seed_independent(self, causal_pack, now):
        a = run_causal_method_evaluation(causal_pack, 1, now=now)[0]
        b = run_causal_method_evaluation(causal_pack, 2, now=now)[0]
        assert a.input_hash == b.input_hash


class TestDisqualifiedNeverSelected:
    @pytest.mark.parametrize("seed", range(20))
    def test_selected_method_is_eligible(self, causal_pack, seed, now):
        for output in run_causal_method_evaluation(causal_pack, seed, now=now):
            selected = [r for r in output.eligibility_results if r.entry_id == output.selected_method]
            assert selected[0].eligible
            assert GATE_DISQUALIFIED_SELECTED not in " ".join(output.hard_gate_failures)


class TestGates:
    def test_accuracy_mismatch(self, causal_pack, now):
        causal_pack["scenarios"][0]["expectedDecision"] = "granger"
        output = run_causal_method_evaluation(causal_pack, 42, now=now)[0]
        assert output.hard_gate_failures == [
            "method-selection-accuracy: selected 'instrumental_variable' but expected 'granger'"
        ]

    def test_accuracy_override(self, causal_pack, now, make_override):
        causal_pack["scenarios"][0]["expectedDecision"] = "granger"
        overrides = [make_override(GATE_SELECTION_ACCURACY, ticket="GOV-9")]
        output = run_causal_method_evaluation(causal_pack, 42, overrides=overrides, now=now)[0]
        assert output.hard_gate_failures == []
        assert output.warnings == [
            "[OVERRIDDEN] method-selection-accuracy: selected 'instrumental_variable' "
            "but expected 'granger' (ticket GOV-9)"
        ]

    def test_fallback_blocks_even_with_override(self, causal_pack, make_regime, now, make_override):
        causal_pack["scenarios"] = [{
            "scenarioId": "cm-starved",
            "label": "Ten noisy cross-sectional rows",
            "dataRegime": make_regime(sampleSize=10, hasInterventions=False, noiseLevel="high"),
            "expectedHardGates": [GATE_DISQUALIFIED_SELECTED],
            "expectedDecision": "ges",
        }]
        overrides = [make_override(GATE_DISQUALIFIED_SELECTED)]
        output = run_causal_method_evaluation(causal_pack, 42, overrides=overrides, now=now)[0]
        assert output.fallback
        assert output.selected_method == "ges"
        assert output.selection_score == 0.1
        assert output.hard_gate_failures == [
            "disqualified-method-selected: 'ges' was disqualified but selected"
        ]
        assert output.warnings == ["no eligible method; fell back to 'ges'"]

    def test_confounder_warning_surfaces_for_selected_method(self, causal_pack, make_regime, now):
        causal_pack["scenarios"] = [{
            "scenarioId": "cm-confounded",
            "label": "Moderate sample with a known confounder",
            "dataRegime": make_regime(
                sampleSize=150,
                hasInterventions=False,
                noiseLevel="medium",
                knownConfounders=["age"],
                observedConditions=["high-dimensionality-without-sparsity"],
            ),
            "expectedHardGates": [],
            "expectedDecision": "propensity_score",
        }]
        output = run_causal_method_evaluation(causal_pack, 42, now=now)[0]
        eligible = [r.entry_id for r in output.eligibility_results if r.eligible]
        assert eligible == ["ges", "scm_parametric", "propensity_score"]
        assert output.selected_method == "propensity_score"
        assert output.hard_gate_failures == []
        assert output.warnings == [
            "propensity_score: Propensity Score Matching may be biased by known confounders: age"
        ]


class TestSerialization:
    def test_to_dict(self, causal_pack, now):
        data = run_causal_method_evaluation(causal_pack, 42, now=now)[0].to_dict()
        assert data["stream"] == "causal_method"
        assert data["selectedMethod"] == "instrumental_variable"
        assert data["dataRegime"]["sampleSize"] == 5000
        assert len(data["eligibilityResults"]) == 10
        assert data["eligibilityResults"][0]["methodId"] == "pc_algorithm"
        assert data["fallback"] is False
