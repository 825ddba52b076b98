"""
Tests for the method/policy catalog, eligibility and seeded ranking.
"""

from dataclasses import replace

import pytest

from governance_engine.catalog import (
    FALLBACK_METHOD_ID,
    FALLBACK_POLICY_ID,
    METHOD_CATALOG,
    POLICY_CATALOG,
    CatalogEntry,
    DataRegime,
    NoiseLevel,
    catalog_ids,
    check_eligibility,
    least_restrictive,
    rank_eligible,
    seeded_score,
)
from governance_engine.errors import CatalogError, ScenarioPackError
from governance_engine.prng import SeededGenerator


class ConstantGenerator:
    """Stand-in generator returning a fixed draw."""

    def __init__(self, value=0.5):
        self.value = value
        self.draws = 0

    def next(self):
        self.draws += 1
        return self.value


def _card(method_id):
    return next(card for card in METHOD_CATALOG if card.id == method_id)


def _regime(**kwargs):
    base = dict(
        sample_size=5000,
        dimensionality=10,
        has_interventions=True,
        has_temporal_order=False,
        known_confounders=(),
        noise_level=NoiseLevel.LOW,
    )
    base.update(kwargs)
    return DataRegime(**base)


class TestCatalogData:
    def test_method_catalog_ids(self):
        assert catalog_ids(METHOD_CATALOG) == [
            "pc_algorithm",
            "fci",
            "ges",
            "lingam",
            "notears",
            "granger",
            "do_calculus",
            "scm_parametric",
            "propensity_score",
            "instrumental_variable",
        ]

    def test_policy_catalog_ids(self):
        assert catalog_ids(POLICY_CATALOG) == ["eig", "bo_ucb", "bo_ts", "efe"]

    def test_designated_fallbacks_are_least_restrictive(self):
        assert least_restrictive(METHOD_CATALOG).id == FALLBACK_METHOD_ID
        assert least_restrictive(POLICY_CATALOG).id == FALLBACK_POLICY_ID

    def test_entries_are_frozen(self):
        with pytest.raises(Exception):
            METHOD_CATALOG[0].min_sample_size = 1


class TestDataRegime:
    def test_from_dict(self):
        regime = DataRegime.from_dict({
            "sampleSize": 300,
            "dimensionality": 4,
            "hasInterventions": False,
            "hasTemporalOrder": True,
            "knownConfounders": ["age"],
            "noiseLevel": "medium",
        })
        assert regime.sample_size == 300
        assert regime.noise_level == NoiseLevel.MEDIUM
        assert regime.known_confounders == ("age",)
        assert regime.observed_conditions == ()

    def test_unknown_noise_level(self):
        with pytest.raises(ScenarioPackError):
            DataRegime.from_dict({"sampleSize": 10, "noiseLevel": "extreme"})

    def test_policy_input_without_budget_skips_rule(self):
        regime = DataRegime.from_policy_input({})
        assert regime.sample_size is None
        assert regime.noise_level is None
        for entry in POLICY_CATALOG:
            assert check_eligibility(entry, regime).eligible

    def test_round_trip_keys(self):
        data = _regime().to_dict()
        assert data["sampleSize"] == 5000
        assert data["noiseLevel"] == "low"


class TestEligibility:
    def test_do_calculus_eligible_with_interventions(self):
        result = check_eligibility(_card("do_calculus"), _regime())
        assert result.eligible
        assert result.disqualify_reasons == []

    def test_sample_size_rule(self):
        result = check_eligibility(_card("instrumental_variable"), _regime(sample_size=150))
        assert not result.eligible
        assert result.disqualify_reasons == ["Sample size 150 < required 200"]

    def test_intervention_rule(self):
        result = check_eligibility(_card("do_calculus"), _regime(has_interventions=False))
        assert result.disqualify_reasons == [
            "Method requires interventional data but none available"
        ]

    def test_temporal_rule(self):
        result = check_eligibility(_card("granger"), _regime())
        assert result.disqualify_reasons == [
            "Method requires temporal ordering but data is cross-sectional"
        ]

    def test_noise_rule(self):
        result = check_eligibility(_card("lingam"), _regime(noise_level=NoiseLevel.MEDIUM))
        assert result.disqualify_reasons == [
            "Noise level 'medium' exceeds method tolerance 'low'"
        ]

    def test_all_reasons_collected_in_order(self):
        regime = _regime(
            sample_size=10,
            has_interventions=False,
            noise_level=NoiseLevel.HIGH,
            observed_conditions=("no-temporal-data",),
        )
        result = check_eligibility(_card("granger"), regime)
        assert result.disqualify_reasons == [
            "Sample size 10 < required 30",
            "Method requires temporal ordering but data is cross-sectional",
            "Disqualifying condition observed: no-temporal-data",
        ]

    def test_named_disqualifier(self):
        regime = _regime(observed_conditions=("unmeasured-confounders",))
        result = check_eligibility(_card("propensity_score"), regime)
        assert not result.eligible
        assert "Disqualifying condition observed: unmeasured-confounders" in result.disqualify_reasons

    def test_confounder_warning_does_not_disqualify(self):
        regime = _regime(known_confounders=("age", "income"))
        result = check_eligibility(_card("propensity_score"), regime)
        assert result.eligible
        assert result.warnings == [
            "Propensity Score Matching may be biased by known confounders: age, income"
        ]

    def test_disabled_policy_family(self):
        disabled = replace(POLICY_CATALOG[0], enabled=False)
        result = check_eligibility(disabled, DataRegime.from_policy_input({"sampleBudget": 100}))
        assert result.disqualify_reasons == ["Policy family 'eig' is disabled"]

    def test_to_dict_id_key(self):
        result = check_eligibility(POLICY_CATALOG[0], DataRegime.from_policy_input({}))
        assert result.to_dict(id_key="policyId")["policyId"] == "eig"
        assert check_eligibility(_card("ges"), _regime()).to_dict()["methodId"] == "ges"


class TestSeededRanking:
    def test_seeded_score_clamped(self):
        assert seeded_score(0.99, 0.99, 0.3) == 1.0
        assert seeded_score(0.01, 0.0, 0.3) == 0.0
        assert seeded_score(0.6, 0.5, 0.3) == 0.6

    def test_one_draw_per_eligible_entry(self):
        regime = _regime()
        eligibility = [check_eligibility(card, regime) for card in METHOD_CATALOG]
        rng = SeededGenerator(42)
        rank_eligible(METHOD_CATALOG, eligibility, rng, FALLBACK_METHOD_ID, 0.1, 0.3)
        assert rng.draws == sum(1 for r in eligibility if r.eligible) == 9

    def test_reference_ranking_for_seed_42(self):
        regime = _regime()
        eligibility = [check_eligibility(card, regime) for card in METHOD_CATALOG]
        selection = rank_eligible(
            METHOD_CATALOG, eligibility, SeededGenerator(42), FALLBACK_METHOD_ID, 0.1, 0.3
        )
        assert selection.selected_id == "instrumental_variable"
        assert selection.ranked_ids[:2] == ["instrumental_variable", "do_calculus"]
        assert not selection.fallback

    def test_ties_keep_catalog_order(self):
        catalog = tuple(replace(POLICY_CATALOG[i], base_weight=0.5) for i in (3, 0, 1))
        regime = DataRegime.from_policy_input({})
        eligibility = [check_eligibility(e, regime) for e in catalog]
        selection = rank_eligible(catalog, eligibility, ConstantGenerator(), "bo_ucb", 0.1, 0.3)
        assert selection.ranked_ids == ["efe", "eig", "bo_ucb"]
        assert selection.selected_id == "efe"

    def test_fallback_consumes_no_draws(self):
        regime = _regime(sample_size=10, has_interventions=False, noise_level=NoiseLevel.HIGH)
        eligibility = [check_eligibility(card, regime) for card in METHOD_CATALOG]
        assert not any(r.eligible for r in eligibility)
        rng = SeededGenerator(42)
        selection = rank_eligible(METHOD_CATALOG, eligibility, rng, FALLBACK_METHOD_ID, 0.1, 0.3)
        assert selection.fallback
        assert selection.selected_id == "ges"
        assert selection.score == 0.1
        assert selection.ranked == [("ges", 0.1)]
        assert rng.draws == 0

    def test_empty_catalog_raises(self):
        with pytest.raises(CatalogError):
            rank_eligible((), [], SeededGenerator(1), "ges", 0.1, 0.3)

    def test_fallback_outside_catalog_raises(self):
        regime = DataRegime.from_policy_input({})
        eligibility = [check_eligibility(e, regime) for e in POLICY_CATALOG]
        with pytest.raises(CatalogError):
            rank_eligible(POLICY_CATALOG, eligibility, SeededGenerator(1), "ges", 0.1, 0.3)

    def test_misaligned_eligibility_raises(self):
        with pytest.raises(CatalogError):
            rank_eligible(POLICY_CATALOG, [], SeededGenerator(1), "bo_ts", 0.1, 0.3)

    def test_least_restrictive_empty_raises(self):
        with pytest.raises(CatalogError):
            least_restrictive(())

    def test_custom_entry(self):
        entry = CatalogEntry(
            id="custom",
            display_name="Custom",
            description="",
            min_sample_size=0,
            requires_interventions=False,
            requires_temporal_order=False,
            max_noise_level=NoiseLevel.HIGH,
        )
        assert check_eligibility(entry, _regime(noise_level=NoiseLevel.HIGH)).eligible
