"""
Causal Method Selection

Chooses a causal inference method for each scenario's data regime:

    catalog -> eligibility (seed-independent) -> seeded ranking -> selection

Every method card is checked against the regime; the eligible ones are
ranked by base weight plus a seeded perturbation. When no method is
eligible the least-restrictive default (``ges``) is returned with a fixed
minimal score and the selection is flagged as a fallback.

One envelope is produced per scenario. All scenarios of a run share one
generator, consumed in scenario order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Union

from governance_engine.canon import compute_input_hash
from governance_engine.catalog import (
    FALLBACK_METHOD_ID,
    METHOD_CATALOG,
    DataRegime,
    EligibilityResult,
    MethodCard,
    RankedSelection,
    check_eligibility,
    rank_eligible,
)
from governance_engine.config import DEFAULT_CONFIG, GovernanceConfig
from governance_engine.envelope import (
    GovernanceMode,
    GovernanceResultEnvelope,
    GovernanceStream,
    envelope_fields,
    parse_mode,
    resolve_now,
    validate_seed,
)
from governance_engine.gates import GateCheck, check_hard_gates
from governance_engine.overrides import parse_overrides
from governance_engine.prng import SeededGenerator, new_generator
from governance_engine.scenario_pack import CausalMethodScenario, parse_causal_method_pack

logger = logging.getLogger(__name__)

GATE_SELECTION_ACCURACY = "method-selection-accuracy"
GATE_DISQUALIFIED_SELECTED = "disqualified-method-selected"


@dataclass
class MethodSelection:
    """Eligibility and ranking of the method catalog for one regime."""

    eligibility_results: List[EligibilityResult]
    ranking: RankedSelection

    @property
    def selected_method(self) -> str:
        return self.ranking.selected_id

    @property
    def selected_eligible(self) -> bool:
        return any(
            r.entry_id == self.selected_method and r.eligible for r in self.eligibility_results
        )

    def selected_warnings(self) -> List[str]:
        for result in self.eligibility_results:
            if result.entry_id == self.selected_method:
                return list(result.warnings)
        return []


@dataclass
class SelectionOutput(GovernanceResultEnvelope):
    """Per-scenario envelope of the causal method stream."""

    scenario_id: str = ""
    data_regime: Optional[DataRegime] = None
    selected_method: str = ""
    selection_score: float = 0.0
    ranked_methods: List[str] = field(default_factory=list)
    method_scores: Dict[str, float] = field(default_factory=dict)
    eligibility_results: List[EligibilityResult] = field(default_factory=list)
    fallback: bool = False

    stream: ClassVar[GovernanceStream] = GovernanceStream.CAUSAL_METHOD

    def payload_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "dataRegime": self.data_regime.to_dict() if self.data_regime else None,
            "selectedMethod": self.selected_method,
            "selectionScore": self.selection_score,
            "rankedMethods": list(self.ranked_methods),
            "methodScores": dict(self.method_scores),
            "eligibilityResults": [r.to_dict(id_key="methodId") for r in self.eligibility_results],
            "fallback": self.fallback,
        }


def select_method(
    regime: DataRegime,
    rng: SeededGenerator,
    config: GovernanceConfig = DEFAULT_CONFIG,
    catalog: Sequence[MethodCard] = METHOD_CATALOG,
) -> MethodSelection:
    """
    Check every method against a regime and rank the eligible ones.

    Args:
        regime: Data regime of the scenario
        rng: The run's shared generator (one draw per eligible method)
        config: Fallback score and noise span
        catalog: Method cards in declaration order

    Returns:
        MethodSelection; never raises for "no eligible method"
    """
    eligibility = [check_eligibility(card, regime) for card in catalog]
    ranking = rank_eligible(
        catalog,
        eligibility,
        rng,
        fallback_id=FALLBACK_METHOD_ID,
        fallback_score=config.fallback_score,
        noise_span=config.score_noise_span,
    )
    eligible_count = sum(1 for r in eligibility if r.eligible)
    logger.debug(
        f"Method selection: {eligible_count}/{len(catalog)} eligible, "
        f"selected {ranking.selected_id} ({ranking.score:.4f})"
    )
    return MethodSelection(eligibility_results=eligibility, ranking=ranking)


def gate_checks(scenario: CausalMethodScenario, selection: MethodSelection) -> List[GateCheck]:
    """Named gate observations for one scenario."""
    selected = selection.selected_method
    return [
        GateCheck(
            gate=GATE_SELECTION_ACCURACY,
            passed=selected == scenario.expected_decision,
            detail=f"selected '{selected}' but expected '{scenario.expected_decision}'",
        ),
        GateCheck(
            gate=GATE_DISQUALIFIED_SELECTED,
            passed=selection.selected_eligible,
            detail=f"'{selected}' was disqualified but selected",
            overridable=False,
        ),
    ]


def evaluate_scenario(
    scenario: CausalMethodScenario,
    rng: SeededGenerator,
    input_hash: str,
    seed: int,
    mode: GovernanceMode,
    overrides: Sequence[Any],
    now: datetime,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> SelectionOutput:
    """Select a method for one scenario and wrap it in an envelope."""
    selection = select_method(scenario.data_regime, rng, config)
    outcome = check_hard_gates(gate_checks(scenario, selection), overrides, now)

    extra_warnings = [
        f"{selection.selected_method}: {warning}" for warning in selection.selected_warnings()
    ]
    if selection.ranking.fallback:
        extra_warnings.append(f"no eligible method; fell back to '{selection.selected_method}'")

    return SelectionOutput(
        **envelope_fields(
            input_hash, seed, mode, selection.selected_method, outcome, now, extra_warnings
        ),
        scenario_id=scenario.scenario_id,
        data_regime=scenario.data_regime,
        selected_method=selection.selected_method,
        selection_score=selection.ranking.score,
        ranked_methods=selection.ranking.ranked_ids,
        method_scores=selection.ranking.scores,
        eligibility_results=selection.eligibility_results,
        fallback=selection.ranking.fallback,
    )


def run_causal_method_evaluation(
    pack: Mapping[str, Any],
    seed: int,
    mode: Union[str, GovernanceMode] = GovernanceMode.REPORT,
    overrides: Any = None,
    now: Optional[datetime] = None,
    config: Optional[GovernanceConfig] = None,
) -> List[SelectionOutput]:
    """
    Evaluate a causal method scenario pack, one envelope per scenario.

    Raises:
        GovernanceInputError: If the pack, seed, mode or overrides are malformed
    """
    seed = validate_seed(seed)
    mode = parse_mode(mode)
    config = config or DEFAULT_CONFIG
    parsed_overrides = parse_overrides(overrides)
    typed = parse_causal_method_pack(pack)
    input_hash = compute_input_hash(pack)
    now = resolve_now(now)

    rng = new_generator(seed)
    outputs = [
        evaluate_scenario(s, rng, input_hash, seed, mode, parsed_overrides, now, config)
        for s in typed.scenarios
    ]

    failures = sum(len(o.hard_gate_failures) for o in outputs)
    logger.info(
        f"Causal method evaluation seed={seed} mode={mode.value}: "
        f"{len(outputs)} scenarios, hard_gate_failures={failures}"
    )
    return outputs


__all__ = [
    "GATE_SELECTION_ACCURACY",
    "GATE_DISQUALIFIED_SELECTED",
    "MethodSelection",
    "SelectionOutput",
    "select_method",
    "gate_checks",
    "evaluate_scenario",
    "run_causal_method_evaluation",
]
