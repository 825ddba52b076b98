"""
Policy Selection Evaluation

Scores the experiment-selection policy families named by each scenario,
picks a winner per scenario, and aggregates the winners into one decision
for the whole pack.

Pipeline per scenario:
    requested policies (catalog order) -> eligibility -> seeded ranking
The aggregate decision is the policy with the highest win rate across
scenarios; ties go to the policy declared first in the catalog.

All scenarios share one generator, consumed in scenario order.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from governance_engine.canon import compute_input_hash
from governance_engine.catalog import (
    FALLBACK_POLICY_ID,
    POLICY_CATALOG,
    EligibilityResult,
    PolicyFamilyDescriptor,
    catalog_ids,
    check_eligibility,
    least_restrictive,
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
from governance_engine.errors import ScenarioPackError
from governance_engine.gates import GateCheck, check_hard_gates
from governance_engine.overrides import parse_overrides
from governance_engine.prng import SeededGenerator, new_generator
from governance_engine.scenario_pack import PolicyScenario, parse_policy_pack

logger = logging.getLogger(__name__)

GATE_SELECTION_ACCURACY = "policy-selection-accuracy"
GATE_DISQUALIFIED_SELECTED = "disqualified-policy-selected"


@dataclass
class PolicyScenarioResult:
    """Outcome of one policy scenario."""

    scenario_id: str
    selected_policy: str
    policy_scores: Dict[str, float]
    ranked_policies: List[str]
    eligibility_results: List[EligibilityResult]
    matched_expectation: bool
    fallback: bool = False

    @property
    def selected_eligible(self) -> bool:
        return any(r.entry_id == self.selected_policy and r.eligible for r in self.eligibility_results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "policyScores": dict(self.policy_scores),
            "selectedPolicy": self.selected_policy,
            "rankedPolicies": list(self.ranked_policies),
            "matchedExpectation": self.matched_expectation,
            "eligibilityResults": [r.to_dict(id_key="policyId") for r in self.eligibility_results],
            "fallback": self.fallback,
        }


@dataclass
class PolicyDecision(GovernanceResultEnvelope):
    """Aggregate envelope for a policy scenario pack."""

    selected_policy: str = ""
    scenarios_evaluated: int = 0
    scenario_results: List[PolicyScenarioResult] = field(default_factory=list)
    win_rates: Dict[str, float] = field(default_factory=dict)

    stream: ClassVar[GovernanceStream] = GovernanceStream.POLICY

    def payload_dict(self) -> Dict[str, Any]:
        return {
            "selectedPolicy": self.selected_policy,
            "scenariosEvaluated": self.scenarios_evaluated,
            "scenarioResults": [r.to_dict() for r in self.scenario_results],
            "winRates": dict(self.win_rates),
        }


def requested_policies(
    scenario: PolicyScenario,
    catalog: Sequence[PolicyFamilyDescriptor] = POLICY_CATALOG,
) -> Tuple[PolicyFamilyDescriptor, ...]:
    """
    Catalog entries named by a scenario, in catalog declaration order.

    Raises:
        ScenarioPackError: If the scenario names no policy or an unknown one
    """
    known = catalog_ids(catalog)
    unknown = [p for p in scenario.policies if p not in known]
    if unknown:
        raise ScenarioPackError(
            f"Scenario '{scenario.scenario_id}' names unknown policies: {', '.join(unknown)}"
        )
    entries = tuple(entry for entry in catalog if entry.id in scenario.policies)
    if not entries:
        raise ScenarioPackError(f"Scenario '{scenario.scenario_id}' names no policies")
    return entries


def evaluate_scenario(
    scenario: PolicyScenario,
    rng: SeededGenerator,
    config: GovernanceConfig = DEFAULT_CONFIG,
    catalog: Sequence[PolicyFamilyDescriptor] = POLICY_CATALOG,
) -> PolicyScenarioResult:
    """
    Score and select a policy for one scenario.

    Draws one value from ``rng`` per eligible requested policy.
    """
    entries = requested_policies(scenario, catalog)
    eligibility = [check_eligibility(entry, scenario.regime) for entry in entries]

    ids = catalog_ids(entries)
    fallback_id = FALLBACK_POLICY_ID if FALLBACK_POLICY_ID in ids else least_restrictive(entries).id

    selection = rank_eligible(
        entries,
        eligibility,
        rng,
        fallback_id=fallback_id,
        fallback_score=config.fallback_score,
        noise_span=config.score_noise_span,
    )
    logger.debug(
        f"Policy scenario {scenario.scenario_id}: selected {selection.selected_id} "
        f"({selection.score:.4f}) from {len(selection.ranked)} ranked"
    )

    return PolicyScenarioResult(
        scenario_id=scenario.scenario_id,
        selected_policy=selection.selected_id,
        policy_scores=selection.scores,
        ranked_policies=selection.ranked_ids,
        eligibility_results=eligibility,
        matched_expectation=selection.selected_id == scenario.expected_decision,
        fallback=selection.fallback,
    )


def compute_win_rates(
    results: Sequence[PolicyScenarioResult],
    catalog: Sequence[PolicyFamilyDescriptor] = POLICY_CATALOG,
) -> Dict[str, float]:
    """Fraction of scenarios won by each winning policy, in catalog order."""
    if not results:
        return {}
    wins = Counter(r.selected_policy for r in results)
    total = len(results)
    return {entry.id: wins[entry.id] / total for entry in catalog if wins[entry.id]}


def aggregate_decision(win_rates: Mapping[str, float]) -> str:
    """Highest win rate; ties keep the first policy in ``win_rates`` order."""
    best_id = ""
    best_rate = -1.0
    for policy_id, rate in win_rates.items():
        if rate > best_rate:
            best_id, best_rate = policy_id, rate
    return best_id


def gate_checks(results: Sequence[PolicyScenarioResult]) -> List[GateCheck]:
    """Named gate observations for a set of scenario results."""
    mismatched = [r.scenario_id for r in results if not r.matched_expectation]
    disqualified = [r.scenario_id for r in results if not r.selected_eligible]
    return [
        GateCheck(
            gate=GATE_SELECTION_ACCURACY,
            passed=not mismatched,
            detail=(
                f"{len(mismatched)} scenario(s) did not match expected decision "
                f"({', '.join(mismatched)})"
            ),
        ),
        GateCheck(
            gate=GATE_DISQUALIFIED_SELECTED,
            passed=not disqualified,
            detail=f"disqualified policy selected in {', '.join(disqualified)}",
            overridable=False,
        ),
    ]


def run_policy_evaluation(
    pack: Mapping[str, Any],
    seed: int,
    mode: Union[str, GovernanceMode] = GovernanceMode.REPORT,
    overrides: Any = None,
    now: Optional[datetime] = None,
    config: Optional[GovernanceConfig] = None,
) -> PolicyDecision:
    """
    Evaluate a policy scenario pack into one aggregate decision.

    Args:
        pack: Raw policy scenario pack ``{version, scenarios}``
        seed: Integer seed for the run's generator
        mode: ``report`` or ``enforce``
        overrides: Override list (or ``{"overrides": [...]}``), may be None
        now: Evaluation instant for override expiry; defaults to the clock
        config: Thresholds and tunables; None means the defaults

    Returns:
        PolicyDecision envelope

    Raises:
        GovernanceInputError: If the pack, seed, mode or overrides are malformed
    """
    seed = validate_seed(seed)
    mode = parse_mode(mode)
    config = config or DEFAULT_CONFIG
    parsed_overrides = parse_overrides(overrides)
    typed = parse_policy_pack(pack)
    if not typed.scenarios:
        raise ScenarioPackError("Policy scenario pack has no scenarios; nothing to aggregate")
    input_hash = compute_input_hash(pack)
    now = resolve_now(now)

    rng = new_generator(seed)
    results = [evaluate_scenario(s, rng, config) for s in typed.scenarios]
    win_rates = compute_win_rates(results)
    decision = aggregate_decision(win_rates)

    outcome = check_hard_gates(gate_checks(results), parsed_overrides, now)
    fallback_warnings = [
        f"{r.scenario_id}: no eligible policy; fell back to '{r.selected_policy}'"
        for r in results
        if r.fallback
    ]

    envelope = PolicyDecision(
        **envelope_fields(input_hash, seed, mode, decision, outcome, now, fallback_warnings),
        selected_policy=decision,
        scenarios_evaluated=len(results),
        scenario_results=results,
        win_rates=win_rates,
    )
    logger.info(
        f"Policy evaluation seed={seed} mode={mode.value}: decision={decision} "
        f"hard_gate_failures={len(envelope.hard_gate_failures)}"
    )
    return envelope


__all__ = [
    "GATE_SELECTION_ACCURACY",
    "GATE_DISQUALIFIED_SELECTED",
    "PolicyScenarioResult",
    "PolicyDecision",
    "requested_policies",
    "evaluate_scenario",
    "compute_win_rates",
    "aggregate_decision",
    "gate_checks",
    "run_policy_evaluation",
]
