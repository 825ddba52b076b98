"""
Law Lifecycle Transition Evaluation

Evaluates one requested lifecycle transition per scenario: appends the
scenario's additional evidence to the candidate, decides the transition
with the lifecycle state machine, and gates the candidate.

Hard gates (overridable):
- min-evidence-count: a proposed candidate needs ≥ min_evidence_count entries
- falsification-criteria-present: criteria must be non-empty
- confidence-floor: a tested candidate needs confidenceScore ≥ confidence_floor

Transition failures (never overridable):
- invalid-transition: the edge is not in the transition table
- transition-requirement: one per unmet edge precondition

Disqualifiers block the transition and are reported in ``disqualifiers``;
they are not gate failures. The stream consumes no generator draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Union

from governance_engine.canon import compute_input_hash
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
from governance_engine.lifecycle import (
    LawCandidate,
    LawLifecycleState,
    TransitionOutcome,
    evaluate_transition,
)
from governance_engine.overrides import parse_overrides
from governance_engine.scenario_pack import LawScenario, parse_law_pack

logger = logging.getLogger(__name__)

GATE_MIN_EVIDENCE = "min-evidence-count"
GATE_CRITERIA_PRESENT = "falsification-criteria-present"
GATE_CONFIDENCE_FLOOR = "confidence-floor"
GATE_INVALID_TRANSITION = "invalid-transition"
GATE_TRANSITION_REQUIREMENT = "transition-requirement"


@dataclass
class EvidenceSummary:
    supporting: int
    contradicting: int
    replications: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "supporting": self.supporting,
            "contradicting": self.contradicting,
            "replications": self.replications,
        }


@dataclass
class LawEvaluationResult(GovernanceResultEnvelope):
    """Per-scenario envelope of the law stream."""

    scenario_id: str = ""
    candidate_id: str = ""
    previous_state: LawLifecycleState = LawLifecycleState.PROPOSED
    requested_state: LawLifecycleState = LawLifecycleState.PROPOSED
    new_state: LawLifecycleState = LawLifecycleState.PROPOSED
    transition_valid: bool = False
    falsification_methods_applied: List[str] = field(default_factory=list)
    evidence_summary: Optional[EvidenceSummary] = None
    disqualifiers: List[str] = field(default_factory=list)
    lifecycle_complete: bool = False
    # Kept for apply_evaluation; not serialized
    transition: Optional[TransitionOutcome] = field(default=None, repr=False)

    stream: ClassVar[GovernanceStream] = GovernanceStream.LAW

    def payload_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "candidateId": self.candidate_id,
            "previousState": self.previous_state.value,
            "requestedState": self.requested_state.value,
            "newState": self.new_state.value,
            "transitionValid": self.transition_valid,
            "falsificationMethodsApplied": list(self.falsification_methods_applied),
            "evidenceSummary": self.evidence_summary.to_dict() if self.evidence_summary else None,
            "disqualifiers": list(self.disqualifiers),
            "lifecycleComplete": self.lifecycle_complete,
        }


def candidate_gate_checks(
    candidate: LawCandidate,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> List[GateCheck]:
    """Overridable gates on the candidate itself."""
    evidence_count = len(candidate.evidence_basis)
    return [
        GateCheck(
            gate=GATE_MIN_EVIDENCE,
            passed=not (
                candidate.status == LawLifecycleState.PROPOSED
                and evidence_count < config.min_evidence_count
            ),
            detail=f"only {evidence_count} evidence entries, need ≥ {config.min_evidence_count}",
        ),
        GateCheck(
            gate=GATE_CRITERIA_PRESENT,
            passed=candidate.is_falsifiable,
            detail="no falsification criteria defined",
        ),
        GateCheck(
            gate=GATE_CONFIDENCE_FLOOR,
            passed=not (
                candidate.status == LawLifecycleState.TESTED
                and candidate.confidence_score < config.confidence_floor
            ),
            detail=f"confidence {candidate.confidence_score} < {config.confidence_floor}",
        ),
    ]


def transition_gate_checks(outcome: TransitionOutcome) -> List[GateCheck]:
    """Non-overridable failures describing why a transition cannot happen."""
    checks = [
        GateCheck(
            gate=GATE_INVALID_TRANSITION,
            passed=outcome.valid_edge,
            detail=(
                f"{outcome.previous_state.value}->{outcome.requested_state.value} "
                f"is not a valid transition"
            ),
            overridable=False,
        )
    ]
    for reason in outcome.requirement_failures:
        checks.append(
            GateCheck(gate=GATE_TRANSITION_REQUIREMENT, passed=False, detail=reason, overridable=False)
        )
    return checks


def distinct_methods(candidate: LawCandidate) -> List[str]:
    """Falsification methods applied, distinct, in first-seen order."""
    return list(dict.fromkeys(e.method for e in candidate.falsification_evidence))


def evaluate_scenario(
    scenario: LawScenario,
    input_hash: str,
    seed: int,
    mode: GovernanceMode,
    overrides: Sequence[Any],
    now: datetime,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> LawEvaluationResult:
    """Evaluate one requested transition and wrap it in an envelope."""
    candidate = scenario.effective_candidate()
    outcome = evaluate_transition(candidate, scenario.from_state, scenario.to_state, config)
    gates = check_hard_gates(
        candidate_gate_checks(candidate, config) + transition_gate_checks(outcome),
        overrides,
        now,
    )

    logger.debug(
        f"Law scenario {scenario.scenario_id}: {outcome.decision} "
        f"({len(outcome.requirement_failures)} unmet requirements, "
        f"{len(outcome.disqualifiers)} disqualifiers)"
    )

    return LawEvaluationResult(
        **envelope_fields(input_hash, seed, mode, outcome.decision, gates, now),
        scenario_id=scenario.scenario_id,
        candidate_id=candidate.id,
        previous_state=outcome.previous_state,
        requested_state=outcome.requested_state,
        new_state=outcome.new_state,
        transition_valid=outcome.transition_valid,
        falsification_methods_applied=distinct_methods(candidate),
        evidence_summary=EvidenceSummary(
            supporting=len(candidate.evidence_basis),
            contradicting=len(candidate.falsification_evidence),
            replications=candidate.replication_count,
        ),
        disqualifiers=list(outcome.disqualifiers),
        lifecycle_complete=outcome.lifecycle_complete,
        transition=outcome,
    )


def run_law_falsification_evaluation(
    pack: Mapping[str, Any],
    seed: int,
    mode: Union[str, GovernanceMode] = GovernanceMode.REPORT,
    overrides: Any = None,
    now: Optional[datetime] = None,
    config: Optional[GovernanceConfig] = None,
) -> List[LawEvaluationResult]:
    """
    Evaluate a law scenario pack, one result per scenario.

    Scenarios are independent; no candidate state carries over between them.

    Raises:
        GovernanceInputError: If the pack, seed, mode or overrides are malformed
    """
    seed = validate_seed(seed)
    mode = parse_mode(mode)
    config = config or DEFAULT_CONFIG
    parsed_overrides = parse_overrides(overrides)
    typed = parse_law_pack(pack)
    input_hash = compute_input_hash(pack)
    now = resolve_now(now)

    results = [
        evaluate_scenario(s, input_hash, seed, mode, parsed_overrides, now, config)
        for s in typed.scenarios
    ]
    logger.info(
        f"Law evaluation seed={seed} mode={mode.value}: {len(results)} scenarios, "
        f"{sum(1 for r in results if r.transition_valid)} transitions applied"
    )
    return results


__all__ = [
    "GATE_MIN_EVIDENCE",
    "GATE_CRITERIA_PRESENT",
    "GATE_CONFIDENCE_FLOOR",
    "GATE_INVALID_TRANSITION",
    "GATE_TRANSITION_REQUIREMENT",
    "EvidenceSummary",
    "LawEvaluationResult",
    "candidate_gate_checks",
    "transition_gate_checks",
    "distinct_methods",
    "evaluate_scenario",
    "run_law_falsification_evaluation",
]
