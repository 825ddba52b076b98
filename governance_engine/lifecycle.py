"""
Law Lifecycle State Machine
===========================

Law candidates move through five states:

    proposed -> tested -> falsified -> retracted
                       \\-> confirmed -> retracted

``retracted`` is terminal. A transition takes effect only when the edge is
in the table, every precondition of that edge holds, and the candidate has
no disqualifier. Candidates are never mutated in place; ``apply_evaluation``
returns an updated copy so the prior record stays available for audit.

Edge preconditions:
- proposed -> tested:    ≥ 1 evidence entry of strength strong or moderate
- tested -> falsified:   ≥ 1 falsification-evidence entry
- tested -> confirmed:   ≥ 2 strong experiment replications, zero
                         falsification evidence, confidenceScore ≥ floor

Disqualifiers (block any transition):
- empty or missing falsificationCriteria (unfalsifiable)
- every evidence entry references the candidate itself (circular evidence)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from governance_engine.config import DEFAULT_CONFIG, GovernanceConfig
from governance_engine.overrides import isoformat_z


class LawLifecycleState(str, Enum):
    """Lifecycle states of a law candidate."""

    PROPOSED = "proposed"
    TESTED = "tested"
    FALSIFIED = "falsified"
    CONFIRMED = "confirmed"
    RETRACTED = "retracted"


VALID_TRANSITIONS: Dict[LawLifecycleState, FrozenSet[LawLifecycleState]] = {
    LawLifecycleState.PROPOSED: frozenset({LawLifecycleState.TESTED}),
    LawLifecycleState.TESTED: frozenset({LawLifecycleState.FALSIFIED, LawLifecycleState.CONFIRMED}),
    LawLifecycleState.FALSIFIED: frozenset({LawLifecycleState.RETRACTED}),
    LawLifecycleState.CONFIRMED: frozenset({LawLifecycleState.RETRACTED}),
    LawLifecycleState.RETRACTED: frozenset(),
}

# Settled states for audit purposes (falsified/confirmed can still be retracted)
SETTLED_STATES = frozenset({
    LawLifecycleState.FALSIFIED,
    LawLifecycleState.RETRACTED,
    LawLifecycleState.CONFIRMED,
})

PROGRESSING_STRENGTHS = frozenset({"strong", "moderate"})


def allowed_transitions(state: LawLifecycleState) -> FrozenSet[LawLifecycleState]:
    return VALID_TRANSITIONS.get(LawLifecycleState(state), frozenset())


def is_valid_transition(from_state: LawLifecycleState, to_state: LawLifecycleState) -> bool:
    """Pure table lookup."""
    return LawLifecycleState(to_state) in allowed_transitions(from_state)


@dataclass(frozen=True)
class EvidenceBasis:
    """Supporting evidence for a law candidate."""

    source_id: str
    source_type: str  # experiment | observation | cross-domain-transfer
    strength: str     # strong | moderate | weak
    summary: str = ""
    timestamp: Optional[str] = None

    @property
    def is_replication(self) -> bool:
        return self.source_type == "experiment" and self.strength == "strong"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EvidenceBasis":
        return cls(
            source_id=data["sourceId"],
            source_type=data["sourceType"],
            strength=data["strength"],
            summary=data.get("summary", ""),
            timestamp=data.get("timestamp"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "summary": self.summary,
            "strength": self.strength,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class FalsificationEvidence:
    """Counter-evidence produced by a falsification method."""

    method: str    # counterfactual | boundary-condition | cross-domain | contradiction | replication
    severity: str  # critical | significant | minor
    description: str = ""
    timestamp: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FalsificationEvidence":
        return cls(
            method=data["method"],
            severity=data["severity"],
            description=data.get("description", ""),
            timestamp=data.get("timestamp"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "description": self.description,
            "severity": self.severity,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LawCandidate:
    """A candidate scientific law under lifecycle governance."""

    id: str
    hypothesis: str
    domain: str
    status: LawLifecycleState
    confidence_score: float
    evidence_basis: Tuple[EvidenceBasis, ...] = ()
    falsification_evidence: Tuple[FalsificationEvidence, ...] = ()
    falsification_criteria: Optional[str] = None
    formal_expression: Optional[str] = None
    proposed_at: Optional[str] = None
    last_transition_at: Optional[str] = None
    disqualified: bool = False
    disqualify_reasons: Tuple[str, ...] = ()

    @property
    def is_falsifiable(self) -> bool:
        return bool(self.falsification_criteria and self.falsification_criteria.strip())

    @property
    def replication_count(self) -> int:
        return sum(1 for e in self.evidence_basis if e.is_replication)

    def with_evidence(
        self,
        evidence: Tuple[EvidenceBasis, ...] = (),
        falsification: Tuple[FalsificationEvidence, ...] = (),
    ) -> "LawCandidate":
        """Return a copy with extra evidence appended."""
        return replace(
            self,
            evidence_basis=self.evidence_basis + tuple(evidence),
            falsification_evidence=self.falsification_evidence + tuple(falsification),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LawCandidate":
        return cls(
            id=data["id"],
            hypothesis=data["hypothesis"],
            domain=data["domain"],
            status=LawLifecycleState(data["status"]),
            confidence_score=float(data["confidenceScore"]),
            evidence_basis=tuple(EvidenceBasis.from_dict(e) for e in data.get("evidenceBasis", ())),
            falsification_evidence=tuple(
                FalsificationEvidence.from_dict(e) for e in data.get("falsificationEvidence", ())
            ),
            falsification_criteria=data.get("falsificationCriteria"),
            formal_expression=data.get("formalExpression"),
            proposed_at=data.get("proposedAt"),
            last_transition_at=data.get("lastTransitionAt"),
            disqualified=bool(data.get("disqualified", False)),
            disqualify_reasons=tuple(data.get("disqualifyReasons", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hypothesis": self.hypothesis,
            "formalExpression": self.formal_expression,
            "domain": self.domain,
            "evidenceBasis": [e.to_dict() for e in self.evidence_basis],
            "falsificationEvidence": [e.to_dict() for e in self.falsification_evidence],
            "status": self.status.value,
            "proposedAt": self.proposed_at,
            "lastTransitionAt": self.last_transition_at,
            "falsificationCriteria": self.falsification_criteria,
            "confidenceScore": self.confidence_score,
            "disqualified": self.disqualified,
            "disqualifyReasons": list(self.disqualify_reasons),
        }


def check_transition_requirements(
    candidate: LawCandidate,
    from_state: LawLifecycleState,
    to_state: LawLifecycleState,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> List[str]:
    """
    Check the preconditions of one edge.

    Returns:
        Reasons for rejection (empty if the preconditions hold)
    """
    reasons: List[str] = []
    edge = (LawLifecycleState(from_state), LawLifecycleState(to_state))

    if edge == (LawLifecycleState.PROPOSED, LawLifecycleState.TESTED):
        if not any(e.strength in PROGRESSING_STRENGTHS for e in candidate.evidence_basis):
            reasons.append("proposed->tested requires ≥ 1 evidence with strength ≥ moderate")

    elif edge == (LawLifecycleState.TESTED, LawLifecycleState.FALSIFIED):
        if not candidate.falsification_evidence:
            reasons.append("tested->falsified requires ≥ 1 counter-evidence entry")

    elif edge == (LawLifecycleState.TESTED, LawLifecycleState.CONFIRMED):
        replications = candidate.replication_count
        if replications < config.min_replications:
            reasons.append(
                f"tested->confirmed requires ≥ {config.min_replications} replications, found {replications}"
            )
        if candidate.falsification_evidence:
            reasons.append("tested->confirmed requires zero active counter-evidence")
        if candidate.confidence_score < config.confidence_floor:
            reasons.append(
                f"tested->confirmed requires confidenceScore ≥ {config.confidence_floor}, "
                f"found {candidate.confidence_score}"
            )

    return reasons


def check_disqualifiers(candidate: LawCandidate) -> List[str]:
    """Disqualifiers that block every transition, independent of the edge."""
    reasons: List[str] = []

    if not candidate.is_falsifiable:
        reasons.append("Unfalsifiable: no falsificationCriteria defined")

    if candidate.evidence_basis and all(e.source_id == candidate.id for e in candidate.evidence_basis):
        reasons.append("Circular evidence: all evidence basis entries reference the candidate itself")

    return reasons


@dataclass
class TransitionOutcome:
    """Result of evaluating one requested transition."""

    previous_state: LawLifecycleState
    requested_state: LawLifecycleState
    new_state: LawLifecycleState
    valid_edge: bool
    requirement_failures: List[str] = field(default_factory=list)
    disqualifiers: List[str] = field(default_factory=list)

    @property
    def transition_valid(self) -> bool:
        return self.new_state == self.requested_state and self.valid_edge

    @property
    def lifecycle_complete(self) -> bool:
        return self.new_state in SETTLED_STATES

    @property
    def decision(self) -> str:
        if self.transition_valid:
            return f"{self.previous_state.value}->{self.requested_state.value}"
        return f"blocked:{self.previous_state.value}"


def evaluate_transition(
    candidate: LawCandidate,
    from_state: LawLifecycleState,
    to_state: LawLifecycleState,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> TransitionOutcome:
    """
    Decide whether a requested transition takes effect.

    Edge preconditions are checked only for structurally valid edges;
    disqualifiers are always checked.
    """
    from_state = LawLifecycleState(from_state)
    to_state = LawLifecycleState(to_state)
    valid_edge = is_valid_transition(from_state, to_state)
    requirement_failures = (
        check_transition_requirements(candidate, from_state, to_state, config) if valid_edge else []
    )
    disqualifiers = check_disqualifiers(candidate)

    new_state = from_state
    if valid_edge and not requirement_failures and not disqualifiers:
        new_state = to_state

    return TransitionOutcome(
        previous_state=from_state,
        requested_state=to_state,
        new_state=new_state,
        valid_edge=valid_edge,
        requirement_failures=requirement_failures,
        disqualifiers=disqualifiers,
    )


def apply_evaluation(
    candidate: LawCandidate,
    outcome: TransitionOutcome,
    at: datetime,
) -> LawCandidate:
    """
    Return the candidate as it stands after an evaluated transition.

    The status changes only when the transition took effect; the
    disqualification flags always reflect the evaluation.
    """
    updates: Dict[str, Any] = {
        "disqualified": bool(outcome.disqualifiers),
        "disqualify_reasons": tuple(outcome.disqualifiers),
    }
    if outcome.transition_valid:
        updates["status"] = outcome.new_state
        updates["last_transition_at"] = isoformat_z(at)
    return replace(candidate, **updates)


__all__ = [
    "LawLifecycleState",
    "VALID_TRANSITIONS",
    "SETTLED_STATES",
    "allowed_transitions",
    "is_valid_transition",
    "EvidenceBasis",
    "FalsificationEvidence",
    "LawCandidate",
    "check_transition_requirements",
    "check_disqualifiers",
    "TransitionOutcome",
    "evaluate_transition",
    "apply_evaluation",
]
