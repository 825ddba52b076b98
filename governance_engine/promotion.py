"""
Promotion support.

A configuration is promoted from experimental to trusted only after its
evaluation has been shown to be deterministic across a set of seeds and a
qualifying run passed every hard gate. Persisting the resulting record is
left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from governance_engine.envelope import GovernanceResultEnvelope, resolve_now
from governance_engine.overrides import isoformat_z

logger = logging.getLogger(__name__)

EvaluationResult = Union[GovernanceResultEnvelope, Sequence[GovernanceResultEnvelope]]
Evaluator = Callable[[Mapping[str, Any], int, str], EvaluationResult]


def _fingerprints(result: EvaluationResult) -> List[str]:
    if isinstance(result, GovernanceResultEnvelope):
        return [result.fingerprint()]
    return [envelope.fingerprint() for envelope in result]


@dataclass
class DeterminismReport:
    """Outcome of re-running an evaluator across seeds."""

    seeds_checked: List[int] = field(default_factory=list)
    mismatched_seeds: List[int] = field(default_factory=list)
    fingerprints: Dict[int, List[str]] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return bool(self.seeds_checked) and not self.mismatched_seeds

    @property
    def seeds_verified(self) -> List[int]:
        return [s for s in self.seeds_checked if s not in self.mismatched_seeds]


def verify_determinism(
    evaluate: Evaluator,
    pack: Mapping[str, Any],
    seeds: Iterable[int],
    mode: str = "report",
) -> DeterminismReport:
    """
    Run ``evaluate(pack, seed, mode)`` twice per seed and compare fingerprints.

    Args:
        evaluate: A stream evaluator, e.g. ``run_causal_method_evaluation``
        pack: Raw scenario pack
        seeds: Seeds to check
        mode: Evaluation mode

    Returns:
        DeterminismReport listing any seed whose repeated runs differ
    """
    report = DeterminismReport()
    for seed in seeds:
        first = _fingerprints(evaluate(pack, seed, mode))
        second = _fingerprints(evaluate(pack, seed, mode))
        report.seeds_checked.append(seed)
        report.fingerprints[seed] = first
        if first != second:
            logger.warning(f"Non-deterministic evaluation for seed {seed}")
            report.mismatched_seeds.append(seed)
    return report


@dataclass(frozen=True)
class PromotionRecord:
    promoted_at: str
    qualifying_run_id: str
    seeds_verified: List[int]
    config_hash: str
    approved_by: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promotedAt": self.promoted_at,
            "qualifyingRunId": self.qualifying_run_id,
            "seedsVerified": list(self.seeds_verified),
            "configHash": self.config_hash,
            "approvedBy": self.approved_by,
        }


def build_promotion_record(
    envelope: GovernanceResultEnvelope,
    seeds_verified: Sequence[int],
    config_hash: str,
    approved_by: str,
    promoted_at: Optional[datetime] = None,
) -> PromotionRecord:
    """
    Build a promotion record from a qualifying run.

    Raises:
        ValueError: If the run has hard gate failures, no seed was verified,
            or no approver is named
    """
    if envelope.hard_gate_failures:
        raise ValueError(
            f"Run {envelope.run_id} cannot qualify a promotion: "
            f"{len(envelope.hard_gate_failures)} hard gate failures"
        )
    if not seeds_verified:
        raise ValueError("A promotion needs at least one verified seed")
    if not approved_by:
        raise ValueError("A promotion needs an approver")

    return PromotionRecord(
        promoted_at=isoformat_z(resolve_now(promoted_at)),
        qualifying_run_id=envelope.run_id,
        seeds_verified=sorted(seeds_verified),
        config_hash=config_hash,
        approved_by=approved_by,
    )


__all__ = [
    "DeterminismReport",
    "verify_determinism",
    "PromotionRecord",
    "build_promotion_record",
]
