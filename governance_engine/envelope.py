"""
Governance Result Envelope

The common provenance-and-decision record every stream result extends.
Each stream defines its own dataclass subclass (see the stream modules),
tagged with a ``GovernanceStream`` value, so consumers can dispatch on the
tag instead of probing fields.

Determinism invariant: for fixed (inputHash, seed, mode) the decision and
hardGateFailures of an envelope are byte-identical across runs. ``runId``
and ``timestamp`` are provenance and are excluded from ``fingerprint()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Union

from ulid import ULID

from governance_engine.canon import compute_input_hash
from governance_engine.errors import GovernanceInputError
from governance_engine.gates import GateOutcome
from governance_engine.overrides import as_utc, isoformat_z

# Boundary exit codes for CLI wrappers
EXIT_OK = 0
EXIT_HARD_GATE = 2
EXIT_INVALID_INPUT = 3
EXIT_RUNTIME = 4

PROVENANCE_FIELDS = frozenset({"runId", "timestamp"})


class GovernanceMode(str, Enum):
    """``report`` always returns normally; ``enforce`` lets the boundary fail the process."""

    REPORT = "report"
    ENFORCE = "enforce"


class GovernanceStream(str, Enum):
    """Evaluation streams sharing the envelope protocol."""

    POLICY = "policy"
    CAUSAL_METHOD = "causal_method"
    CALIBRATION = "calibration"
    LAW = "law"


def parse_mode(mode: Union[str, GovernanceMode]) -> GovernanceMode:
    """Parse a mode value, raising GovernanceInputError if unknown."""
    try:
        return GovernanceMode(mode)
    except ValueError:
        raise GovernanceInputError(
            f"mode must be 'report' or 'enforce', got {mode!r}"
        ) from None


def validate_seed(seed: Any) -> int:
    """Return the seed if it is a plain integer, else raise."""
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise GovernanceInputError(f"seed must be an integer, got {seed!r}")
    return seed


def new_run_id() -> str:
    """Globally unique, time-sortable run identifier (ULID in UUID form)."""
    return str(ULID().to_uuid())


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Return ``now`` as aware UTC, reading the clock only when it is None."""
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


@dataclass
class GovernanceResultEnvelope:
    """Base envelope shared by every stream result."""

    run_id: str
    input_hash: str
    seed: int
    mode: GovernanceMode
    timestamp: str
    decision: str
    hard_gate_failures: List[str]
    warnings: List[str]

    stream: ClassVar[GovernanceStream]

    @property
    def passed(self) -> bool:
        """True iff no hard gate failed."""
        return not self.hard_gate_failures

    def payload_dict(self) -> Dict[str, Any]:
        """Stream-specific fields; overridden by each stream result."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase envelope form."""
        data: Dict[str, Any] = {
            "stream": self.stream.value,
            "runId": self.run_id,
            "inputHash": self.input_hash,
            "seed": self.seed,
            "mode": self.mode.value,
            "timestamp": self.timestamp,
            "decision": self.decision,
            "hardGateFailures": list(self.hard_gate_failures),
            "warnings": list(self.warnings),
        }
        data.update(self.payload_dict())
        return data

    def decision_state(self) -> Dict[str, Any]:
        """``to_dict()`` without provenance-only fields."""
        return {k: v for k, v in self.to_dict().items() if k not in PROVENANCE_FIELDS}

    def fingerprint(self) -> str:
        """Canonical hash of the decision state; equal across identical runs."""
        return compute_input_hash(self.decision_state())


def envelope_fields(
    input_hash: str,
    seed: int,
    mode: GovernanceMode,
    decision: str,
    outcome: GateOutcome,
    now: datetime,
    extra_warnings: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Assemble the base envelope keyword arguments for one evaluation.

    A fresh ``run_id`` is generated on every call. Stream-specific soft
    warnings (``extra_warnings``) are listed before gate warnings.
    """
    return {
        "run_id": new_run_id(),
        "input_hash": input_hash,
        "seed": seed,
        "mode": mode,
        "timestamp": isoformat_z(now),
        "decision": decision,
        "hard_gate_failures": list(outcome.failures),
        "warnings": list(extra_warnings) + list(outcome.warnings),
    }


def exit_code_for(
    envelopes: Iterable[GovernanceResultEnvelope],
    mode: Union[str, GovernanceMode],
) -> int:
    """
    Map evaluation results to a process exit code for the external boundary.

    Returns EXIT_HARD_GATE only in enforce mode with at least one hard
    failure; report mode always maps to EXIT_OK.
    """
    if parse_mode(mode) != GovernanceMode.ENFORCE:
        return EXIT_OK
    if any(envelope.hard_gate_failures for envelope in envelopes):
        return EXIT_HARD_GATE
    return EXIT_OK


__all__ = [
    "EXIT_OK",
    "EXIT_HARD_GATE",
    "EXIT_INVALID_INPUT",
    "EXIT_RUNTIME",
    "GovernanceMode",
    "GovernanceStream",
    "GovernanceResultEnvelope",
    "parse_mode",
    "validate_seed",
    "new_run_id",
    "resolve_now",
    "envelope_fields",
    "exit_code_for",
]
