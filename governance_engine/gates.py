"""
Gate & Override Evaluation

Classifies an evaluator's findings into hard-gate failures (block) and
warnings (non-blocking), honoring time-bounded overrides.

Two gate shapes exist:
- Named boolean gates (``GateCheck``): the stream computes the condition,
  this module decides whether a failure blocks or is suppressed.
- Threshold gates (``ThresholdGate``): an observed metric compared to a
  threshold in a stated direction, producing a ``GateResult`` record.

Overrides never delete a failure. A suppressed hard failure is kept as a
warning whose text carries the ``[OVERRIDDEN]`` prefix and the override
ticket, so the audit trail is never silent.

``mode`` has no effect here: report vs enforce is decided at the external
boundary. Nothing in this module raises for a failing gate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from governance_engine.overrides import Override, active_override

logger = logging.getLogger(__name__)

OVERRIDE_PREFIX = "[OVERRIDDEN]"


class GateKind(str, Enum):
    """Hard gates block unless overridden; soft gates only warn."""

    HARD = "hard"
    SOFT = "soft"


class Direction(str, Enum):
    """``below``: observed must be < threshold. ``above``: observed must be > threshold."""

    BELOW = "below"
    ABOVE = "above"


@dataclass(frozen=True)
class GateCheck:
    """Observed outcome of one named boolean gate."""

    gate: str
    passed: bool
    detail: str = ""
    overridable: bool = True


@dataclass(frozen=True)
class GateFinding:
    """A failed gate, annotated with whether an override suppressed it."""

    gate: str
    detail: str
    overridden: bool = False
    ticket: Optional[str] = None

    def render(self) -> str:
        text = f"{self.gate}: {self.detail}" if self.detail else self.gate
        if self.overridden:
            text = f"{OVERRIDE_PREFIX} {text}"
            if self.ticket:
                text = f"{text} (ticket {self.ticket})"
        return text


@dataclass
class GateOutcome:
    """Failures and warnings produced by one gate evaluation."""

    failures: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    findings: List[GateFinding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def merge(self, other: "GateOutcome") -> "GateOutcome":
        return GateOutcome(
            failures=self.failures + other.failures,
            warnings=self.warnings + other.warnings,
            findings=self.findings + other.findings,
        )


def _classify(
    gate: str,
    detail: str,
    overridable: bool,
    overrides: Sequence[Override],
    now: datetime,
    outcome: GateOutcome,
) -> GateFinding:
    override = active_override(gate, overrides, now) if overridable else None
    if override is not None:
        finding = GateFinding(gate=gate, detail=detail, overridden=True, ticket=override.ticket)
        outcome.warnings.append(finding.render())
        logger.warning(f"Hard gate '{gate}' suppressed by override {override.id} ({override.ticket})")
    else:
        finding = GateFinding(gate=gate, detail=detail)
        outcome.failures.append(finding.render())
    outcome.findings.append(finding)
    return finding


def check_hard_gates(
    checks: Iterable[GateCheck],
    overrides: Sequence[Override],
    now: datetime,
) -> GateOutcome:
    """
    Classify named gate observations into failures and warnings.

    Args:
        checks: Gate observations, in the order they should be reported
        overrides: Parsed overrides
        now: Evaluation instant; overrides with ``now < expiresAt`` are active

    Returns:
        GateOutcome; an empty ``failures`` list is the only pass signal
    """
    outcome = GateOutcome()
    for check in checks:
        if check.passed:
            continue
        _classify(check.gate, check.detail, check.overridable, overrides, now, outcome)
    return outcome


# =============================================================================
# THRESHOLD GATES
# =============================================================================

@dataclass(frozen=True)
class ThresholdGate:
    """Declarative gate over one named metric."""

    gate_id: str
    gate_name: str
    kind: GateKind
    threshold: float
    direction: Direction
    metric: str


@dataclass
class GateResult:
    """Outcome of one threshold gate."""

    gate_id: str
    gate_name: str
    kind: GateKind
    passed: bool
    observed_value: float
    threshold: float
    direction: Direction
    overridden: bool = False

    def describe(self) -> str:
        comparator = ">=" if self.direction == Direction.BELOW else "<="
        return f"{self.observed_value:.4f} {comparator} {self.threshold}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gateId": self.gate_id,
            "gateName": self.gate_name,
            "type": self.kind.value,
            "passed": self.passed,
            "observedValue": self.observed_value,
            "threshold": self.threshold,
            "direction": self.direction.value,
            "overridden": self.overridden,
        }


def evaluate_threshold_gates(
    values: Mapping[str, float],
    gates: Sequence[ThresholdGate],
    overrides: Sequence[Override],
    now: datetime,
) -> List[GateResult]:
    """
    Evaluate threshold gates against observed metric values.

    A failing hard gate with an active override keeps ``passed=False`` and
    is marked ``overridden=True``. Soft gates are never overridden; their
    failures are always surfaced as warnings.
    """
    results: List[GateResult] = []
    for gate in gates:
        observed = float(values[gate.metric])
        if gate.direction == Direction.BELOW:
            passed = observed < gate.threshold
        else:
            passed = observed > gate.threshold
        overridden = (
            not passed
            and gate.kind == GateKind.HARD
            and active_override(gate.gate_id, overrides, now) is not None
        )
        results.append(
            GateResult(
                gate_id=gate.gate_id,
                gate_name=gate.gate_name,
                kind=gate.kind,
                passed=passed,
                observed_value=observed,
                threshold=gate.threshold,
                direction=gate.direction,
                overridden=overridden,
            )
        )
    return results


def summarize_gate_results(
    results: Sequence[GateResult],
    overrides: Sequence[Override],
    now: datetime,
) -> GateOutcome:
    """Turn threshold gate results into failures and warnings, in gate order."""
    outcome = GateOutcome()
    for result in results:
        if result.passed:
            continue
        if result.kind == GateKind.SOFT:
            outcome.warnings.append(f"{result.gate_id}: {result.describe()}")
            continue
        _classify(result.gate_id, result.describe(), True, overrides, now, outcome)
    return outcome


__all__ = [
    "OVERRIDE_PREFIX",
    "GateKind",
    "Direction",
    "GateCheck",
    "GateFinding",
    "GateOutcome",
    "check_hard_gates",
    "ThresholdGate",
    "GateResult",
    "evaluate_threshold_gates",
    "summarize_gate_results",
]
