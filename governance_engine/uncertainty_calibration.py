"""
Uncertainty Calibration Gates

Measures how well stated confidences match observed accuracy and gates on
the result.

Metrics (over ``{predicted, confidence, actual}`` triples):
- ECE: count-weighted mean of per-bin |mean confidence - accuracy|
- MCE: largest per-bin gap
- Brier: mean squared difference between confidence and the 0/1 outcome

A prediction counts as correct iff |predicted - actual| < 0.5. Bins are
equal-width over [0, 1]; the last bin is closed at 1.0.

Gates (thresholds from GovernanceConfig):
- ece-threshold   hard  ECE < 0.10
- mce-threshold   hard  MCE < 0.25
- brier-threshold soft  Brier < 0.15

The stream consumes no generator draws; the seed is recorded only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

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
from governance_engine.gates import (
    Direction,
    GateKind,
    GateResult,
    ThresholdGate,
    evaluate_threshold_gates,
    summarize_gate_results,
)
from governance_engine.overrides import parse_overrides
from governance_engine.scenario_pack import CalibrationScenario, Prediction, parse_calibration_pack

logger = logging.getLogger(__name__)

CORRECT_TOLERANCE = 0.5

# Upper ECE bound of each level, checked in order
CALIBRATION_LEVELS: Tuple[Tuple[str, float], ...] = (
    ("excellent", 0.02),
    ("good", 0.05),
    ("fair", 0.10),
    ("poor", 0.20),
)
UNCALIBRATED = "uncalibrated"


@dataclass
class ReliabilityBin:
    """One confidence bin of a reliability diagram."""

    lower: float
    upper: float
    count: int
    avg_confidence: float
    accuracy: float

    @property
    def gap(self) -> float:
        return abs(self.avg_confidence - self.accuracy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lower": self.lower,
            "upper": self.upper,
            "count": self.count,
            "avgConfidence": self.avg_confidence,
            "accuracy": self.accuracy,
        }


@dataclass
class CalibrationMetric:
    """Calibration quality of one prediction set."""

    ece: float
    mce: float
    brier_score: float
    reliability_bins: int
    level: str
    bins: List[ReliabilityBin] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ece": self.ece,
            "mce": self.mce,
            "brierScore": self.brier_score,
            "reliabilityBins": self.reliability_bins,
            "level": self.level,
            "bins": [b.to_dict() for b in self.bins if b.count],
        }


@dataclass
class ConfidenceReport(GovernanceResultEnvelope):
    """Per-scenario envelope of the calibration stream."""

    scenario_id: str = ""
    calibration: Optional[CalibrationMetric] = None
    gate_results: List[GateResult] = field(default_factory=list)
    prediction_count: int = 0
    hard_gate_failure_count: int = 0
    soft_gate_warning_count: int = 0

    stream: ClassVar[GovernanceStream] = GovernanceStream.CALIBRATION

    def payload_dict(self) -> Dict[str, Any]:
        return {
            "scenarioId": self.scenario_id,
            "calibration": self.calibration.to_dict() if self.calibration else None,
            "gateResults": [g.to_dict() for g in self.gate_results],
            "predictionCount": self.prediction_count,
            "hardGateFailureCount": self.hard_gate_failure_count,
            "softGateWarningCount": self.soft_gate_warning_count,
        }


def _arrays(predictions: Sequence[Prediction]) -> Tuple[np.ndarray, np.ndarray]:
    confidence = np.array([p.confidence for p in predictions], dtype=float)
    predicted = np.array([p.predicted for p in predictions], dtype=float)
    actual = np.array([p.actual for p in predictions], dtype=float)
    correct = np.abs(predicted - actual) < CORRECT_TOLERANCE
    return confidence, correct


def compute_reliability_bins(
    predictions: Sequence[Prediction],
    bins: int = 10,
) -> List[ReliabilityBin]:
    """
    Group predictions into equal-width confidence bins.

    Bin i covers [i/bins, (i+1)/bins); the last bin also takes confidence 1.0.
    Empty bins are returned with zero count.
    """
    edges = np.arange(bins + 1) / bins
    confidence, correct = _arrays(predictions)
    index = np.digitize(confidence, edges[1:-1])
    result: List[ReliabilityBin] = []
    for i in range(bins):
        lower, upper = float(edges[i]), float(edges[i + 1])
        mask = index == i
        count = int(mask.sum())
        if count == 0:
            result.append(ReliabilityBin(lower, upper, 0, 0.0, 0.0))
            continue
        result.append(
            ReliabilityBin(
                lower=lower,
                upper=upper,
                count=count,
                avg_confidence=float(confidence[mask].mean()),
                accuracy=float(correct[mask].mean()),
            )
        )
    return result


def _ece(reliability: Sequence[ReliabilityBin]) -> float:
    n = sum(b.count for b in reliability)
    if n == 0:
        return 0.0
    return float(sum((b.count / n) * b.gap for b in reliability if b.count))


def _mce(reliability: Sequence[ReliabilityBin]) -> float:
    gaps = [b.gap for b in reliability if b.count]
    return float(max(gaps)) if gaps else 0.0


def compute_ece(predictions: Sequence[Prediction], bins: int = 10) -> float:
    """Expected Calibration Error; 0.0 for an empty prediction set."""
    return _ece(compute_reliability_bins(predictions, bins))


def compute_mce(predictions: Sequence[Prediction], bins: int = 10) -> float:
    """Maximum Calibration Error; 0.0 for an empty prediction set."""
    return _mce(compute_reliability_bins(predictions, bins))


def compute_brier_score(predictions: Sequence[Prediction]) -> float:
    """Brier score (lower is better); 0.0 for an empty prediction set."""
    if not predictions:
        return 0.0
    confidence, correct = _arrays(predictions)
    return float(np.mean((confidence - correct.astype(float)) ** 2))


def classify_calibration(ece: float) -> str:
    """Map an ECE value to a calibration level."""
    for level, upper in CALIBRATION_LEVELS:
        if ece < upper:
            return level
    return UNCALIBRATED


def compute_calibration_metrics(
    predictions: Sequence[Prediction],
    bins: int = 10,
) -> CalibrationMetric:
    """Compute ECE, MCE, Brier score and level for a prediction set."""
    reliability = compute_reliability_bins(predictions, bins)
    ece = _ece(reliability)
    return CalibrationMetric(
        ece=ece,
        mce=_mce(reliability),
        brier_score=compute_brier_score(predictions),
        reliability_bins=bins,
        level=classify_calibration(ece),
        bins=reliability,
    )


def build_gates(config: GovernanceConfig = DEFAULT_CONFIG) -> Tuple[ThresholdGate, ...]:
    """Calibration threshold gates for a configuration."""
    return (
        ThresholdGate("ece-threshold", "Expected Calibration Error", GateKind.HARD,
                      config.ece_threshold, Direction.BELOW, "ece"),
        ThresholdGate("mce-threshold", "Maximum Calibration Error", GateKind.HARD,
                      config.mce_threshold, Direction.BELOW, "mce"),
        ThresholdGate("brier-threshold", "Brier Score", GateKind.SOFT,
                      config.brier_threshold, Direction.BELOW, "brier_score"),
    )


DEFAULT_GATES = build_gates(DEFAULT_CONFIG)


def evaluate_scenario(
    scenario: CalibrationScenario,
    input_hash: str,
    seed: int,
    mode: GovernanceMode,
    overrides: Sequence[Any],
    now: datetime,
    config: GovernanceConfig = DEFAULT_CONFIG,
) -> ConfidenceReport:
    """Compute metrics for one scenario and gate them."""
    calibration = compute_calibration_metrics(scenario.predictions, config.calibration_bins)
    values = {
        "ece": calibration.ece,
        "mce": calibration.mce,
        "brier_score": calibration.brier_score,
    }
    gate_results = evaluate_threshold_gates(values, build_gates(config), overrides, now)
    outcome = summarize_gate_results(gate_results, overrides, now)
    soft_warnings = sum(1 for g in gate_results if g.kind == GateKind.SOFT and not g.passed)

    logger.debug(
        f"Calibration scenario {scenario.scenario_id}: ece={calibration.ece:.4f} "
        f"mce={calibration.mce:.4f} brier={calibration.brier_score:.4f} level={calibration.level}"
    )

    return ConfidenceReport(
        **envelope_fields(input_hash, seed, mode, calibration.level, outcome, now),
        scenario_id=scenario.scenario_id,
        calibration=calibration,
        gate_results=gate_results,
        prediction_count=len(scenario.predictions),
        hard_gate_failure_count=len(outcome.failures),
        soft_gate_warning_count=soft_warnings,
    )


def run_uncertainty_calibration(
    pack: Mapping[str, Any],
    seed: int,
    mode: Union[str, GovernanceMode] = GovernanceMode.REPORT,
    overrides: Any = None,
    now: Optional[datetime] = None,
    config: Optional[GovernanceConfig] = None,
) -> List[ConfidenceReport]:
    """
    Evaluate a calibration scenario pack, one report per scenario.

    Raises:
        GovernanceInputError: If the pack, seed, mode or overrides are malformed
    """
    seed = validate_seed(seed)
    mode = parse_mode(mode)
    config = config or DEFAULT_CONFIG
    parsed_overrides = parse_overrides(overrides)
    typed = parse_calibration_pack(pack)
    input_hash = compute_input_hash(pack)
    now = resolve_now(now)

    reports = [
        evaluate_scenario(s, input_hash, seed, mode, parsed_overrides, now, config)
        for s in typed.scenarios
    ]
    logger.info(
        f"Calibration evaluation seed={seed} mode={mode.value}: {len(reports)} scenarios, "
        f"hard_gate_failures={sum(r.hard_gate_failure_count for r in reports)}"
    )
    return reports


__all__ = [
    "CALIBRATION_LEVELS",
    "UNCALIBRATED",
    "ReliabilityBin",
    "CalibrationMetric",
    "ConfidenceReport",
    "compute_reliability_bins",
    "compute_ece",
    "compute_mce",
    "compute_brier_score",
    "classify_calibration",
    "compute_calibration_metrics",
    "build_gates",
    "DEFAULT_GATES",
    "evaluate_scenario",
    "run_uncertainty_calibration",
]
