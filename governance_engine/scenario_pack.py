"""
Scenario pack validation and typed scenario records.

Packs arrive as JSON-shaped mappings. Each stream validates its pack
against a JSON schema shipped in ``governance_engine/schemas`` before any
evaluation; a pack that fails validation raises ScenarioPackError rather
than being coerced into a plausible-looking decision.

The ``expectedDecision`` / ``expectedHardGates`` fields are carried for
conformance gates and tests only. Selection logic never reads them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Generic, List, Mapping, Tuple, TypeVar

import jsonschema

from governance_engine.catalog import DataRegime
from governance_engine.errors import ScenarioPackError
from governance_engine.lifecycle import (
    EvidenceBasis,
    FalsificationEvidence,
    LawCandidate,
    LawLifecycleState,
)

SCHEMA_DIR = Path(__file__).parent / "schemas"

SCHEMA_FILES = {
    "policy": "policy_pack.schema.json",
    "causal_method": "causal_method_pack.schema.json",
    "calibration": "calibration_pack.schema.json",
    "law": "law_pack.schema.json",
}

S = TypeVar("S")


@lru_cache(maxsize=None)
def load_schema(stream: str) -> Dict[str, Any]:
    """Load the JSON schema for a stream's scenario pack."""
    try:
        filename = SCHEMA_FILES[stream]
    except KeyError:
        raise ScenarioPackError(f"No scenario pack schema for stream '{stream}'") from None
    with open(SCHEMA_DIR / filename, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_pack(raw: Any, stream: str) -> None:
    """
    Validate a raw pack against its stream schema.

    Raises:
        ScenarioPackError: If the pack does not match the schema
    """
    if not isinstance(raw, Mapping):
        raise ScenarioPackError(f"Scenario pack must be a mapping, got {type(raw).__name__}")
    try:
        jsonschema.validate(instance=raw, schema=load_schema(stream))
    except jsonschema.exceptions.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ScenarioPackError(f"Invalid {stream} scenario pack at {location}: {e.message}") from e

    ids = [s["scenarioId"] for s in raw["scenarios"]]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ScenarioPackError(f"Duplicate scenarioId values: {', '.join(duplicates)}")


@dataclass(frozen=True)
class ScenarioPack(Generic[S]):
    """A validated pack with its typed scenarios."""

    version: str
    scenarios: Tuple[S, ...]


@dataclass(frozen=True)
class PolicyScenario:
    scenario_id: str
    label: str
    policies: Tuple[str, ...]
    regime: DataRegime
    expected_decision: str
    expected_hard_gates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CausalMethodScenario:
    scenario_id: str
    label: str
    data_regime: DataRegime
    expected_decision: str
    expected_hard_gates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Prediction:
    predicted: float
    confidence: float
    actual: float


@dataclass(frozen=True)
class CalibrationScenario:
    scenario_id: str
    label: str
    predictions: Tuple[Prediction, ...]
    expected_decision: str
    expected_hard_gates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LawScenario:
    scenario_id: str
    label: str
    candidate: LawCandidate
    from_state: LawLifecycleState
    to_state: LawLifecycleState
    expected_decision: str
    additional_evidence: Tuple[EvidenceBasis, ...] = ()
    additional_falsification_evidence: Tuple[FalsificationEvidence, ...] = ()
    expected_hard_gates: Tuple[str, ...] = ()

    def effective_candidate(self) -> LawCandidate:
        """The candidate with this scenario's additional evidence applied."""
        return self.candidate.with_evidence(
            self.additional_evidence, self.additional_falsification_evidence
        )


def parse_policy_pack(raw: Mapping[str, Any]) -> ScenarioPack[PolicyScenario]:
    validate_pack(raw, "policy")
    scenarios = tuple(
        PolicyScenario(
            scenario_id=s["scenarioId"],
            label=s["label"],
            policies=tuple(s["policies"]),
            regime=DataRegime.from_policy_input(s["input"]),
            expected_decision=s["expectedDecision"],
            expected_hard_gates=tuple(s["expectedHardGates"]),
        )
        for s in raw["scenarios"]
    )
    return ScenarioPack(version=raw["version"], scenarios=scenarios)


def parse_causal_method_pack(raw: Mapping[str, Any]) -> ScenarioPack[CausalMethodScenario]:
    validate_pack(raw, "causal_method")
    scenarios = tuple(
        CausalMethodScenario(
            scenario_id=s["scenarioId"],
            label=s["label"],
            data_regime=DataRegime.from_dict(s["dataRegime"]),
            expected_decision=s["expectedDecision"],
            expected_hard_gates=tuple(s["expectedHardGates"]),
        )
        for s in raw["scenarios"]
    )
    return ScenarioPack(version=raw["version"], scenarios=scenarios)


def parse_calibration_pack(raw: Mapping[str, Any]) -> ScenarioPack[CalibrationScenario]:
    validate_pack(raw, "calibration")
    scenarios = tuple(
        CalibrationScenario(
            scenario_id=s["scenarioId"],
            label=s["label"],
            predictions=tuple(
                Prediction(
                    predicted=float(p["predicted"]),
                    confidence=float(p["confidence"]),
                    actual=float(p["actual"]),
                )
                for p in s["predictions"]
            ),
            expected_decision=s["expectedDecision"],
            expected_hard_gates=tuple(s["expectedHardGates"]),
        )
        for s in raw["scenarios"]
    )
    return ScenarioPack(version=raw["version"], scenarios=scenarios)


def parse_law_pack(raw: Mapping[str, Any]) -> ScenarioPack[LawScenario]:
    validate_pack(raw, "law")
    scenarios: List[LawScenario] = []
    for s in raw["scenarios"]:
        transition = s["requestedTransition"]
        scenarios.append(
            LawScenario(
                scenario_id=s["scenarioId"],
                label=s["label"],
                candidate=LawCandidate.from_dict(s["candidate"]),
                from_state=LawLifecycleState(transition["from"]),
                to_state=LawLifecycleState(transition["to"]),
                expected_decision=s["expectedDecision"],
                additional_evidence=tuple(
                    EvidenceBasis.from_dict(e) for e in s.get("additionalEvidence", ())
                ),
                additional_falsification_evidence=tuple(
                    FalsificationEvidence.from_dict(e)
                    for e in s.get("additionalFalsificationEvidence", ())
                ),
                expected_hard_gates=tuple(s["expectedHardGates"]),
            )
        )
    return ScenarioPack(version=raw["version"], scenarios=tuple(scenarios))


__all__ = [
    "SCHEMA_DIR",
    "load_schema",
    "validate_pack",
    "ScenarioPack",
    "PolicyScenario",
    "CausalMethodScenario",
    "Prediction",
    "CalibrationScenario",
    "LawScenario",
    "parse_policy_pack",
    "parse_causal_method_pack",
    "parse_calibration_pack",
    "parse_law_pack",
]
