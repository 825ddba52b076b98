# tests/conftest.py
import copy
from datetime import datetime, timedelta, timezone

import pytest

# Pinned evaluation instant; no test reads the wall clock for override expiry.
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_override():
    """Build a raw override dict expiring ``offset_seconds`` after NOW."""
    def _make(gate, offset_seconds=3600, ticket="GOV-101", override_id="ovr-1"):
        expires = NOW + timedelta(seconds=offset_seconds)
        return {
            "id": override_id,
            "gate": gate,
            "ticket": ticket,
            "reason": "Accepted for the current review cycle",
            "expiresAt": expires.isoformat().replace("+00:00", "Z"),
        }
    return _make


# ---- Causal method stream

def _regime(**overrides):
    regime = {
        "sampleSize": 5000,
        "dimensionality": 10,
        "hasInterventions": True,
        "hasTemporalOrder": False,
        "knownConfounders": [],
        "noiseLevel": "low",
    }
    regime.update(overrides)
    return regime


@pytest.fixture
def make_regime():
    return _regime


@pytest.fixture
def causal_pack():
    return {
        "version": "1.0.0",
        "scenarios": [
            {
                "scenarioId": "cm-rich-interventional",
                "label": "Large interventional dataset, low noise",
                "dataRegime": _regime(),
                "expectedHardGates": [],
                "expectedDecision": "instrumental_variable",
            },
            {
                "scenarioId": "cm-short-time-series",
                "label": "Short noisy time series",
                "dataRegime": _regime(
                    sampleSize=40,
                    hasInterventions=False,
                    hasTemporalOrder=True,
                    noiseLevel="high",
                ),
                "expectedHardGates": [],
                "expectedDecision": "granger",
            },
        ],
    }


# ---- Policy stream

@pytest.fixture
def policy_pack():
    all_policies = ["eig", "bo_ucb", "bo_ts", "efe"]
    return {
        "version": "1.0.0",
        "scenarios": [
            {
                "scenarioId": "pe-ample-budget",
                "label": "Ample budget, low noise",
                "policies": all_policies,
                "input": {"sampleBudget": 100, "noiseLevel": "low"},
                "expectedHardGates": [],
                "expectedDecision": "eig",
            },
            {
                "scenarioId": "pe-tight-budget",
                "label": "Tight budget, high noise",
                "policies": all_policies,
                "input": {"sampleBudget": 8, "noiseLevel": "high"},
                "expectedHardGates": [],
                "expectedDecision": "bo_ts",
            },
            {
                "scenarioId": "pe-info-theoretic",
                "label": "Information-theoretic families only",
                "policies": ["efe", "eig"],
                "input": {"sampleBudget": 50, "noiseLevel": "medium"},
                "expectedHardGates": [],
                "expectedDecision": "eig",
            },
        ],
    }


# ---- Calibration stream

def _predictions(confidence, correct, wrong):
    hits = [{"predicted": 1.0, "confidence": confidence, "actual": 1.0}] * correct
    misses = [{"predicted": 1.0, "confidence": confidence, "actual": 0.0}] * wrong
    return copy.deepcopy(hits + misses)


@pytest.fixture
def make_predictions():
    return _predictions


@pytest.fixture
def calibration_pack():
    return {
        "version": "1.0.0",
        "scenarios": [
            {
                "scenarioId": "uc-perfect",
                "label": "Certain and always right",
                "predictions": _predictions(1.0, correct=10, wrong=0),
                "expectedHardGates": [],
                "expectedDecision": "excellent",
            },
            {
                "scenarioId": "uc-overconfident",
                "label": "Confident and always wrong",
                "predictions": _predictions(0.9, correct=0, wrong=4),
                "expectedHardGates": ["ece-threshold", "mce-threshold"],
                "expectedDecision": "uncalibrated",
            },
            {
                "scenarioId": "uc-noisy-but-calibrated",
                "label": "Calibrated at 0.8 with a high Brier score",
                "predictions": _predictions(0.8, correct=8, wrong=2),
                "expectedHardGates": [],
                "expectedDecision": "excellent",
            },
        ],
    }


# ---- Law stream

def _evidence(source_id, source_type="experiment", strength="strong"):
    return {
        "sourceId": source_id,
        "sourceType": source_type,
        "summary": f"Result from {source_id}",
        "strength": strength,
    }


def _candidate(**overrides):
    candidate = {
        "id": "law-arrhenius-01",
        "hypothesis": "Reaction rate doubles per 10K temperature increase",
        "domain": "chemistry",
        "evidenceBasis": [_evidence("exp-001"), _evidence("exp-002")],
        "falsificationEvidence": [],
        "status": "tested",
        "falsificationCriteria": "Rate fails to increase across a 20K interval",
        "confidenceScore": 0.72,
    }
    candidate.update(overrides)
    return candidate


def _law_scenario(scenario_id, candidate, transition, expected_decision, **extra):
    scenario = {
        "scenarioId": scenario_id,
        "label": scenario_id,
        "candidate": candidate,
        "requestedTransition": {"from": transition[0], "to": transition[1]},
        "expectedHardGates": [],
        "expectedDecision": expected_decision,
    }
    scenario.update(extra)
    return scenario


@pytest.fixture
def make_evidence():
    return _evidence


@pytest.fixture
def make_candidate():
    return _candidate


@pytest.fixture
def make_law_pack():
    def _make(*scenarios):
        return {"version": "1.0.0", "scenarios": list(scenarios)}
    return _make


@pytest.fixture
def make_law_scenario():
    return _law_scenario


@pytest.fixture
def law_pack():
    return {
        "version": "1.0.0",
        "scenarios": [
            _law_scenario(
                "lf-confirm",
                _candidate(),
                ("tested", "confirmed"),
                "tested->confirmed",
            ),
            _law_scenario(
                "lf-weak-proposal",
                _candidate(
                    status="proposed",
                    evidenceBasis=[_evidence("obs-001", "observation", "weak")],
                ),
                ("proposed", "tested"),
                "blocked:proposed",
                expectedHardGates=["min-evidence-count", "transition-requirement"],
            ),
        ],
    }
