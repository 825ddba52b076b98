"""Deterministic governance evaluation engine."""

from .canon import canonical_json, compute_input_hash
from .catalog import (
    METHOD_CATALOG,
    POLICY_CATALOG,
    DataRegime,
    EligibilityResult,
    NoiseLevel,
    check_eligibility,
)
from .causal_method_selection import SelectionOutput, run_causal_method_evaluation, select_method
from .config import DEFAULT_CONFIG, GovernanceConfig
from .engine import GovernanceEngine
from .envelope import (
    EXIT_HARD_GATE,
    EXIT_INVALID_INPUT,
    EXIT_OK,
    EXIT_RUNTIME,
    GovernanceMode,
    GovernanceResultEnvelope,
    GovernanceStream,
    exit_code_for,
)
from .errors import CatalogError, GovernanceInputError, OverrideError, ScenarioPackError
from .gates import GateResult
from .law_falsification import LawEvaluationResult, run_law_falsification_evaluation
from .lifecycle import (
    LawCandidate,
    LawLifecycleState,
    apply_evaluation,
    evaluate_transition,
    is_valid_transition,
)
from .overrides import Override, is_gate_overridden, parse_overrides
from .policy_evaluation import PolicyDecision, run_policy_evaluation
from .prng import SeededGenerator, new_generator
from .promotion import build_promotion_record, verify_determinism
from .uncertainty_calibration import ConfidenceReport, run_uncertainty_calibration

__all__: list[str] = [
    "canonical_json",
    "compute_input_hash",
    "METHOD_CATALOG",
    "POLICY_CATALOG",
    "DataRegime",
    "EligibilityResult",
    "NoiseLevel",
    "check_eligibility",
    "SelectionOutput",
    "run_causal_method_evaluation",
    "select_method",
    "DEFAULT_CONFIG",
    "GovernanceConfig",
    "GovernanceEngine",
    "EXIT_HARD_GATE",
    "EXIT_INVALID_INPUT",
    "EXIT_OK",
    "EXIT_RUNTIME",
    "GovernanceMode",
    "GovernanceResultEnvelope",
    "GovernanceStream",
    "exit_code_for",
    "CatalogError",
    "GovernanceInputError",
    "OverrideError",
    "ScenarioPackError",
    "GateResult",
    "LawEvaluationResult",
    "run_law_falsification_evaluation",
    "LawCandidate",
    "LawLifecycleState",
    "apply_evaluation",
    "evaluate_transition",
    "is_valid_transition",
    "Override",
    "is_gate_overridden",
    "parse_overrides",
    "PolicyDecision",
    "run_policy_evaluation",
    "SeededGenerator",
    "new_generator",
    "build_promotion_record",
    "verify_determinism",
    "ConfidenceReport",
    "run_uncertainty_calibration",
]
