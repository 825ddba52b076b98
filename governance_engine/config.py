"""
Governance Engine Configuration

Thresholds and tunables shared by the evaluation streams. The defaults are
the reference constants; a non-default configuration is part of the
determinism contract (identical inputHash + seed + mode + config gives
identical decisions).
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict
import os

import yaml

from governance_engine.canon import compute_input_hash


@dataclass(frozen=True)
class GovernanceConfig:
    """Configuration for governance evaluation runs."""

    # Uncertainty calibration
    calibration_bins: int = 10
    ece_threshold: float = 0.10
    mce_threshold: float = 0.25
    brier_threshold: float = 0.15

    # Law lifecycle
    confidence_floor: float = 0.3
    min_evidence_count: int = 2
    min_replications: int = 2

    # Seeded selection
    fallback_score: float = 0.1
    score_noise_span: float = 0.3

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def config_hash(self) -> str:
        """Canonical SHA-256 of this configuration."""
        return compute_input_hash(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown governance config keys: {', '.join(unknown)}")
        config = cls(**data)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str) -> "GovernanceConfig":
        """Load configuration from a YAML file."""
        with open(filepath, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Error parsing YAML: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"Governance config must be a mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "GovernanceConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            GOVERNANCE_CALIBRATION_BINS (default 10)
            GOVERNANCE_ECE_THRESHOLD (default 0.10)
            GOVERNANCE_MCE_THRESHOLD (default 0.25)
            GOVERNANCE_BRIER_THRESHOLD (default 0.15)
            GOVERNANCE_CONFIDENCE_FLOOR (default 0.3)
            GOVERNANCE_MIN_EVIDENCE_COUNT (default 2)
            GOVERNANCE_MIN_REPLICATIONS (default 2)
            GOVERNANCE_FALLBACK_SCORE (default 0.1)
            GOVERNANCE_SCORE_NOISE_SPAN (default 0.3)
        """
        config = cls(
            calibration_bins=int(os.getenv("GOVERNANCE_CALIBRATION_BINS", "10")),
            ece_threshold=float(os.getenv("GOVERNANCE_ECE_THRESHOLD", "0.10")),
            mce_threshold=float(os.getenv("GOVERNANCE_MCE_THRESHOLD", "0.25")),
            brier_threshold=float(os.getenv("GOVERNANCE_BRIER_THRESHOLD", "0.15")),
            confidence_floor=float(os.getenv("GOVERNANCE_CONFIDENCE_FLOOR", "0.3")),
            min_evidence_count=int(os.getenv("GOVERNANCE_MIN_EVIDENCE_COUNT", "2")),
            min_replications=int(os.getenv("GOVERNANCE_MIN_REPLICATIONS", "2")),
            fallback_score=float(os.getenv("GOVERNANCE_FALLBACK_SCORE", "0.1")),
            score_noise_span=float(os.getenv("GOVERNANCE_SCORE_NOISE_SPAN", "0.3")),
        )
        config.validate()
        return config

    def _type_errors(self) -> Dict[str, str]:
        """Fields whose value does not match the declared int/float type."""
        errors = {}
        for f in fields(self):
            value = getattr(self, f.name)
            allowed = (int, float) if f.type is float else (f.type,)
            if isinstance(value, bool) or not isinstance(value, allowed):
                errors[f.name] = (
                    f"{f.name} must be {f.type.__name__}, got {type(value).__name__} {value!r}"
                )
        return errors

    def validate(self) -> None:
        """Validate configuration parameters."""
        type_errors = self._type_errors()
        errors = list(type_errors.values())

        def checked(name: str) -> bool:
            return name not in type_errors

        if checked("calibration_bins") and self.calibration_bins < 1:
            errors.append(f"calibration_bins must be ≥1, got {self.calibration_bins}")

        for name in ("ece_threshold", "mce_threshold", "brier_threshold", "confidence_floor",
                     "fallback_score", "score_noise_span"):
            value = getattr(self, name)
            if checked(name) and not (0 <= value <= 1):
                errors.append(f"{name} must be in [0, 1], got {value}")

        if checked("min_evidence_count") and self.min_evidence_count < 0:
            errors.append(f"min_evidence_count must be ≥0, got {self.min_evidence_count}")

        if checked("min_replications") and self.min_replications < 1:
            errors.append(f"min_replications must be ≥1, got {self.min_replications}")

        if errors:
            raise ValueError("Invalid governance configuration:\n" + "\n".join(f"  - {e}" for e in errors))


DEFAULT_CONFIG = GovernanceConfig()
