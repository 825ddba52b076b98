"""
Method/Policy Catalog & Eligibility

Static descriptors of the selectable alternatives (causal inference methods
and experiment-selection policy families), the data-regime model they are
checked against, and the seeded ranking shared by both selection streams.

Catalog entries are frozen and loaded once at import. Eligibility is a pure
function of (entry, regime) and never depends on the seed; only the ranking
of the eligible set consumes generator draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from governance_engine.errors import CatalogError, ScenarioPackError
from governance_engine.prng import SeededGenerator

logger = logging.getLogger(__name__)


class NoiseLevel(str, Enum):
    """Estimated noise level of a data regime."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Explicit ordinal used for tolerance comparisons
NOISE_ORDER: Dict[NoiseLevel, int] = {
    NoiseLevel.LOW: 1,
    NoiseLevel.MEDIUM: 2,
    NoiseLevel.HIGH: 3,
}


def parse_noise_level(value: Any) -> NoiseLevel:
    """Parse a noise level string, raising ScenarioPackError if unknown."""
    try:
        return NoiseLevel(value)
    except ValueError:
        raise ScenarioPackError(
            f"Unknown noise level {value!r}; expected one of "
            f"{[n.value for n in NoiseLevel]}"
        ) from None


@dataclass(frozen=True)
class DataRegime:
    """
    Characteristics of an observational dataset.

    ``sample_size`` and ``noise_level`` may be None only for policy-stream
    inputs that do not declare them; the matching eligibility rule is then
    skipped.
    """

    sample_size: Optional[int]
    dimensionality: int = 0
    has_interventions: bool = False
    has_temporal_order: bool = False
    known_confounders: Tuple[str, ...] = ()
    noise_level: Optional[NoiseLevel] = NoiseLevel.LOW
    observed_conditions: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataRegime":
        """Build a regime from its camelCase JSON form."""
        return cls(
            sample_size=int(data["sampleSize"]),
            dimensionality=int(data.get("dimensionality", 0)),
            has_interventions=bool(data.get("hasInterventions", False)),
            has_temporal_order=bool(data.get("hasTemporalOrder", False)),
            known_confounders=tuple(data.get("knownConfounders", ())),
            noise_level=parse_noise_level(data["noiseLevel"]),
            observed_conditions=tuple(data.get("observedConditions", ())),
        )

    @classmethod
    def from_policy_input(cls, data: Mapping[str, Any]) -> "DataRegime":
        """
        Build a regime from a policy scenario's free-form ``input`` payload.

        Recognized keys: ``sampleBudget``, ``dimensionality``, ``noiseLevel``,
        ``hasInterventions``, ``hasTemporalOrder``, ``observedConditions``.
        """
        budget = data.get("sampleBudget")
        noise = data.get("noiseLevel")
        return cls(
            sample_size=int(budget) if budget is not None else None,
            dimensionality=int(data.get("dimensionality", 0)),
            has_interventions=bool(data.get("hasInterventions", False)),
            has_temporal_order=bool(data.get("hasTemporalOrder", False)),
            noise_level=parse_noise_level(noise) if noise is not None else None,
            observed_conditions=tuple(data.get("observedConditions", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON form."""
        return {
            "sampleSize": self.sample_size,
            "dimensionality": self.dimensionality,
            "hasInterventions": self.has_interventions,
            "hasTemporalOrder": self.has_temporal_order,
            "knownConfounders": list(self.known_confounders),
            "noiseLevel": self.noise_level.value if self.noise_level else None,
            "observedConditions": list(self.observed_conditions),
        }


@dataclass(frozen=True)
class CatalogEntry:
    """Static preconditions shared by methods and policy families."""

    id: str
    display_name: str
    description: str
    min_sample_size: int
    requires_interventions: bool
    requires_temporal_order: bool
    max_noise_level: NoiseLevel
    disqualifiers: Tuple[str, ...] = ()
    base_weight: float = 0.5


@dataclass(frozen=True)
class MethodCard(CatalogEntry):
    """Causal inference method descriptor."""

    confounder_sensitive: bool = False


@dataclass(frozen=True)
class PolicyFamilyDescriptor(CatalogEntry):
    """Experiment-selection policy family descriptor."""

    enabled: bool = True


@dataclass
class EligibilityResult:
    """Eligibility of one catalog entry against one data regime."""

    entry_id: str
    eligible: bool
    disqualify_reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self, id_key: str = "methodId") -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            id_key: self.entry_id,
            "eligible": self.eligible,
            "disqualifyReasons": list(self.disqualify_reasons),
            "warnings": list(self.warnings),
        }


@dataclass
class RankedSelection:
    """Outcome of ranking the eligible part of a catalog."""

    selected_id: str
    score: float
    ranked: List[Tuple[str, float]]
    fallback: bool = False

    @property
    def ranked_ids(self) -> List[str]:
        return [entry_id for entry_id, _ in self.ranked]

    @property
    def scores(self) -> Dict[str, float]:
        return {entry_id: score for entry_id, score in self.ranked}


# =============================================================================
# CATALOG DATA
# =============================================================================

METHOD_CATALOG: Tuple[MethodCard, ...] = (
    MethodCard(
        id="pc_algorithm",
        display_name="PC Algorithm",
        description="Constraint-based structure learning via conditional independence tests",
        min_sample_size=100,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        disqualifiers=("high-dimensionality-without-sparsity",),
        base_weight=0.60,
    ),
    MethodCard(
        id="fci",
        display_name="FCI (Fast Causal Inference)",
        description="Handles latent confounders via partial ancestral graphs",
        min_sample_size=200,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        base_weight=0.62,
    ),
    MethodCard(
        id="ges",
        display_name="GES (Greedy Equivalence Search)",
        description="Score-based structure learning with BIC scoring",
        min_sample_size=50,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.HIGH,
        base_weight=0.55,
    ),
    MethodCard(
        id="lingam",
        display_name="LiNGAM",
        description="Linear non-Gaussian acyclic model for causal discovery",
        min_sample_size=100,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.LOW,
        disqualifiers=("gaussian-data",),
        base_weight=0.58,
    ),
    MethodCard(
        id="notears",
        display_name="NOTEARS",
        description="Continuous optimization for DAG structure learning",
        min_sample_size=200,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        disqualifiers=("very-small-sample",),
        base_weight=0.57,
    ),
    MethodCard(
        id="granger",
        display_name="Granger Causality",
        description="Time-series causal inference via predictive information",
        min_sample_size=30,
        requires_interventions=False,
        requires_temporal_order=True,
        max_noise_level=NoiseLevel.HIGH,
        disqualifiers=("no-temporal-data",),
        base_weight=0.64,
    ),
    MethodCard(
        id="do_calculus",
        display_name="Do-Calculus",
        description="Interventional reasoning using Judea Pearl's do-calculus",
        min_sample_size=0,
        requires_interventions=True,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.HIGH,
        disqualifiers=("no-interventional-data",),
        base_weight=0.70,
    ),
    MethodCard(
        id="scm_parametric",
        display_name="Parametric SCM",
        description="Structural Causal Model with parametric assumptions",
        min_sample_size=50,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        base_weight=0.59,
    ),
    MethodCard(
        id="propensity_score",
        display_name="Propensity Score Matching",
        description="Balances confounders via propensity score estimation",
        min_sample_size=100,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        disqualifiers=("unmeasured-confounders",),
        base_weight=0.61,
        confounder_sensitive=True,
    ),
    MethodCard(
        id="instrumental_variable",
        display_name="Instrumental Variable",
        description="Uses instruments to identify causal effects under confounding",
        min_sample_size=200,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.HIGH,
        disqualifiers=("no-valid-instruments",),
        base_weight=0.63,
    ),
)

# Least-restrictive method, selected when nothing is eligible
FALLBACK_METHOD_ID = "ges"

POLICY_CATALOG: Tuple[PolicyFamilyDescriptor, ...] = (
    PolicyFamilyDescriptor(
        id="eig",
        display_name="Expected Information Gain",
        description="Selects the experiment maximizing expected information gain",
        min_sample_size=20,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        base_weight=0.70,
    ),
    PolicyFamilyDescriptor(
        id="bo_ucb",
        display_name="Bayesian Optimization (UCB)",
        description="Upper-confidence-bound acquisition over a Gaussian process surrogate",
        min_sample_size=10,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.HIGH,
        base_weight=0.65,
    ),
    PolicyFamilyDescriptor(
        id="bo_ts",
        display_name="Bayesian Optimization (Thompson)",
        description="Thompson sampling over a Gaussian process surrogate",
        min_sample_size=5,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.HIGH,
        base_weight=0.60,
    ),
    PolicyFamilyDescriptor(
        id="efe",
        display_name="Expected Free Energy",
        description="Active-inference policy minimizing expected free energy",
        min_sample_size=30,
        requires_interventions=False,
        requires_temporal_order=False,
        max_noise_level=NoiseLevel.MEDIUM,
        base_weight=0.55,
    ),
)

FALLBACK_POLICY_ID = "bo_ts"


def catalog_ids(catalog: Sequence[CatalogEntry]) -> List[str]:
    return [entry.id for entry in catalog]


def least_restrictive(catalog: Sequence[CatalogEntry]) -> CatalogEntry:
    """
    Pick the entry with the weakest preconditions.

    Ordered by: no intervention requirement, no temporal requirement,
    highest noise tolerance, smallest minimum sample size; ties keep
    catalog order.
    """
    if not catalog:
        raise CatalogError("Catalog is empty; nothing can be selected")
    return min(
        catalog,
        key=lambda e: (
            e.requires_interventions,
            e.requires_temporal_order,
            -NOISE_ORDER[e.max_noise_level],
            e.min_sample_size,
        ),
    )


# =============================================================================
# ELIGIBILITY
# =============================================================================

def check_eligibility(entry: CatalogEntry, regime: DataRegime) -> EligibilityResult:
    """
    Check whether a catalog entry is eligible for a data regime.

    Every rule is evaluated (no short-circuit) so the caller sees all
    disqualifying reasons at once. Rules, in order:
      1. sample size below the entry minimum
      2. required interventional data missing
      3. required temporal ordering missing
      4. regime noise level above the entry tolerance
      5. a named disqualifier of the entry observed in the regime
    Soft warnings never affect the eligible flag.

    Args:
        entry: Catalog entry (method card or policy family)
        regime: Data regime of the scenario

    Returns:
        EligibilityResult for this entry
    """
    reasons: List[str] = []
    warnings: List[str] = []

    if isinstance(entry, PolicyFamilyDescriptor) and not entry.enabled:
        reasons.append(f"Policy family '{entry.id}' is disabled")

    if regime.sample_size is not None and regime.sample_size < entry.min_sample_size:
        reasons.append(f"Sample size {regime.sample_size} < required {entry.min_sample_size}")

    if entry.requires_interventions and not regime.has_interventions:
        reasons.append("Method requires interventional data but none available")

    if entry.requires_temporal_order and not regime.has_temporal_order:
        reasons.append("Method requires temporal ordering but data is cross-sectional")

    if regime.noise_level is not None:
        if NOISE_ORDER[regime.noise_level] > NOISE_ORDER[entry.max_noise_level]:
            reasons.append(
                f"Noise level '{regime.noise_level.value}' exceeds method tolerance "
                f"'{entry.max_noise_level.value}'"
            )

    for condition in entry.disqualifiers:
        if condition in regime.observed_conditions:
            reasons.append(f"Disqualifying condition observed: {condition}")

    if isinstance(entry, MethodCard) and entry.confounder_sensitive and regime.known_confounders:
        warnings.append(
            f"{entry.display_name} may be biased by known confounders: "
            f"{', '.join(regime.known_confounders)}"
        )

    return EligibilityResult(
        entry_id=entry.id,
        eligible=not reasons,
        disqualify_reasons=reasons,
        warnings=warnings,
    )


# =============================================================================
# SEEDED RANKING
# =============================================================================

def seeded_score(base_weight: float, draw: float, noise_span: float) -> float:
    """Combine a base weight with a centered draw, clamped to [0, 1]."""
    return max(0.0, min(1.0, base_weight + (draw - 0.5) * noise_span))


def rank_eligible(
    catalog: Sequence[CatalogEntry],
    eligibility: Sequence[EligibilityResult],
    rng: SeededGenerator,
    fallback_id: str,
    fallback_score: float,
    noise_span: float,
) -> RankedSelection:
    """
    Rank the eligible entries of a catalog by seeded score.

    Draws exactly one generator value per eligible entry, in catalog order.
    Ranking is descending by score; ties keep catalog declaration order.
    When nothing is eligible the fallback entry is returned with the fixed
    fallback score and no draw is consumed.

    Args:
        catalog: Catalog entries in declaration order
        eligibility: Eligibility results aligned with ``catalog``
        rng: The run's shared generator
        fallback_id: Least-restrictive default entry id
        fallback_score: Fixed minimal score for the fallback
        noise_span: Width of the seeded noise band around base weights

    Returns:
        RankedSelection (never raises for "no eligible entry")

    Raises:
        CatalogError: If the catalog is empty or the fallback is not in it.
    """
    if not catalog:
        raise CatalogError("Catalog is empty; nothing can be selected")
    if fallback_id not in catalog_ids(catalog):
        raise CatalogError(f"Fallback entry '{fallback_id}' is not in the catalog")
    if len(eligibility) != len(catalog):
        raise CatalogError(
            f"Eligibility results ({len(eligibility)}) do not cover the catalog ({len(catalog)})"
        )

    scored: List[Tuple[str, float]] = []
    for entry, result in zip(catalog, eligibility):
        if result.eligible:
            scored.append((entry.id, seeded_score(entry.base_weight, rng.next(), noise_span)))

    if not scored:
        logger.warning(f"No eligible catalog entry; falling back to '{fallback_id}'")
        return RankedSelection(
            selected_id=fallback_id,
            score=fallback_score,
            ranked=[(fallback_id, fallback_score)],
            fallback=True,
        )

    # sorted() is stable, so ties keep catalog order
    ranked = sorted(scored, key=lambda item: -item[1])
    selected_id, score = ranked[0]
    logger.debug(f"Ranked {len(ranked)} eligible entries; top '{selected_id}' at {score:.4f}")
    return RankedSelection(selected_id=selected_id, score=score, ranked=ranked)


__all__ = [
    "NoiseLevel",
    "NOISE_ORDER",
    "parse_noise_level",
    "DataRegime",
    "CatalogEntry",
    "MethodCard",
    "PolicyFamilyDescriptor",
    "EligibilityResult",
    "RankedSelection",
    "METHOD_CATALOG",
    "POLICY_CATALOG",
    "FALLBACK_METHOD_ID",
    "FALLBACK_POLICY_ID",
    "catalog_ids",
    "least_restrictive",
    "check_eligibility",
    "seeded_score",
    "rank_eligible",
]
