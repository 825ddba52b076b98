"""
Malformed-input errors for the governance engine.

Only malformed input raises. Gate failures, invalid lifecycle transitions,
disqualifiers and "no eligible candidate" are reported as data in the
result envelope and never surface as exceptions.
"""


class GovernanceInputError(ValueError):
    """Raised when the caller hands the engine input it cannot evaluate."""
    pass


class ScenarioPackError(GovernanceInputError):
    """Raised when a scenario pack is structurally invalid."""
    pass


class OverrideError(GovernanceInputError):
    """Raised when an override entry is missing fields or has a bad expiry."""
    pass


class CatalogError(GovernanceInputError):
    """Raised when a method/policy catalog is empty or inconsistent."""
    pass


__all__ = [
    "GovernanceInputError",
    "ScenarioPackError",
    "OverrideError",
    "CatalogError",
]
