"""
Canonical Scenario Pack Hashing
===============================

Provides the deterministic fingerprint that joins a scenario pack to the
audit trail of every envelope evaluated from it.

Canonicalization rule (stable contract, do not change):
- Keys sorted lexicographically (by code point) at all nesting levels
- No whitespace between tokens (compact form)
- ASCII-safe encoding (non-ASCII escaped as \\uXXXX)
- Integers rendered without a decimal point; floats rendered with the
  shortest repr that round-trips (so ``1`` and ``1.0`` hash differently)
- NaN and +/-Infinity rejected (no JSON form)
- UTF-8 bytes of the result are digested with SHA-256, lowercase hex

The hash depends only on pack content. Seed, mode and wall-clock time
never enter it.

Usage:
    from governance_engine.canon import compute_input_hash

    input_hash = compute_input_hash(pack)
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from governance_engine.errors import ScenarioPackError


def canonical_json(data: Any) -> str:
    """
    Canonicalize JSON-compatible data for deterministic hashing.

    Args:
        data: Dicts with string keys, lists/tuples, strings, ints, floats,
            bools and None.

    Returns:
        Canonical JSON string

    Raises:
        ScenarioPackError: If the data holds non-finite floats, non-string
            keys or values with no JSON form.
    """
    try:
        return json.dumps(
            data,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise ScenarioPackError(f"Value has no canonical JSON form: {exc}") from exc


def canonical_bytes(data: Any) -> bytes:
    """Return the UTF-8 encoding of :func:`canonical_json`."""
    return canonical_json(data).encode("utf-8")


def compute_input_hash(pack: Any) -> str:
    """
    Compute the SHA-256 fingerprint of a scenario pack.

    Args:
        pack: Raw scenario pack mapping, exactly as supplied by the caller

    Returns:
        64-character hexadecimal hash string
    """
    return hashlib.sha256(canonical_bytes(pack)).hexdigest()


__all__ = [
    "canonical_json",
    "canonical_bytes",
    "compute_input_hash",
]
