"""
Seeded Deterministic Generator

A mulberry32 mixing generator over unsigned 32-bit arithmetic. It is not
cryptographic; what matters is that the same seed and call sequence gives
bit-identical draws on every platform and in every re-implementation.

Draw-order contract:
- One generator per evaluation run, never one per scenario.
- Scenarios are evaluated in pack array order.
- Within a scenario, one draw per eligible catalog entry, in catalog
  declaration order.

Reordering scenarios changes which draws each scenario consumes, so the
order above is part of the determinism contract of every stream that
draws (policy selection and causal method selection).
"""

from __future__ import annotations

from typing import List

_MASK32 = 0xFFFFFFFF
_GOLDEN_GAMMA = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """Low 32 bits of the product, as JavaScript's Math.imul."""
    return (a * b) & _MASK32


class SeededGenerator:
    """
    Deterministic pseudo-random sequence in [0, 1) from an integer seed.

    Example:
        >>> g1 = SeededGenerator(42)
        >>> g2 = SeededGenerator(42)
        >>> g1.next() == g2.next()
        True
    """

    def __init__(self, seed: int):
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise TypeError(f"seed must be an integer, got {type(seed).__name__}")
        self.seed = seed
        # Negative seeds wrap to their two's-complement 32-bit pattern.
        self._state = seed & _MASK32
        self.draws = 0

    def next_uint32(self) -> int:
        """Advance the state and return the next raw 32-bit output."""
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t = ((t + _imul(t ^ (t >> 7), t | 61)) & _MASK32) ^ t
        self.draws += 1
        return (t ^ (t >> 14)) & _MASK32

    def next(self) -> float:
        """Return the next float in [0, 1)."""
        return self.next_uint32() / _TWO_POW_32

    __call__ = next

    def take(self, count: int) -> List[float]:
        """Return the next ``count`` draws as a list."""
        return [self.next() for _ in range(count)]


def new_generator(seed: int) -> SeededGenerator:
    """Create a fresh generator for one evaluation run."""
    return SeededGenerator(seed)


__all__ = [
    "SeededGenerator",
    "new_generator",
]
