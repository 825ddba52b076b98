"""
Time-bounded gate overrides.

An override is active for a gate evaluation iff its ``gate`` matches the
gate name and ``now < expiresAt`` (strict). Expired or mismatched
overrides are inert. ``now`` is always an explicit argument here; callers
decide where the clock comes from.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from governance_engine.errors import OverrideError

REQUIRED_OVERRIDE_FIELDS = ("id", "gate", "ticket", "reason", "expiresAt")


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) to aware UTC."""
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def isoformat_z(moment: datetime) -> str:
    """Render an aware datetime as ISO-8601 with a ``Z`` suffix."""
    return as_utc(moment).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Override:
    """Ticket-referenced exception downgrading one named hard gate."""

    id: str
    gate: str
    ticket: str
    reason: str
    expires_at: datetime

    def is_active(self, gate: str, now: datetime) -> bool:
        """True iff this override targets ``gate`` and has not expired."""
        return self.gate == gate and as_utc(now) < self.expires_at

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Override":
        missing = [key for key in REQUIRED_OVERRIDE_FIELDS if key not in data]
        if missing:
            raise OverrideError(f"Override is missing fields: {', '.join(missing)}")
        expires = data["expiresAt"]
        if isinstance(expires, datetime):
            expires_at = as_utc(expires)
        else:
            try:
                expires_at = parse_timestamp(str(expires))
            except ValueError as exc:
                raise OverrideError(
                    f"Override '{data['id']}' has unparseable expiresAt {expires!r}"
                ) from exc
        return cls(
            id=str(data["id"]),
            gate=str(data["gate"]),
            ticket=str(data["ticket"]),
            reason=str(data["reason"]),
            expires_at=expires_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gate": self.gate,
            "ticket": self.ticket,
            "reason": self.reason,
            "expiresAt": isoformat_z(self.expires_at),
        }


OverrideLike = Union[Override, Mapping[str, Any]]


def parse_overrides(
    raw: Optional[Union[Iterable[OverrideLike], Mapping[str, Any]]],
) -> Tuple[Override, ...]:
    """
    Normalize an override list.

    Accepts None, a sequence of Override objects or dicts, or an override
    file body of the form ``{"overrides": [...]}``.
    """
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        if "overrides" not in raw:
            raise OverrideError("Override mapping must carry an 'overrides' list")
        raw = raw["overrides"]
    parsed: List[Override] = []
    for item in raw:
        if isinstance(item, Override):
            parsed.append(item)
        elif isinstance(item, Mapping):
            parsed.append(Override.from_dict(item))
        else:
            raise OverrideError(f"Override entries must be mappings, got {type(item).__name__}")
    return tuple(parsed)


def active_override(gate: str, overrides: Sequence[Override], now: datetime) -> Optional[Override]:
    """Return the first active override for ``gate``, or None."""
    for override in overrides:
        if override.is_active(gate, now):
            return override
    return None


def is_gate_overridden(gate: str, overrides: Sequence[Override], now: datetime) -> bool:
    """True iff some override targets ``gate`` and ``now < expiresAt``."""
    return active_override(gate, overrides, now) is not None


__all__ = [
    "Override",
    "OverrideLike",
    "as_utc",
    "parse_timestamp",
    "isoformat_z",
    "parse_overrides",
    "active_override",
    "is_gate_overridden",
]
