"""
UTC timestamp utilities (stdlib-only).

Stores compare instants as text, so every instant is written in one
fixed-width form: UTC, microsecond precision, explicit ``+00:00`` offset.
Lexicographic order of the encoded strings then equals time order.

Tags:
    timestamps, utc, datetime, serialization, cronlease
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to fixed-width UTC ISO 8601 string."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if s is None:
        return None
    return ensure_utc(datetime.fromisoformat(s))
