"""Time helpers.

Expiry decisions are always made against an explicit ``as_of`` instant so
that the same stored ``expires_at`` yields the same answer on any replica.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a stored datetime to an aware UTC value (naive means UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_as_of(as_of: datetime | None) -> datetime:
    """Return the command's ``as_of`` instant, or the current time."""
    return as_utc(as_of) if as_of is not None else utcnow()
