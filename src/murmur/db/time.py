"""Timestamps for rows and the views built from them."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive timestamp.

    SQLite hands ``DateTime(timezone=True)`` columns back without an offset;
    every value written here is UTC, so the offset is restored on read.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
