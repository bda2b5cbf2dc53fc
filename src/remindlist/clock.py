"""Time source shared by the entity, storage layer and manager.

Reminders use naive local datetimes. Everything that needs "now" goes through
this module so tests can pin it with ``monkeypatch.setattr(clock, "now", ...)``.
"""

from datetime import datetime, timezone


def now() -> datetime:
    """Current local date and time without tzinfo."""
    return datetime.now()


def utc_now() -> datetime:
    """Current instant in UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


def to_naive_local(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
