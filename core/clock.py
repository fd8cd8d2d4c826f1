"""Clock helpers shared by every time-aware component."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]

SECONDS_PER_DAY = 86400.0


def local_now() -> datetime:
    """Return an aware datetime in the host's local timezone."""
    return datetime.now().astimezone()


def utc_now() -> datetime:
    """Return UTC datetime for default timestamps."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    delta = ensure_aware(later) - ensure_aware(earlier)
    return delta.total_seconds() / SECONDS_PER_DAY


def sunday_first_weekday(value: datetime) -> int:
    """Day of week with Sunday as 0."""
    return (value.weekday() + 1) % 7
