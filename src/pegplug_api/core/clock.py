"""UTC time helpers shared by the reward domain."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day(value: datetime) -> date:
    return ensure_aware(value).date()


def same_utc_day(left: datetime, right: datetime) -> bool:
    return utc_day(left) == utc_day(right)


__all__ = ["ensure_aware", "same_utc_day", "utc_day", "utcnow"]
