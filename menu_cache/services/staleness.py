from __future__ import annotations

from datetime import datetime, timezone

from menu_cache.exceptions import MenuValidationError

SECONDS_PER_HOUR = 3600.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def age_hours(last_scraped: datetime | None, now: datetime | None = None) -> float | None:
    if last_scraped is None:
        return None
    current = ensure_aware(now or utcnow())
    return (current - ensure_aware(last_scraped)).total_seconds() / SECONDS_PER_HOUR


def is_stale(last_scraped: datetime | None, threshold_hours: float, now: datetime | None = None) -> bool:
    """Never-fetched data is always stale; otherwise stale once older than the threshold."""
    if threshold_hours < 0:
        raise MenuValidationError("Staleness threshold must not be negative")
    age = age_hours(last_scraped, now)
    if age is None:
        return True
    return age > threshold_hours


def describe_age(last_scraped: datetime | None, now: datetime | None = None) -> str:
    age = age_hours(last_scraped, now)
    if age is None:
        return "never"
    if age < 1:
        minutes = max(0, round(age * 60))
        return f"{minutes} minutes"
    return f"{round(age)} hours"
