"""Shared utilities used across the booking engine."""

from datetime import date, datetime, timezone
from typing import Any, Optional


def coerce_int(value: Any) -> Optional[int]:
    """Coerce a loosely-typed document value to an int, or None.

    Examples:
        >>> coerce_int(90)
        90
        >>> coerce_int(90.7)
        90
        >>> coerce_int("45")
        45
        >>> coerce_int("soon") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Read a timestamp stored as a datetime, ISO-8601 string or epoch seconds."""
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str):
        try:
            return ensure_aware(datetime.fromisoformat(value))
        except ValueError:
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_date(value: Any, tz: Any = timezone.utc) -> Optional[date]:
    """Read a calendar date; datetimes are projected into ``tz`` first."""
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone(tz).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None
