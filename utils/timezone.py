"""UTC-everywhere time handling."""

from datetime import date, datetime, time, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Naive datetimes are assumed to already be UTC; clients of the mobile
    app send bare dates and local-less timestamps in filters.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 date or datetime string to a UTC datetime.

    A bare date ("2024-03-01") becomes midnight UTC of that day.

    Raises ValueError if the string is not ISO 8601.
    """
    value = iso_string.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        parsed = date.fromisoformat(value)
        return datetime.combine(parsed, time.min, tzinfo=timezone.utc)


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant of dt's UTC day."""
    return to_utc(dt).replace(hour=23, minute=59, second=59, microsecond=999999)
