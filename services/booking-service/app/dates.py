from datetime import date
from dateutil import parser

from .errors import ValidationError


def parse_day(value) -> date:
    """Parse a ``YYYY-MM-DD`` day key. Anything carrying a time or zone is rejected."""
    if not isinstance(value, str):
        raise ValidationError(f"Day key must be a string, got {type(value).__name__}", value=repr(value))
    try:
        parsed = parser.isoparse(value)
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid day key: {value}", value=value)

    day = parsed.date()
    if day.isoformat() != value:
        raise ValidationError(f"Day key must be YYYY-MM-DD without time component: {value}", value=value)
    return day


def normalize_days(values, today: date | None = None) -> list[str]:
    """
    Validate a collection of day keys and return them unique and sorted.
    When ``today`` is given, days before it are rejected.
    """
    if values is None or isinstance(values, str):
        raise ValidationError("Dates must be a list of day keys")

    keys = list(values)
    if not keys:
        raise ValidationError("At least one date is required")

    days = {parse_day(v) for v in keys}

    if today is not None:
        past = sorted(d.isoformat() for d in days if d < today)
        if past:
            raise ValidationError("Dates in the past are not allowed", dates=past)

    return sorted(d.isoformat() for d in days)
