import re
from datetime import date, datetime, timedelta

from dateutil import parser as dateutil_parser
from dateutil.parser import ParserError

from habitstreak.core.errors import ValidationError

from . import clock

__all__ = [
    "date_key",
    "is_date_key",
    "normalize_date_key",
    "parse_date_key",
    "parse_when",
    "require_date_key",
    "shift",
    "today_key",
]

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_WEEKDAYS = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}
_WEEKDAY_ALIASES = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}


def date_key(day: date | datetime) -> str:
    """Local calendar day as YYYY-MM-DD. Time of day and tzinfo are dropped."""
    if isinstance(day, datetime):
        day = day.date()
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def today_key() -> str:
    return date_key(clock.today())


def is_date_key(value: object) -> bool:
    if not isinstance(value, str) or not DATE_KEY_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_key(key: str) -> date:
    if not is_date_key(key):
        raise ValidationError(f"invalid date key '{key}' (expected YYYY-MM-DD)")
    return date.fromisoformat(key)


def require_date_key(key: str) -> str:
    parse_date_key(key)
    return key


def shift(key: str, days: int) -> str:
    return date_key(parse_date_key(key) + timedelta(days=days))


def normalize_date_key(value: object, default: str | None = None) -> str | None:
    """Coerce a stored key to YYYY-MM-DD.

    Strict keys pass through; anything else dateutil can read is reduced to its
    calendar day. Unreadable values fall back to `default`.
    """
    if not isinstance(value, str):
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    if is_date_key(trimmed):
        return trimmed
    try:
        return date_key(dateutil_parser.parse(trimmed))
    except (ParserError, ValueError, OverflowError):
        return default


def parse_when(when: str | None) -> str:
    """Parses a day reference ('today', 'yesterday', 'mon', 'YYYY-MM-DD') into a date key."""
    today = clock.today()
    if when is None:
        return date_key(today)
    when_lower = when.strip().lower()

    if when_lower == "today":
        return date_key(today)
    if when_lower == "yesterday":
        return date_key(today - timedelta(days=1))
    if when_lower == "tomorrow":
        return date_key(today + timedelta(days=1))
    when_lower = _WEEKDAY_ALIASES.get(when_lower, when_lower)
    if when_lower in _WEEKDAYS:
        days_back = (today.weekday() - _WEEKDAYS[when_lower]) % 7
        return date_key(today - timedelta(days=days_back))
    try:
        parsed = dateutil_parser.parse(when, default=datetime(today.year, today.month, today.day))
    except (ParserError, ValueError, OverflowError):
        raise ValidationError(f"cannot read date '{when}'") from None
    return date_key(parsed)
