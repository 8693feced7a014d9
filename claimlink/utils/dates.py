"""Date helpers shared by the matching and draft claim services.

Timestamps coming back from SQLite are naive while the ones built in code
are aware; everything is normalised to aware UTC before comparing.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

DateLike = Union[datetime, date, str]


def ensure_utc(value: Optional[DateLike]) -> Optional[datetime]:
    """Normalise a date, datetime or ISO string to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_datetime(value)
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time.min)

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(raw: str) -> datetime:
    """Parse an ISO-8601 date or datetime string.

    Accepts a trailing ``Z`` for UTC.

    Raises:
        ValueError: If the string is empty or not ISO-8601
    """
    text = (raw or "").strip()
    if not text:
        raise ValueError("empty date string")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_between(first: DateLike, second: DateLike) -> int:
    """Whole days from ``first`` to ``second``, floored before taking the magnitude.

    A second instant half a day before the first is one day away, half a day
    after it is zero days away.
    """
    delta = ensure_utc(second) - ensure_utc(first)
    return abs(math.floor(delta / timedelta(days=1)))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
