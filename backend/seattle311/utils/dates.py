"""
Timestamp helpers.

All datetimes handled by the application are naive and expressed in UTC so
that upstream floating timestamps, offset-aware timestamps and locally
generated ones can be compared safely.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an upstream timestamp.

    Accepts ``datetime``/``date`` objects and ISO 8601 strings, including the
    Socrata floating format (``2025-03-04T10:15:00.000``) and a trailing ``Z``.

    Raises:
        ValueError: the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    return parsed


def whole_days_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Floor of the day difference; 0 when either side is missing."""
    if start is None or end is None:
        return 0
    return (end - start) // ONE_DAY


def year_end(year: int) -> datetime:
    return datetime(year, 12, 31, 23, 59, 59, 999000)
