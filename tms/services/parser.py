"""Service for turning a human-entered day into a UTC day window."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import dateparser

from tms.domain.errors import InvalidInput


def _parse_day(raw: str, now: datetime) -> datetime | None:
    """Parse a raw date string using dateparser, returning a UTC datetime."""
    settings = {
        "PREFER_DATES_FROM": "current_period",
        "RELATIVE_BASE": now.astimezone(timezone.utc).replace(tzinfo=None),
        "TIMEZONE": "UTC",
        "RETURN_AS_TIMEZONE_AWARE": False,
        "DATE_ORDER": "YMD",
    }
    result = dateparser.parse(raw, settings=settings)
    if result is None:
        return None
    return result.replace(tzinfo=timezone.utc)


def day_window(raw: str | None, now: datetime) -> tuple[datetime, datetime]:
    """Return the ``[midnight, next midnight)`` window for *raw*.

    Accepts ISO dates ("2025-11-09") as well as phrases such as "today" or
    "tomorrow"; a missing value means the day containing *now*.
    """
    if raw and raw.strip():
        parsed = _parse_day(raw.strip(), now)
        if parsed is None:
            raise InvalidInput(f"Could not understand date {raw!r}")
    else:
        parsed = now.astimezone(timezone.utc)
    start = parsed.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
