"""Half-open interval overlap math shared by every conflict check."""

from __future__ import annotations

from datetime import datetime

from tms.domain.errors import InvalidInput
from tms.domain.models import TimeInterval


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Return True when ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Exact boundary touches (``a_end == b_start``) are NOT overlaps.
    """
    return a_start < b_end and b_start < a_end


def require_interval(
    start: datetime | None, end: datetime | None, what: str = "start_time and end_time"
) -> TimeInterval:
    """Validate a caller-supplied interval at the boundary."""
    if start is None or end is None:
        raise InvalidInput(f"{what} are required")
    if end <= start:
        raise InvalidInput("end_time must be after start_time")
    return TimeInterval(start=start, end=end)
