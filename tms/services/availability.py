"""Single-executive free/busy check."""

from __future__ import annotations

from datetime import datetime

from tms.domain.errors import InvalidInput, NotFound
from tms.domain.models import AvailabilityResult
from tms.repos.memory import ExecutiveRepository, MeetingRepository
from tms.services.conflicts import build_conflict_report
from tms.services.overlap import require_interval


def check_availability(
    executive_repo: ExecutiveRepository,
    meeting_repo: MeetingRepository,
    start: datetime | None,
    end: datetime | None,
    executive_id: str | None = None,
    email: str | None = None,
) -> AvailabilityResult:
    """Decide whether one executive is free for ``[start, end)``.

    Consults the same tasks-and-meetings union the meeting-creation conflict
    report uses, so both checks always agree.
    """
    if not executive_id and not email:
        raise InvalidInput("executive id or email is required")
    interval = require_interval(start, end)

    executive = (
        executive_repo.get(executive_id) if executive_id else executive_repo.get_by_email(email)
    )
    if executive is None:
        raise NotFound("Executive not found")

    report = build_conflict_report([executive], interval, meeting_repo)
    conflicts = [item for entry in report for item in entry.conflicts]
    return AvailabilityResult(free=not conflicts, conflicts=conflicts)
