"""Service for detecting scheduling conflicts across executives' calendars."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import TypeAdapter, ValidationError

from tms.domain.models import (
    ConflictItem,
    ConflictOverlap,
    Executive,
    Meeting,
    MeetingConflictItem,
    TaskConflictItem,
    TaskStatus,
    TimeInterval,
    UtcDatetime,
    normalize_email,
)
from tms.repos.memory import MeetingRepository
from tms.services.overlap import intervals_overlap

logger = logging.getLogger(__name__)

_TIMESTAMP = TypeAdapter(UtcDatetime)


def task_conflicts(executive: Executive, interval: TimeInterval) -> list[TaskConflictItem]:
    """Return the executive's live tasks that overlap *interval*."""
    return [
        TaskConflictItem(
            ref_id=task.id,
            title=task.title,
            start_time=task.start_time,
            end_time=task.end_time,
            notes=task.description,
            status=task.status,
        )
        for task in executive.tasks
        if task.status != TaskStatus.CANCELLED
        and intervals_overlap(interval.start, interval.end, task.start_time, task.end_time)
    ]


def meeting_conflicts(
    executive: Executive, candidates: Iterable[Meeting]
) -> list[MeetingConflictItem]:
    """Return the candidate meetings the executive attends or is invited to.

    *candidates* must already be restricted to active meetings overlapping the
    probe interval.
    """
    return [
        MeetingConflictItem(
            ref_id=meeting.id,
            title=meeting.title,
            start_time=meeting.start_time,
            end_time=meeting.end_time,
            notes=meeting.project or None,
            status=meeting.status,
        )
        for meeting in candidates
        if meeting.involves(executive.id, executive.email)
    ]


def build_conflict_report(
    executives: list[Executive],
    interval: TimeInterval,
    meeting_repo: MeetingRepository,
) -> list[ConflictOverlap]:
    """Aggregate every executive's colliding tasks and meetings.

    Executives with nothing in the way are left out, so an empty report means
    the whole group is free. Cancelled and completed meetings never count.
    """
    if not executives:
        return []

    candidates = meeting_repo.list_overlapping(interval.start, interval.end)

    report: list[ConflictOverlap] = []
    for executive in executives:
        items: list[ConflictItem] = [
            *task_conflicts(executive, interval),
            *meeting_conflicts(executive, candidates),
        ]
        if not items:
            continue
        logger.debug(
            "%d conflicting item(s) for %s in %s - %s",
            len(items),
            executive.email,
            interval.start.isoformat(),
            interval.end.isoformat(),
        )
        report.append(
            ConflictOverlap(
                executive_id=executive.id,
                executive_email=executive.email,
                conflicts=items,
            )
        )
    return report


def normalize_conflict_item(raw: Any, fallback_type: str = "task") -> ConflictItem:
    """Coerce a loosely-shaped, caller-supplied busy item into a conflict item.

    Unknown or unparseable timestamps are dropped rather than rejected, and a
    missing title falls back to the notes or ``"Busy"``.
    """
    if not isinstance(raw, dict):
        raw = {}
    item_type = raw.get("type")
    if not isinstance(item_type, str) or item_type.strip() not in ("task", "meeting"):
        item_type = fallback_type
    item_cls = MeetingConflictItem if item_type.strip() == "meeting" else TaskConflictItem

    notes = raw.get("notes") or raw.get("description") or None
    fields = {
        "ref_id": raw.get("ref_id") or raw.get("id") or raw.get("meeting_id"),
        "title": raw.get("title") or notes or "Busy",
        "notes": notes,
        "status": raw.get("status"),
    }
    for key in ("start_time", "end_time"):
        fields[key] = _parse_timestamp(raw.get(key))
    return item_cls(**fields)


def _parse_timestamp(value: Any):
    if value in (None, ""):
        return None
    try:
        return _TIMESTAMP.validate_python(value)
    except ValidationError:
        return None


def merge_reported_overlaps(
    detected: list[ConflictOverlap],
    supplied: Iterable[tuple[str | None, Executive | None, list[dict[str, Any]]]],
) -> list[ConflictOverlap]:
    """Merge detected overlaps with caller-reported ones, keyed by executive.

    *supplied* yields ``(email, executive_or_None, raw_items)``. Entries that
    end up with no conflict items are dropped.
    """
    merged: dict[str, ConflictOverlap] = {}

    def _slot(executive_id: str | None, email: str | None) -> ConflictOverlap | None:
        key = executive_id or email
        if not key:
            return None
        if key not in merged:
            merged[key] = ConflictOverlap(executive_id=executive_id, executive_email=email)
        return merged[key]

    for entry in detected:
        slot = _slot(entry.executive_id, normalize_email(entry.executive_email))
        if slot is not None:
            slot.conflicts.extend(entry.conflicts)

    for email, executive, raw_items in supplied:
        email = normalize_email(email) or (executive.email if executive else None)
        slot = _slot(executive.id if executive else None, email)
        if slot is None:
            continue
        slot.conflicts.extend(normalize_conflict_item(item, "task") for item in raw_items)

    return [entry for entry in merged.values() if entry.conflicts]
