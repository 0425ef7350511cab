"""Domain events emitted by the scheduling and conflict workflows."""

from __future__ import annotations

from pydantic import BaseModel


class MeetingScheduled(BaseModel):
    """Fired when a meeting is created on the conflict-free path."""

    meeting_id: str


class ConflictDetected(BaseModel):
    """Fired when a conflict ticket is opened for a meeting."""

    meeting_id: str
    conflict_id: str
    manual: bool = False


class ConflictResolved(BaseModel):
    conflict_id: str
    meeting_id: str


class ConflictEscalated(BaseModel):
    conflict_id: str
    meeting_id: str
    reason: str | None = None


class MeetingCancelled(BaseModel):
    meeting_id: str
    cancelled_by: str
