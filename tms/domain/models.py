"""Domain models for the executive scheduling and conflict desk."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AfterValidator, BaseModel, Field, computed_field, model_validator

try:
    from enum import StrEnum
except ImportError:  # pragma: no cover - fallback for older Python runtimes

    class StrEnum(str, Enum):
        pass


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC so they compare with stored ones.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class TaskStatus(StrEnum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class MeetingStatus(StrEnum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    CONFLICT = "conflict"


# Meetings in these states occupy their participants' calendars.
ACTIVE_MEETING_STATUSES = frozenset(
    {MeetingStatus.PENDING, MeetingStatus.SCHEDULED, MeetingStatus.CONFLICT}
)


class InviteStatus(StrEnum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class RsvpResponse(StrEnum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"


class ConflictStatus(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


TERMINAL_CONFLICT_STATUSES = frozenset({ConflictStatus.RESOLVED, ConflictStatus.ESCALATED})


class ConsultationDecision(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class ActorRole(StrEnum):
    EXECUTIVE = "executive"
    SECRETARY = "secretary"


class ConflictAction(StrEnum):
    CONFLICT_DETECTED = "conflict_detected"
    MANUAL_CONFLICT_LOGGED = "manual_conflict_logged"
    PROPOSAL_ADDED = "proposal_added"
    CONSULTATION_RECORDED = "consultation_recorded"
    CONFLICT_RESOLVED = "conflict_resolved"
    CONFLICT_ESCALATED = "conflict_escalated"


class NotificationChannel(StrEnum):
    CONFLICT = "conflict"
    MEETING = "meeting"
    SYSTEM = "system"


class NotificationSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str | None) -> str | None:
    if not isinstance(email, str):
        return None
    cleaned = email.strip().lower()
    return cleaned or None


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class TimeInterval(BaseModel):
    """Half-open ``[start, end)`` interval."""

    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def _end_after_start(self) -> TimeInterval:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class Actor(BaseModel):
    """An already-authenticated caller."""

    id: str
    role: ActorRole


# ---------------------------------------------------------------------------
# Executive aggregate
# ---------------------------------------------------------------------------


class Task(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    description: str | None = None
    meeting_id: str | None = None
    status: TaskStatus = TaskStatus.SCHEDULED
    created_by: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> Task:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class LeavePeriod(BaseModel):
    start: UtcDatetime
    end: UtcDatetime
    reason: str | None = None


class Executive(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    department: str | None = None
    leave_periods: list[LeavePeriod] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    version: int = 0

    def find_meeting_task(self, meeting_id: str) -> Task | None:
        for task in self.tasks:
            if task.meeting_id == meeting_id:
                return task
        return None

    def add_task(self, task: Task) -> Task:
        self.tasks.append(task)
        return task

    def ensure_meeting_task(self, meeting: Meeting, description: str | None = None) -> bool:
        """Append a task mirroring *meeting* unless one already references it.

        Returns True when a task was appended.
        """
        if self.find_meeting_task(meeting.id) is not None:
            return False
        self.add_task(
            Task(
                title=meeting.title,
                start_time=meeting.start_time,
                end_time=meeting.end_time,
                description=description,
                meeting_id=meeting.id,
            )
        )
        return True

    def reschedule_meeting_task(
        self, meeting: Meeting, description: str | None = None
    ) -> Task:
        """Move the task backing *meeting* to the meeting's interval, or add one."""
        task = self.find_meeting_task(meeting.id)
        if task is None:
            return self.add_task(
                Task(
                    title=meeting.title,
                    start_time=meeting.start_time,
                    end_time=meeting.end_time,
                    description=description or f"Meeting {meeting.id} rescheduled",
                    meeting_id=meeting.id,
                )
            )
        task.start_time = meeting.start_time
        task.end_time = meeting.end_time
        task.status = TaskStatus.SCHEDULED
        if description:
            task.description = description
        return task

    def cancel_meeting_tasks(self, meeting_id: str, actor_id: str, at: datetime) -> int:
        count = 0
        for task in self.tasks:
            if task.meeting_id == meeting_id:
                task.status = TaskStatus.CANCELLED
                task.cancelled_at = at
                task.cancelled_by = actor_id
                count += 1
        return count

    def remove_task(self, task_id: str) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return len(self.tasks) != before


class Secretary(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    assigned_executives: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Meeting aggregate
# ---------------------------------------------------------------------------


class InvitedEntry(BaseModel):
    email: str
    executive_id: str | None = None
    status: InviteStatus = InviteStatus.INVITED


class Meeting(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    venue: str = ""
    project: str = ""
    created_by: str | None = None
    participants: list[str] = Field(default_factory=list)
    invited: list[InvitedEntry] = Field(default_factory=list)
    status: MeetingStatus = MeetingStatus.PENDING
    has_conflict: bool = False
    conflict_status: ConflictStatus | None = None
    conflict_notes: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 0

    @model_validator(mode="after")
    def _end_after_start(self) -> Meeting:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def find_invitee(
        self, executive_id: str | None, email: str | None = None
    ) -> InvitedEntry | None:
        """Locate an invitee by executive id first, then by email."""
        if executive_id:
            for entry in self.invited:
                if entry.executive_id == executive_id:
                    return entry
        email = normalize_email(email)
        if email:
            for entry in self.invited:
                if normalize_email(entry.email) == email:
                    return entry
        return None

    def involves(self, executive_id: str, email: str | None) -> bool:
        if executive_id in self.participants:
            return True
        return self.find_invitee(executive_id, email) is not None

    def add_participant(self, executive_id: str) -> None:
        if executive_id not in self.participants:
            self.participants.append(executive_id)

    def remove_participant(self, executive_id: str) -> None:
        self.participants = [p for p in self.participants if p != executive_id]

    def recompute_status(self) -> MeetingStatus:
        """Derive pending/scheduled purely from the invitee responses."""
        if self.invited and all(e.status == InviteStatus.ACCEPTED for e in self.invited):
            self.status = MeetingStatus.SCHEDULED
        else:
            self.status = MeetingStatus.PENDING
        return self.status


# ---------------------------------------------------------------------------
# Conflict aggregate
# ---------------------------------------------------------------------------


class _ConflictItemBase(BaseModel):
    ref_id: str | None = None
    title: str = "Busy"
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    notes: str | None = None
    status: str | None = None


class TaskConflictItem(_ConflictItemBase):
    type: Literal["task"] = "task"


class MeetingConflictItem(_ConflictItemBase):
    type: Literal["meeting"] = "meeting"


ConflictItem = Annotated[
    Union[TaskConflictItem, MeetingConflictItem], Field(discriminator="type")
]


class ConflictOverlap(BaseModel):
    executive_id: str | None = None
    executive_email: str | None = None
    conflicts: list[ConflictItem] = Field(default_factory=list)


class ConflictProposal(BaseModel):
    id: str = Field(default_factory=_new_id)
    start_time: UtcDatetime
    end_time: UtcDatetime
    notes: str | None = None
    created_by: str
    created_at: datetime = Field(default_factory=_utcnow)


class ConflictConsultation(BaseModel):
    id: str = Field(default_factory=_new_id)
    executive_id: str | None = None
    executive_name: str | None = None
    executive_email: str | None = None
    decision: ConsultationDecision = ConsultationDecision.PENDING
    notes: str | None = None
    recorded_by: str
    recorded_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ConflictHistoryEntry(BaseModel):
    action: ConflictAction
    notes: str | None = None
    actor: str | None = None
    actor_role: ActorRole
    timestamp: datetime = Field(default_factory=_utcnow)


class Conflict(BaseModel):
    id: str = Field(default_factory=_new_id)
    meeting_id: str
    requested_by: str | None = None
    participant_emails: list[str] = Field(default_factory=list)
    participant_ids: list[str] = Field(default_factory=list)
    conflict_reason: str = "Scheduling overlap detected"
    overlaps: list[ConflictOverlap] = Field(default_factory=list)
    status: ConflictStatus = ConflictStatus.OPEN
    proposed_options: list[ConflictProposal] = Field(default_factory=list)
    resolution_notes: str | None = None
    resolved_by: str | None = None
    consultations: list[ConflictConsultation] = Field(default_factory=list)
    history: list[ConflictHistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CONFLICT_STATUSES

    def record(
        self,
        action: ConflictAction,
        actor: Actor | None,
        notes: str | None = None,
        role: ActorRole | None = None,
    ) -> ConflictHistoryEntry:
        entry = ConflictHistoryEntry(
            action=action,
            notes=notes,
            actor=actor.id if actor else None,
            actor_role=role or (actor.role if actor else ActorRole.EXECUTIVE),
        )
        self.history.append(entry)
        return entry


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    recipient_secretary: str
    title: str
    message: str
    channel: NotificationChannel = NotificationChannel.SYSTEM
    severity: NotificationSeverity = NotificationSeverity.INFO
    meeting_id: str | None = None
    conflict_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    read_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def is_read(self) -> bool:
        return self.read_at is not None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ExecutiveCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    department: str | None = None
    leave_periods: list[LeavePeriod] = Field(default_factory=list)


class SecretaryCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    assigned_executives: list[str] = Field(default_factory=list)


class TaskInput(BaseModel):
    title: str | None = None
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    description: str | None = None


class TaskBatch(BaseModel):
    tasks: list[TaskInput] = Field(min_length=1)


class AvailabilityRequest(BaseModel):
    email: str
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None


class AvailabilityResult(BaseModel):
    free: bool
    conflicts: list[ConflictItem] = Field(default_factory=list)


class CreateMeetingRequest(BaseModel):
    title: str | None = None
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    venue: str = ""
    project: str = ""
    participant_emails: list[str] = Field(default_factory=list)


class ExecutiveSummary(BaseModel):
    id: str
    name: str
    email: str


class CreateMeetingResult(BaseModel):
    meeting: Meeting
    conflict: Conflict | None = None
    added_tasks_to: list[ExecutiveSummary] = Field(default_factory=list)
    not_found_emails: list[str] = Field(default_factory=list)


class ManualOverlapInput(BaseModel):
    executive_email: str | None = None
    email: str | None = None
    conflicts: list[dict[str, Any]] = Field(default_factory=list)


class ManualConflictRequest(CreateMeetingRequest):
    notes: str = ""
    overlaps: list[ManualOverlapInput] = Field(default_factory=list)


class ProposalRequest(BaseModel):
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    notes: str | None = None


class ConsultationRequest(BaseModel):
    executive_id: str | None = None
    executive_email: str | None = None
    executive_name: str | None = None
    decision: str = ConsultationDecision.PENDING
    notes: str | None = None


class ResolveRequest(BaseModel):
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    resolution_notes: str | None = None


class EscalateRequest(BaseModel):
    reason: str | None = None


class RsvpRequest(BaseModel):
    meeting_id: str
    response: str


class ConflictResolution(BaseModel):
    conflict: Conflict
    meeting: Meeting


class ConflictSummary(BaseModel):
    summary: dict[str, int]
    last_updated: datetime | None = None
    open_meetings: int = 0


class NotificationList(BaseModel):
    notifications: list[Notification]
    unread_count: int


class MarkReadRequest(BaseModel):
    mark: Literal["read", "unread"] = "read"
