"""FastAPI application — entry point for the meeting scheduling service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from tms import config
from tms.domain.bus import EventBus
from tms.domain.errors import Forbidden, InvalidInput, NotFound, SchedulingError
from tms.domain.handlers import HandlerRegistry
from tms.domain.models import (
    Actor,
    ActorRole,
    AvailabilityRequest,
    AvailabilityResult,
    Conflict,
    ConflictResolution,
    ConflictSummary,
    ConsultationRequest,
    CreateMeetingRequest,
    CreateMeetingResult,
    EscalateRequest,
    Executive,
    ExecutiveCreate,
    ManualConflictRequest,
    MarkReadRequest,
    Meeting,
    Notification,
    NotificationList,
    ProposalRequest,
    ResolveRequest,
    RsvpRequest,
    Secretary,
    SecretaryCreate,
    Task,
    TaskBatch,
    normalize_email,
)
from tms.repos.memory import (
    ConflictRepository,
    ExecutiveRepository,
    MeetingRepository,
    NotificationRepository,
    SecretaryRepository,
)
from tms.services.availability import check_availability
from tms.services.conflict_lifecycle import ConflictService
from tms.services.meetings import MeetingService
from tms.services.notifications import LoggingMailer, NotificationDispatcher
from tms.services.parser import day_window
from tms.services.tasks import add_tasks, delete_task, tasks_for_window

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Meeting Scheduling Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
executive_repo = ExecutiveRepository()
secretary_repo = SecretaryRepository()
meeting_repo = MeetingRepository()
conflict_repo = ConflictRepository()
notification_repo = NotificationRepository()
mailer = LoggingMailer()

dispatcher = NotificationDispatcher(notification_repo, secretary_repo, mailer)
handler_registry = HandlerRegistry(
    bus=event_bus,
    executive_repo=executive_repo,
    meeting_repo=meeting_repo,
    conflict_repo=conflict_repo,
    dispatcher=dispatcher,
)
meeting_service = MeetingService(event_bus, executive_repo, meeting_repo, conflict_repo)
conflict_service = ConflictService(event_bus, executive_repo, meeting_repo, conflict_repo)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    if exc.status_code >= 409:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ── Caller identity ───────────────────────────────────────────────────


def current_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Identity of the already-authenticated caller, as handed over by the gateway."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="Caller identity required")
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown caller role") from None
    return Actor(id=x_actor_id, role=role)


def current_secretary(actor: Actor = Depends(current_actor)) -> Actor:
    if actor.role != ActorRole.SECRETARY:
        raise Forbidden("Secretary credentials required")
    return actor


# ── Executives & tasks ────────────────────────────────────────────────


@app.post("/executives", response_model=Executive, status_code=201)
def register_executive(payload: ExecutiveCreate) -> Executive:
    email = normalize_email(payload.email)
    if executive_repo.get_by_email(email) is not None:
        raise InvalidInput("Executive already exists")
    executive = Executive(
        name=payload.name,
        email=email,
        department=payload.department,
        leave_periods=payload.leave_periods,
    )
    return executive_repo.add(executive)


@app.post("/executives/check-availability", response_model=AvailabilityResult)
def check_executive_availability(
    payload: AvailabilityRequest, actor: Actor = Depends(current_actor)
) -> AvailabilityResult:
    """Free/busy for one executive over the requested interval."""
    return check_availability(
        executive_repo,
        meeting_repo,
        payload.start_time,
        payload.end_time,
        email=payload.email,
    )


@app.get("/executives/{executive_id}", response_model=Executive)
def get_executive(executive_id: str, actor: Actor = Depends(current_actor)) -> Executive:
    return executive_repo.require(_resolve_me(executive_id, actor))


@app.post("/executives/{executive_id}/tasks", response_model=list[Task], status_code=201)
def create_tasks(
    executive_id: str, payload: TaskBatch, actor: Actor = Depends(current_actor)
) -> list[Task]:
    return add_tasks(executive_repo, _resolve_me(executive_id, actor), payload.tasks, actor.id)


@app.get("/executives/{executive_id}/tasks", response_model=list[Task])
def list_tasks(
    executive_id: str, date: str | None = None, actor: Actor = Depends(current_actor)
) -> list[Task]:
    """All tasks, or only those overlapping *date* when given."""
    executive = executive_repo.require(_resolve_me(executive_id, actor))
    if date is None:
        return executive.tasks
    start, end = day_window(date, datetime.now(timezone.utc))
    return tasks_for_window(executive, start, end)


@app.delete("/executives/{executive_id}/tasks/{task_id}")
def remove_task(executive_id: str, task_id: str, actor: Actor = Depends(current_actor)) -> dict:
    delete_task(executive_repo, _resolve_me(executive_id, actor), task_id)
    return {"ok": True}


def _resolve_me(executive_id: str, actor: Actor) -> str:
    return actor.id if executive_id == "me" else executive_id


# ── Meetings ──────────────────────────────────────────────────────────


@app.post("/meetings", response_model=CreateMeetingResult, status_code=201)
def create_meeting(
    payload: CreateMeetingRequest, response: Response, actor: Actor = Depends(current_actor)
) -> CreateMeetingResult:
    """Create a meeting; answers 202 when it was routed to the conflict desk."""
    result = meeting_service.create_meeting(payload, actor)
    if result.conflict is not None:
        response.status_code = 202
    return result


@app.post("/meetings/conflicts/manual", response_model=CreateMeetingResult, status_code=201)
def log_manual_conflict(
    payload: ManualConflictRequest, actor: Actor = Depends(current_actor)
) -> CreateMeetingResult:
    return meeting_service.log_manual_conflict(payload, actor)


@app.get("/meetings/my-day", response_model=list[Meeting])
def my_day(
    date: str | None = None, now: datetime | None = None, actor: Actor = Depends(current_actor)
) -> list[Meeting]:
    if now is not None and now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return meeting_service.my_day(actor, date, now or datetime.now(timezone.utc))


@app.post("/meetings/rsvp", response_model=Meeting)
def rsvp(payload: RsvpRequest, actor: Actor = Depends(current_actor)) -> Meeting:
    return meeting_service.respond(payload.meeting_id, actor, payload.response)


@app.get("/meetings/{meeting_id}", response_model=Meeting)
def get_meeting(meeting_id: str, actor: Actor = Depends(current_actor)) -> Meeting:
    return meeting_repo.require(meeting_id)


@app.post("/meetings/{meeting_id}/cancel", response_model=Meeting)
def cancel_meeting(meeting_id: str, actor: Actor = Depends(current_actor)) -> Meeting:
    return meeting_service.cancel(meeting_id, actor)


@app.post("/meetings/{meeting_id}/complete", response_model=Meeting)
def complete_meeting(
    meeting_id: str, now: datetime | None = None, actor: Actor = Depends(current_actor)
) -> Meeting:
    """Mark a meeting completed.

    Pass *now* as a query param to control the clock; defaults to
    ``datetime.now(timezone.utc)`` when omitted.
    """
    if now is not None and now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return meeting_service.complete(meeting_id, actor, now)


# ── Secretaries ───────────────────────────────────────────────────────


@app.post("/secretaries", response_model=Secretary, status_code=201)
def register_secretary(payload: SecretaryCreate) -> Secretary:
    email = normalize_email(payload.email)
    if secretary_repo.get_by_email(email) is not None:
        raise InvalidInput("Secretary already exists")
    unknown = [eid for eid in payload.assigned_executives if executive_repo.get(eid) is None]
    if unknown:
        raise NotFound(f"Unknown executives: {', '.join(unknown)}")
    secretary = Secretary(
        name=payload.name, email=email, assigned_executives=payload.assigned_executives
    )
    return secretary_repo.add(secretary)


@app.get("/secretary/notifications", response_model=NotificationList)
def list_notifications(
    status: str = "all",
    limit: int | None = None,
    skip: int = 0,
    actor: Actor = Depends(current_secretary),
) -> NotificationList:
    items, unread = dispatcher.list_inbox(actor.id, status, limit, skip)
    return NotificationList(notifications=items, unread_count=unread)


@app.patch("/secretary/notifications/{notification_id}/read", response_model=Notification)
def mark_notification(
    notification_id: str,
    payload: MarkReadRequest | None = None,
    actor: Actor = Depends(current_secretary),
) -> Notification:
    read = payload is None or payload.mark == "read"
    notification = dispatcher.mark(actor.id, notification_id, read=read)
    if notification is None:
        raise NotFound("Notification not found")
    return notification


@app.post("/secretary/notifications/mark-all-read")
def mark_all_notifications(actor: Actor = Depends(current_secretary)) -> dict:
    return {"updated": dispatcher.mark_all_read(actor.id)}


# ── Conflict desk ─────────────────────────────────────────────────────


@app.get("/secretary/conflicts", response_model=list[Conflict])
def list_conflicts(
    status: str | None = None,
    limit: int | None = None,
    actor: Actor = Depends(current_secretary),
) -> list[Conflict]:
    return conflict_service.list_conflicts(status, limit)


@app.get("/secretary/conflicts/summary", response_model=ConflictSummary)
def conflicts_summary(actor: Actor = Depends(current_secretary)) -> ConflictSummary:
    return conflict_service.summary()


@app.get("/secretary/conflicts/{conflict_id}", response_model=Conflict)
def get_conflict(conflict_id: str, actor: Actor = Depends(current_secretary)) -> Conflict:
    return conflict_service.get(conflict_id)


@app.patch("/secretary/conflicts/{conflict_id}/proposals", response_model=Conflict)
def add_proposal(
    conflict_id: str, payload: ProposalRequest, actor: Actor = Depends(current_secretary)
) -> Conflict:
    return conflict_service.add_proposal(conflict_id, actor, payload)


@app.patch("/secretary/conflicts/{conflict_id}/consultations", response_model=Conflict)
def record_consultation(
    conflict_id: str, payload: ConsultationRequest, actor: Actor = Depends(current_secretary)
) -> Conflict:
    return conflict_service.record_consultation(conflict_id, actor, payload)


@app.patch("/secretary/conflicts/{conflict_id}/resolve", response_model=ConflictResolution)
def resolve_conflict(
    conflict_id: str, payload: ResolveRequest, actor: Actor = Depends(current_secretary)
) -> ConflictResolution:
    return conflict_service.resolve(conflict_id, actor, payload)


@app.post("/secretary/conflicts/{conflict_id}/escalate", response_model=Conflict)
def escalate_conflict(
    conflict_id: str,
    payload: EscalateRequest | None = None,
    actor: Actor = Depends(current_secretary),
) -> Conflict:
    return conflict_service.escalate(conflict_id, actor, payload.reason if payload else None)
