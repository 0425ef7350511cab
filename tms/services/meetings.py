"""Meeting creation, RSVP tracking and the cancel/complete transitions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from tms.domain.bus import EventBus
from tms.domain.errors import Forbidden, InvalidInput, StateViolation
from tms.domain.events import ConflictDetected, MeetingCancelled, MeetingScheduled
from tms.domain.models import (
    Actor,
    ActorRole,
    Conflict,
    ConflictAction,
    ConflictStatus,
    CreateMeetingRequest,
    CreateMeetingResult,
    Executive,
    ExecutiveSummary,
    InvitedEntry,
    InviteStatus,
    ManualConflictRequest,
    Meeting,
    MeetingStatus,
    RsvpResponse,
    normalize_email,
)
from tms.repos.memory import ConflictRepository, ExecutiveRepository, MeetingRepository
from tms.services.conflicts import build_conflict_report, merge_reported_overlaps
from tms.services.overlap import require_interval
from tms.services.parser import day_window

logger = logging.getLogger(__name__)


def normalize_emails(emails: list[str]) -> list[str]:
    """Trim, lower-case and de-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(e for e in map(normalize_email, emails) if e))


def _require_title(title: str | None) -> str:
    if not title or not title.strip():
        raise InvalidInput("title is required")
    return title.strip()


class MeetingService:
    """Creates meetings and drives their participation lifecycle."""

    def __init__(
        self,
        bus: EventBus,
        executive_repo: ExecutiveRepository,
        meeting_repo: MeetingRepository,
        conflict_repo: ConflictRepository,
    ) -> None:
        self.bus = bus
        self.executive_repo = executive_repo
        self.meeting_repo = meeting_repo
        self.conflict_repo = conflict_repo

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_meeting(self, request: CreateMeetingRequest, actor: Actor) -> CreateMeetingResult:
        """Create a meeting, opening a conflict ticket if any invitee is busy.

        Either a conflict ticket is opened and no task is written, or the
        meeting is booked and every resolved executive gets one task that
        back-references it. Never both.
        """
        title = _require_title(request.title)
        interval = require_interval(request.start_time, request.end_time)
        emails = normalize_emails(request.participant_emails)
        if not emails:
            raise InvalidInput("At least one participant email is required")

        executives = self.executive_repo.list_by_emails(emails)
        found = {e.email.lower() for e in executives}
        not_found = [email for email in emails if email not in found]

        creator = self._creator(actor)
        if creator is not None and all(e.id != creator.id for e in executives):
            executives.append(creator)

        invited = self._invitees(emails, executives, creator)
        report = build_conflict_report(executives, interval, self.meeting_repo)

        if report:
            meeting = Meeting(
                title=title,
                start_time=interval.start,
                end_time=interval.end,
                venue=request.venue,
                project=request.project,
                created_by=actor.id,
                participants=[creator.id] if creator else [],
                invited=invited,
                status=MeetingStatus.CONFLICT,
                has_conflict=True,
                conflict_status=ConflictStatus.OPEN,
                conflict_notes="Conflict requires secretary intervention",
            )
            conflict = Conflict(
                meeting_id=meeting.id,
                requested_by=actor.id,
                participant_emails=emails,
                participant_ids=[e.id for e in executives],
                overlaps=report,
            )
            conflict.record(
                ConflictAction.CONFLICT_DETECTED,
                actor,
                "Scheduling conflict detected during meeting creation",
            )
            self.meeting_repo.add(meeting)
            self.conflict_repo.add(conflict)
            logger.info(
                "Conflict %s opened for meeting %s (%d executive(s) busy)",
                conflict.id,
                meeting.id,
                len(report),
            )
            self.bus.publish(ConflictDetected(meeting_id=meeting.id, conflict_id=conflict.id))
            return CreateMeetingResult(
                meeting=meeting, conflict=conflict, not_found_emails=not_found
            )

        meeting = Meeting(
            title=title,
            start_time=interval.start,
            end_time=interval.end,
            venue=request.venue,
            project=request.project,
            created_by=actor.id,
            participants=[creator.id] if creator else [],
            invited=invited,
            status=MeetingStatus.PENDING,
        )
        meeting.recompute_status()
        added: list[ExecutiveSummary] = []
        for executive in executives:
            if executive.ensure_meeting_task(meeting, f"Auto-added from meeting {meeting.id}"):
                added.append(
                    ExecutiveSummary(id=executive.id, name=executive.name, email=executive.email)
                )
            meeting.add_participant(executive.id)

        for executive in executives:
            self.executive_repo.ensure_current(executive)
        self.meeting_repo.add(meeting)
        for executive in executives:
            self.executive_repo.save(executive)

        logger.info("Meeting %s booked for %d executive(s)", meeting.id, len(added))
        self.bus.publish(MeetingScheduled(meeting_id=meeting.id))
        return CreateMeetingResult(meeting=meeting, added_tasks_to=added, not_found_emails=not_found)

    def log_manual_conflict(
        self, request: ManualConflictRequest, actor: Actor
    ) -> CreateMeetingResult:
        """Open a conflict ticket for a meeting the caller already knows cannot fit."""
        title = _require_title(request.title)
        interval = require_interval(request.start_time, request.end_time)
        emails = normalize_emails(request.participant_emails)

        creator = self._creator(actor)
        if creator is not None and creator.email.lower() not in emails:
            emails.append(creator.email.lower())
        if not emails:
            raise InvalidInput("At least one participant email is required")

        executives = self.executive_repo.list_by_emails(emails)
        by_email = {e.email.lower(): e for e in executives}
        report = build_conflict_report(executives, interval, self.meeting_repo)

        supplied = []
        for entry in request.overlaps:
            email = normalize_email(entry.executive_email) or normalize_email(entry.email)
            supplied.append((email, by_email.get(email) if email else None, entry.conflicts))
        overlaps = merge_reported_overlaps(report, supplied)
        if not overlaps:
            raise StateViolation("No conflicts detected for the provided time range.")

        meeting = Meeting(
            title=title,
            start_time=interval.start,
            end_time=interval.end,
            venue=request.venue,
            project=request.project,
            created_by=actor.id,
            participants=[creator.id] if creator else [],
            invited=[
                InvitedEntry(
                    email=email,
                    executive_id=by_email[email].id if email in by_email else None,
                )
                for email in emails
            ],
            status=MeetingStatus.CONFLICT,
            has_conflict=True,
            conflict_status=ConflictStatus.OPEN,
            conflict_notes=request.notes or "Awaiting secretary coordination",
        )
        conflict = Conflict(
            meeting_id=meeting.id,
            requested_by=actor.id,
            participant_emails=emails,
            participant_ids=[e.id for e in executives],
            conflict_reason=request.notes or "Scheduling overlap reported by executive",
            overlaps=overlaps,
        )
        conflict.record(
            ConflictAction.MANUAL_CONFLICT_LOGGED,
            actor,
            request.notes or "Conflict logged via executive request",
        )
        self.meeting_repo.add(meeting)
        self.conflict_repo.add(conflict)
        logger.info("Manual conflict %s logged for meeting %s", conflict.id, meeting.id)
        self.bus.publish(
            ConflictDetected(meeting_id=meeting.id, conflict_id=conflict.id, manual=True)
        )
        return CreateMeetingResult(meeting=meeting, conflict=conflict)

    # ------------------------------------------------------------------
    # Participation
    # ------------------------------------------------------------------

    def respond(self, meeting_id: str, actor: Actor, response: str) -> Meeting:
        """Record an RSVP and recompute the meeting's pending/scheduled status."""
        normalized = str(response).strip().lower()
        if normalized not in {r.value for r in RsvpResponse}:
            raise InvalidInput("Invalid response. Allowed: accepted, declined, tentative")

        meeting = self.meeting_repo.require(meeting_id)
        if meeting.status == MeetingStatus.CANCELLED:
            raise StateViolation("Meeting has been cancelled by the creator; RSVPs are closed.")
        if meeting.status == MeetingStatus.COMPLETED:
            raise StateViolation("Meeting has already been completed; RSVPs are closed.")

        executive = self.executive_repo.require(actor.id)
        status = InviteStatus(normalized)
        entry = meeting.find_invitee(executive.id, executive.email)
        if entry is None:
            meeting.invited.append(
                InvitedEntry(email=executive.email, executive_id=executive.id, status=status)
            )
        else:
            entry.executive_id = entry.executive_id or executive.id
            entry.status = status

        if status == InviteStatus.ACCEPTED:
            meeting.add_participant(executive.id)
        elif status == InviteStatus.DECLINED:
            meeting.remove_participant(executive.id)

        meeting.recompute_status()
        self.meeting_repo.save(meeting)
        logger.info(
            "RSVP %s from %s on meeting %s -> %s",
            normalized,
            executive.email,
            meeting.id,
            meeting.status,
        )
        return meeting

    def cancel(self, meeting_id: str, actor: Actor, now: datetime | None = None) -> Meeting:
        """Cancel a meeting. Repeating the call returns the cancelled meeting unchanged."""
        meeting = self.meeting_repo.require(meeting_id)
        self._require_creator(meeting, actor, "cancel")
        if meeting.status == MeetingStatus.CANCELLED:
            return meeting
        if meeting.status == MeetingStatus.COMPLETED:
            raise StateViolation("A completed meeting cannot be cancelled")

        now = now or datetime.now(timezone.utc)
        meeting.status = MeetingStatus.CANCELLED
        meeting.cancelled_at = now
        meeting.cancelled_by = actor.id
        for entry in meeting.invited:
            entry.status = InviteStatus.CANCELLED
        self.meeting_repo.save(meeting)
        logger.info("Meeting %s cancelled by %s", meeting.id, actor.id)

        self._cancel_meeting_tasks(meeting, actor, now)
        self.bus.publish(MeetingCancelled(meeting_id=meeting.id, cancelled_by=actor.id))
        return meeting

    def complete(self, meeting_id: str, actor: Actor, now: datetime | None = None) -> Meeting:
        """Mark a finished meeting completed. *now* is the caller's clock."""
        meeting = self.meeting_repo.require(meeting_id)
        self._require_creator(meeting, actor, "mark completed")
        if meeting.status == MeetingStatus.CANCELLED:
            raise StateViolation("A cancelled meeting cannot be completed")
        if meeting.status == MeetingStatus.COMPLETED:
            return meeting

        now = now or datetime.now(timezone.utc)
        if now < meeting.end_time:
            raise StateViolation("Meeting end time not reached yet")

        meeting.status = MeetingStatus.COMPLETED
        meeting.completed_at = now
        self.meeting_repo.save(meeting)
        logger.info("Meeting %s completed", meeting.id)
        return meeting

    def my_day(self, actor: Actor, raw_date: str | None, now: datetime) -> list[Meeting]:
        start, end = day_window(raw_date, now)
        executive = self.executive_repo.get(actor.id)
        email = executive.email if executive else None
        return self.meeting_repo.list_for_day(actor.id, email, start, end)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _creator(self, actor: Actor) -> Executive | None:
        if actor.role != ActorRole.EXECUTIVE:
            return None
        return self.executive_repo.get(actor.id)

    @staticmethod
    def _invitees(
        emails: list[str], executives: list[Executive], creator: Executive | None
    ) -> list[InvitedEntry]:
        by_email = {e.email.lower(): e for e in executives}
        invited = [
            InvitedEntry(
                email=email,
                executive_id=by_email[email].id if email in by_email else None,
            )
            for email in emails
        ]
        if creator is not None:
            creator_email = creator.email.lower()
            entry = next((i for i in invited if i.email == creator_email), None)
            if entry is None:
                invited.append(
                    InvitedEntry(
                        email=creator_email,
                        executive_id=creator.id,
                        status=InviteStatus.ACCEPTED,
                    )
                )
            else:
                entry.executive_id = creator.id
                entry.status = InviteStatus.ACCEPTED
        return invited

    @staticmethod
    def _require_creator(meeting: Meeting, actor: Actor, action: str) -> None:
        if not meeting.created_by or meeting.created_by != actor.id:
            raise Forbidden(f"Only the meeting creator may {action} the meeting")

    def _cancel_meeting_tasks(self, meeting: Meeting, actor: Actor, now: datetime) -> None:
        executive_ids = [e.executive_id for e in meeting.invited if e.executive_id]
        executive_ids.extend(meeting.participants)
        for executive in self.executive_repo.list_by_ids(executive_ids):
            if not executive.cancel_meeting_tasks(meeting.id, actor.id, now):
                continue
            try:
                self.executive_repo.save(executive)
            except StateViolation:
                logger.warning(
                    "Could not mirror cancellation of meeting %s onto executive %s",
                    meeting.id,
                    executive.id,
                )
