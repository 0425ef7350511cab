"""Secretary-driven lifecycle of conflict tickets.

``open -> in_progress -> resolved | escalated`` with a direct
``open -> escalated`` edge. Resolved and escalated tickets accept no further
transitions. Every transition appends exactly one history entry and is
persisted together with it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from tms import config
from tms.domain.bus import EventBus
from tms.domain.errors import InvalidInput, NotFound, StateViolation
from tms.domain.events import ConflictEscalated, ConflictResolved
from tms.domain.models import (
    Actor,
    Conflict,
    ConflictAction,
    ConflictConsultation,
    ConflictProposal,
    ConflictResolution,
    ConflictStatus,
    ConflictSummary,
    ConsultationDecision,
    ConsultationRequest,
    InviteStatus,
    Meeting,
    MeetingStatus,
    ProposalRequest,
    ResolveRequest,
    normalize_email,
)
from tms.repos.memory import ConflictRepository, ExecutiveRepository, MeetingRepository
from tms.services.overlap import require_interval

logger = logging.getLogger(__name__)


class ConflictService:
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
    # Queries
    # ------------------------------------------------------------------

    def get(self, conflict_id: str) -> Conflict:
        return self.conflict_repo.require(conflict_id)

    def list_conflicts(
        self, status: str | None = None, limit: int | None = None
    ) -> list[Conflict]:
        wanted = None
        if status:
            try:
                wanted = ConflictStatus(status)
            except ValueError:
                raise InvalidInput(f"Unknown conflict status {status!r}") from None
        limit = limit if limit and limit > 0 else config.CONFLICT_LIST_LIMIT
        return self.conflict_repo.list_recent(wanted, min(limit, config.CONFLICT_LIST_MAX))

    def summary(self) -> ConflictSummary:
        return ConflictSummary(
            summary=self.conflict_repo.count_by_status(),
            last_updated=self.conflict_repo.last_updated(),
            open_meetings=self.meeting_repo.count_open_conflicts(),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def add_proposal(self, conflict_id: str, actor: Actor, request: ProposalRequest) -> Conflict:
        interval = require_interval(request.start_time, request.end_time)
        conflict = self._load_open(conflict_id)

        conflict.proposed_options.append(
            ConflictProposal(
                start_time=interval.start,
                end_time=interval.end,
                notes=request.notes,
                created_by=actor.id,
            )
        )
        if conflict.status == ConflictStatus.OPEN:
            conflict.status = ConflictStatus.IN_PROGRESS
        conflict.record(ConflictAction.PROPOSAL_ADDED, actor, request.notes)

        self.conflict_repo.save(conflict)
        logger.info("Proposal added to conflict %s by %s", conflict.id, actor.id)
        return conflict

    def record_consultation(
        self, conflict_id: str, actor: Actor, request: ConsultationRequest
    ) -> Conflict:
        """Upsert one executive's decision on the ticket. Status is left untouched."""
        email = normalize_email(request.executive_email)
        if not request.executive_id and not email:
            raise InvalidInput("executive_id or executive_email is required")
        try:
            decision = ConsultationDecision(request.decision)
        except ValueError:
            raise InvalidInput("decision must be one of pending, approved, declined") from None

        conflict = self._load_open(conflict_id)

        name = request.executive_name
        if request.executive_id:
            executive = self.executive_repo.get(request.executive_id)
            if executive is not None:
                name = name or executive.name
                email = email or executive.email.lower()

        consultation = self._find_consultation(conflict, request.executive_id, email)
        now = datetime.now(timezone.utc)
        if consultation is None:
            conflict.consultations.append(
                ConflictConsultation(
                    executive_id=request.executive_id,
                    executive_name=name,
                    executive_email=email,
                    decision=decision,
                    notes=request.notes,
                    recorded_by=actor.id,
                    recorded_at=now,
                    updated_at=now,
                )
            )
        else:
            consultation.decision = decision
            consultation.notes = request.notes or consultation.notes
            consultation.recorded_by = actor.id
            consultation.updated_at = now
            if name:
                consultation.executive_name = name
            if email:
                consultation.executive_email = email
            if request.executive_id:
                consultation.executive_id = request.executive_id

        conflict.record(
            ConflictAction.CONSULTATION_RECORDED,
            actor,
            request.notes or f"Consultation logged ({decision.value})",
        )
        self.conflict_repo.save(conflict)
        logger.info("Consultation (%s) recorded on conflict %s", decision.value, conflict.id)
        return conflict

    def resolve(self, conflict_id: str, actor: Actor, request: ResolveRequest) -> ConflictResolution:
        """Move the meeting to the agreed slot and re-open it for RSVPs.

        This is the one transition that writes back into meeting and task
        state: the meeting takes the final interval, participants are merged,
        invitees must answer again and every affected executive's
        back-referenced task follows the meeting.
        """
        interval = require_interval(request.start_time, request.end_time)
        conflict = self._load_open(conflict_id)
        meeting = self._load_live_meeting(conflict)

        meeting.start_time = interval.start
        meeting.end_time = interval.end
        meeting.status = MeetingStatus.PENDING
        meeting.has_conflict = False
        meeting.conflict_status = ConflictStatus.RESOLVED
        meeting.conflict_notes = request.resolution_notes or "Conflict resolved by secretary"

        affected = self.executive_repo.list_by_ids(
            [*conflict.participant_ids, *([conflict.requested_by] if conflict.requested_by else [])]
        )
        for executive in affected:
            meeting.add_participant(executive.id)

        for entry in meeting.invited:
            if conflict.requested_by and entry.executive_id == conflict.requested_by:
                entry.status = InviteStatus.ACCEPTED
            elif entry.status != InviteStatus.CANCELLED:
                entry.status = InviteStatus.INVITED

        for executive in affected:
            executive.reschedule_meeting_task(meeting, request.resolution_notes)

        conflict.status = ConflictStatus.RESOLVED
        conflict.resolution_notes = request.resolution_notes
        conflict.resolved_by = actor.id
        conflict.record(ConflictAction.CONFLICT_RESOLVED, actor, request.resolution_notes)

        self.conflict_repo.ensure_current(conflict)
        self.meeting_repo.ensure_current(meeting)
        for executive in affected:
            self.executive_repo.ensure_current(executive)
        self.meeting_repo.save(meeting)
        for executive in affected:
            self.executive_repo.save(executive)
        self.conflict_repo.save(conflict)

        logger.info(
            "Conflict %s resolved; meeting %s moved to %s",
            conflict.id,
            meeting.id,
            interval.start.isoformat(),
        )
        self.bus.publish(ConflictResolved(conflict_id=conflict.id, meeting_id=meeting.id))
        return ConflictResolution(conflict=conflict, meeting=meeting)

    def escalate(self, conflict_id: str, actor: Actor, reason: str | None = None) -> Conflict:
        conflict = self._load_open(conflict_id)
        meeting = self._load_live_meeting(conflict)

        conflict.status = ConflictStatus.ESCALATED
        conflict.record(ConflictAction.CONFLICT_ESCALATED, actor, reason)
        meeting.conflict_status = ConflictStatus.ESCALATED
        meeting.conflict_notes = reason or "Escalated by secretary"

        self.conflict_repo.ensure_current(conflict)
        self.meeting_repo.ensure_current(meeting)
        self.conflict_repo.save(conflict)
        self.meeting_repo.save(meeting)

        logger.info("Conflict %s escalated by %s", conflict.id, actor.id)
        self.bus.publish(
            ConflictEscalated(conflict_id=conflict.id, meeting_id=meeting.id, reason=reason)
        )
        return conflict

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_open(self, conflict_id: str) -> Conflict:
        conflict = self.conflict_repo.require(conflict_id)
        if conflict.is_terminal:
            raise StateViolation(f"Conflict is already {conflict.status.value}")
        return conflict

    def _load_live_meeting(self, conflict: Conflict) -> Meeting:
        meeting = self.meeting_repo.get(conflict.meeting_id)
        if meeting is None:
            raise NotFound("Linked meeting not found")
        if meeting.status in (MeetingStatus.CANCELLED, MeetingStatus.COMPLETED):
            raise StateViolation(f"Linked meeting is already {meeting.status.value}")
        return meeting

    @staticmethod
    def _find_consultation(
        conflict: Conflict, executive_id: str | None, email: str | None
    ) -> ConflictConsultation | None:
        if executive_id:
            for entry in conflict.consultations:
                if entry.executive_id == executive_id:
                    return entry
        if email:
            for entry in conflict.consultations:
                if normalize_email(entry.executive_email) == email:
                    return entry
        return None
