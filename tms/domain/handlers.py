"""Domain event handlers — wired up at application startup.

All handlers here are notification side effects. The bus isolates their
failures, so a broken mailer never undoes a booking or a conflict transition.
"""

from __future__ import annotations

from tms.domain.bus import EventBus
from tms.domain.events import (
    ConflictDetected,
    ConflictEscalated,
    ConflictResolved,
    MeetingCancelled,
    MeetingScheduled,
)
from tms.domain.models import Meeting, NotificationChannel, NotificationSeverity
from tms.repos.memory import ConflictRepository, ExecutiveRepository, MeetingRepository
from tms.services.notifications import NotificationDispatcher


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the repositories."""

    def __init__(
        self,
        bus: EventBus,
        executive_repo: ExecutiveRepository,
        meeting_repo: MeetingRepository,
        conflict_repo: ConflictRepository,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.bus = bus
        self.executive_repo = executive_repo
        self.meeting_repo = meeting_repo
        self.conflict_repo = conflict_repo
        self.dispatcher = dispatcher
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(ConflictDetected, self.notify_secretaries_of_conflict)
        self.bus.subscribe(ConflictDetected, self.email_participants_of_conflict)
        self.bus.subscribe(ConflictEscalated, self.notify_secretaries_of_escalation)
        self.bus.subscribe(ConflictResolved, self.email_participants_of_reschedule)
        self.bus.subscribe(MeetingScheduled, self.email_participants_of_booking)
        self.bus.subscribe(MeetingCancelled, self.email_participants_of_cancellation)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def notify_secretaries_of_conflict(self, event: ConflictDetected) -> None:
        meeting = self.meeting_repo.get(event.meeting_id)
        conflict = self.conflict_repo.get(event.conflict_id)
        if meeting is None or conflict is None:
            return

        executive_ids = [*conflict.participant_ids, conflict.requested_by]
        names = self._names(conflict.participant_ids)
        who = f" ({names})" if names else ""

        if event.manual:
            title = f"Manual conflict: {meeting.title}"
            message = (
                f"A manual conflict has been logged for {meeting.title}. "
                "Please review the conflict queue."
            )
        else:
            title = f"Conflict detected: {meeting.title}"
            message = (
                f"No common slot was available for {meeting.title}{who}. "
                "Please review and coordinate a new time."
            )

        self.dispatcher.notify_secretaries_for_executives(
            executive_ids,
            title=title,
            message=message,
            channel=NotificationChannel.CONFLICT,
            severity=NotificationSeverity.WARNING,
            meeting_id=meeting.id,
            conflict_id=conflict.id,
            metadata={
                "meeting_title": meeting.title,
                "start_time": meeting.start_time.isoformat(),
                "end_time": meeting.end_time.isoformat(),
                "participant_emails": conflict.participant_emails,
            },
            email_subject=f"Action required: meeting conflict for {meeting.title}",
        )

    def email_participants_of_conflict(self, event: ConflictDetected) -> None:
        meeting = self.meeting_repo.get(event.meeting_id)
        if meeting is None or event.manual:
            return
        self.dispatcher.send_mail(
            self._invitee_emails(meeting),
            f"Scheduling conflict: {meeting.title}",
            f'We could not find a common time slot for "{meeting.title}" '
            f"({meeting.start_time.isoformat()} - {meeting.end_time.isoformat()}). "
            "Secretaries have been notified to coordinate a new time.",
        )

    def notify_secretaries_of_escalation(self, event: ConflictEscalated) -> None:
        conflict = self.conflict_repo.get(event.conflict_id)
        meeting = self.meeting_repo.get(event.meeting_id)
        if conflict is None or meeting is None:
            return
        self.dispatcher.notify_secretaries_for_executives(
            [*conflict.participant_ids, conflict.requested_by],
            title=f"Conflict escalated: {meeting.title}",
            message=event.reason or f"The conflict for {meeting.title} was escalated.",
            channel=NotificationChannel.CONFLICT,
            severity=NotificationSeverity.CRITICAL,
            meeting_id=meeting.id,
            conflict_id=conflict.id,
        )

    def email_participants_of_reschedule(self, event: ConflictResolved) -> None:
        meeting = self.meeting_repo.get(event.meeting_id)
        if meeting is None:
            return
        self.dispatcher.send_mail(
            self._invitee_emails(meeting),
            f"Rescheduled: {meeting.title}",
            f'"{meeting.title}" has been moved to {meeting.start_time.isoformat()} - '
            f"{meeting.end_time.isoformat()}. Please RSVP again.",
        )

    def email_participants_of_booking(self, event: MeetingScheduled) -> None:
        meeting = self.meeting_repo.get(event.meeting_id)
        if meeting is None:
            return
        self.dispatcher.send_mail(
            self._invitee_emails(meeting),
            f"Meeting Scheduled: {meeting.title}",
            f'You are invited to "{meeting.title}" from {meeting.start_time.isoformat()} '
            f"to {meeting.end_time.isoformat()} at {meeting.venue or 'TBD'}.",
        )

    def email_participants_of_cancellation(self, event: MeetingCancelled) -> None:
        meeting = self.meeting_repo.get(event.meeting_id)
        if meeting is None:
            return
        recipients = set(self._invitee_emails(meeting))
        for executive in self.executive_repo.list_by_ids(
            [*meeting.participants, event.cancelled_by]
        ):
            recipients.add(executive.email.lower())
        self.dispatcher.send_mail(
            recipients,
            f"Meeting Cancelled: {meeting.title}",
            f'"{meeting.title}" scheduled for {meeting.start_time.isoformat()} '
            "has been cancelled.",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _invitee_emails(meeting: Meeting) -> list[str]:
        return [entry.email.lower() for entry in meeting.invited if entry.email]

    def _names(self, executive_ids: list[str]) -> str:
        return ", ".join(e.name or e.email for e in self.executive_repo.list_by_ids(executive_ids))
