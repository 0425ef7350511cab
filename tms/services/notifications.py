"""Service for fanning notifications out to secretaries and participants."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, Field

from tms import config
from tms.domain.errors import InvalidInput
from tms.domain.models import (
    Notification,
    NotificationChannel,
    NotificationSeverity,
)
from tms.repos.memory import NotificationRepository, SecretaryRepository

logger = logging.getLogger(__name__)


class OutgoingMail(BaseModel):
    to: list[str]
    subject: str
    text: str
    sender: str = Field(default_factory=lambda: config.MAIL_SENDER)


class Mailer(Protocol):
    def send(self, mail: OutgoingMail) -> None: ...


class LoggingMailer:
    """Mailer that records and logs outgoing mail instead of delivering it."""

    def __init__(self) -> None:
        self.outbox: list[OutgoingMail] = []

    def send(self, mail: OutgoingMail) -> None:
        self.outbox.append(mail)
        logger.info("Mail to %s: %s", ", ".join(mail.to), mail.subject)


class NotificationDispatcher:
    """Inserts inbox notifications for secretaries and hands mail to a mailer."""

    def __init__(
        self,
        notification_repo: NotificationRepository,
        secretary_repo: SecretaryRepository,
        mailer: Mailer,
    ) -> None:
        self.notification_repo = notification_repo
        self.secretary_repo = secretary_repo
        self.mailer = mailer

    def dispatch_to_secretaries(
        self,
        secretary_ids: Iterable[str],
        title: str,
        message: str,
        channel: NotificationChannel = NotificationChannel.SYSTEM,
        severity: NotificationSeverity = NotificationSeverity.INFO,
        meeting_id: str | None = None,
        conflict_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        email_subject: str | None = None,
        email_text: str | None = None,
    ) -> int:
        """Insert one notification per known secretary; return how many were stored."""
        secretary_ids = list(dict.fromkeys(secretary_ids))
        if not secretary_ids:
            return 0
        if not title or not message:
            raise InvalidInput("Notification requires title and message")

        secretaries = [s for s in map(self.secretary_repo.get, secretary_ids) if s]
        if not secretaries:
            return 0

        inserted = self.notification_repo.add_many(
            Notification(
                recipient_secretary=s.id,
                title=title,
                message=message,
                channel=channel,
                severity=severity,
                meeting_id=meeting_id,
                conflict_id=conflict_id,
                metadata=metadata or {},
            )
            for s in secretaries
        )

        recipients = [s.email for s in secretaries if s.email]
        if recipients:
            self.send_mail(recipients, email_subject or title, email_text or message)
        return inserted

    def notify_secretaries_for_executives(
        self, executive_ids: Iterable[str], **kwargs: Any
    ) -> int:
        """Notify every secretary assigned to at least one of *executive_ids*."""
        executive_ids = [eid for eid in executive_ids if eid]
        if not executive_ids:
            return 0
        secretaries = self.secretary_repo.list_assigned_to(executive_ids)
        if not secretaries:
            logger.info("No secretary assigned to executives %s", executive_ids)
            return 0
        return self.dispatch_to_secretaries([s.id for s in secretaries], **kwargs)

    def send_mail(self, to: Iterable[str], subject: str, text: str) -> bool:
        recipients = sorted({addr for addr in to if addr})
        if not recipients or not config.MAIL_ENABLED:
            return False
        self.mailer.send(OutgoingMail(to=recipients, subject=subject, text=text))
        return True

    # ------------------------------------------------------------------
    # Secretary inbox
    # ------------------------------------------------------------------

    def list_inbox(
        self, secretary_id: str, status: str = "all", limit: int | None = None, skip: int = 0
    ) -> tuple[list[Notification], int]:
        if status not in ("all", "unread", "read"):
            raise InvalidInput("status must be one of all, unread, read")
        limit = limit or config.NOTIFICATION_LIST_LIMIT
        limit = min(max(limit, 1), config.NOTIFICATION_LIST_MAX)
        skip = max(skip, 0)
        items = self.notification_repo.list_for(secretary_id, status, limit, skip)
        return items, self.notification_repo.unread_count(secretary_id)

    def mark(self, secretary_id: str, notification_id: str, read: bool = True) -> Notification | None:
        notification = self.notification_repo.get_for(notification_id, secretary_id)
        if notification is None:
            return None
        notification.read_at = datetime.now(timezone.utc) if read else None
        return notification

    def mark_all_read(self, secretary_id: str) -> int:
        return self.notification_repo.mark_all_read(secretary_id, datetime.now(timezone.utc))
