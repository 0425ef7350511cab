"""In-memory repositories for executives, meetings, conflicts and notifications.

Documents are handed out as copies. Changes become visible only through
``save``, which is a compare-and-swap on the document ``version`` so that two
writers racing on the same document cannot silently overwrite each other.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel

from tms.domain.errors import ConcurrentModification, NotFound
from tms.domain.models import (
    ACTIVE_MEETING_STATUSES,
    Conflict,
    ConflictStatus,
    Executive,
    Meeting,
    MeetingStatus,
    Notification,
    Secretary,
    normalize_email,
)

T = TypeVar("T", bound=BaseModel)


class _DocumentStore(Generic[T]):
    """Dict-backed store keyed by document id."""

    label = "Document"

    def __init__(self) -> None:
        self._store: dict[str, T] = {}

    def add(self, doc: T) -> T:
        self._store[doc.id] = doc.model_copy(deep=True)
        return doc

    def get(self, doc_id: str) -> T | None:
        doc = self._store.get(doc_id)
        return doc.model_copy(deep=True) if doc is not None else None

    def require(self, doc_id: str) -> T:
        doc = self.get(doc_id)
        if doc is None:
            raise NotFound(f"{self.label} not found")
        return doc

    def list_all(self) -> list[T]:
        return [doc.model_copy(deep=True) for doc in self._store.values()]

    def ensure_current(self, doc: T) -> None:
        """Raise if *doc* was read before the latest write to the same id."""
        stored = self._store.get(doc.id)
        if stored is None:
            raise NotFound(f"{self.label} not found")
        if getattr(stored, "version", 0) != getattr(doc, "version", 0):
            raise ConcurrentModification(
                f"{self.label} {doc.id} was modified concurrently; reload and retry"
            )

    def save(self, doc: T) -> T:
        self.ensure_current(doc)
        if hasattr(doc, "updated_at"):
            doc.updated_at = datetime.now(timezone.utc)
        if hasattr(doc, "version"):
            doc.version += 1
        self._store[doc.id] = doc.model_copy(deep=True)
        return doc


class ExecutiveRepository(_DocumentStore[Executive]):
    label = "Executive"

    def get_by_email(self, email: str) -> Executive | None:
        email = normalize_email(email)
        for executive in self._store.values():
            if normalize_email(executive.email) == email:
                return executive.model_copy(deep=True)
        return None

    def list_by_emails(self, emails: Iterable[str]) -> list[Executive]:
        """Return the executives matching *emails*, in the order given."""
        found = []
        for email in emails:
            executive = self.get_by_email(email)
            if executive is not None:
                found.append(executive)
        return found

    def list_by_ids(self, executive_ids: Iterable[str]) -> list[Executive]:
        return [
            self._store[eid].model_copy(deep=True)
            for eid in dict.fromkeys(executive_ids)
            if eid in self._store
        ]


class SecretaryRepository(_DocumentStore[Secretary]):
    label = "Secretary"

    def get_by_email(self, email: str) -> Secretary | None:
        email = normalize_email(email)
        for secretary in self._store.values():
            if normalize_email(secretary.email) == email:
                return secretary.model_copy(deep=True)
        return None

    def list_assigned_to(self, executive_ids: Iterable[str]) -> list[Secretary]:
        wanted = set(executive_ids)
        return [
            s.model_copy(deep=True)
            for s in self._store.values()
            if wanted.intersection(s.assigned_executives)
        ]


class MeetingRepository(_DocumentStore[Meeting]):
    label = "Meeting"

    def list_overlapping(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[MeetingStatus] = ACTIVE_MEETING_STATUSES,
    ) -> list[Meeting]:
        """Meetings in *statuses* whose own interval intersects ``[start, end)``."""
        allowed = set(statuses)
        return [
            m.model_copy(deep=True)
            for m in self._store.values()
            if m.status in allowed and m.start_time < end and start < m.end_time
        ]

    def list_for_day(
        self, executive_id: str, email: str | None, start: datetime, end: datetime
    ) -> list[Meeting]:
        """Meetings in ``[start, end)`` the executive attends, is invited to or created."""
        meetings = [
            m.model_copy(deep=True)
            for m in self._store.values()
            if m.start_time < end
            and start < m.end_time
            and (m.created_by == executive_id or m.involves(executive_id, email))
        ]
        return sorted(meetings, key=lambda m: m.start_time)

    def count_open_conflicts(self) -> int:
        return sum(
            1
            for m in self._store.values()
            if m.has_conflict and m.conflict_status == ConflictStatus.OPEN
        )


class ConflictRepository(_DocumentStore[Conflict]):
    label = "Conflict"

    def get_for_meeting(self, meeting_id: str) -> Conflict | None:
        for conflict in self._store.values():
            if conflict.meeting_id == meeting_id:
                return conflict.model_copy(deep=True)
        return None

    def list_recent(self, status: ConflictStatus | None = None, limit: int = 25) -> list[Conflict]:
        conflicts = [
            c for c in self._store.values() if status is None or c.status == status
        ]
        conflicts.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in conflicts[:limit]]

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ConflictStatus}
        for conflict in self._store.values():
            counts[conflict.status.value] += 1
        return counts

    def last_updated(self) -> datetime | None:
        return max((c.updated_at for c in self._store.values()), default=None)


class NotificationRepository:
    """List-backed store for secretary notifications."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add_many(self, notifications: Iterable[Notification]) -> int:
        added = 0
        for notification in notifications:
            self._items.append(notification)
            added += 1
        return added

    def get_for(self, notification_id: str, secretary_id: str) -> Notification | None:
        for item in self._items:
            if item.id == notification_id and item.recipient_secretary == secretary_id:
                return item
        return None

    def list_for(
        self, secretary_id: str, status: str = "all", limit: int = 20, skip: int = 0
    ) -> list[Notification]:
        items = [n for n in self._items if n.recipient_secretary == secretary_id]
        if status == "unread":
            items = [n for n in items if n.read_at is None]
        elif status == "read":
            items = [n for n in items if n.read_at is not None]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items[skip : skip + limit]

    def unread_count(self, secretary_id: str) -> int:
        return sum(
            1
            for n in self._items
            if n.recipient_secretary == secretary_id and n.read_at is None
        )

    def mark_all_read(self, secretary_id: str, at: datetime) -> int:
        updated = 0
        for item in self._items:
            if item.recipient_secretary == secretary_id and item.read_at is None:
                item.read_at = at
                updated += 1
        return updated

    def list_for_conflict(self, conflict_id: str) -> list[Notification]:
        return [n for n in self._items if n.conflict_id == conflict_id]
