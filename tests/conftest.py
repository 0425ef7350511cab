"""Shared fixtures: a fresh bus, repositories and services per test."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tms.domain.bus import EventBus
from tms.domain.handlers import HandlerRegistry
from tms.domain.models import Actor, ActorRole, Executive, Secretary, Task
from tms.repos.memory import (
    ConflictRepository,
    ExecutiveRepository,
    MeetingRepository,
    NotificationRepository,
    SecretaryRepository,
)
from tms.services.conflict_lifecycle import ConflictService
from tms.services.meetings import MeetingService
from tms.services.notifications import LoggingMailer, NotificationDispatcher


def at(hour: int, minute: int = 0, day: int = 9) -> datetime:
    """A UTC timestamp on 2025-11-<day>."""
    return datetime(2025, 11, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture()
def env():
    """Fresh bus + repos + services + handler registry for each test."""
    bus = EventBus()
    executive_repo = ExecutiveRepository()
    secretary_repo = SecretaryRepository()
    meeting_repo = MeetingRepository()
    conflict_repo = ConflictRepository()
    notification_repo = NotificationRepository()
    mailer = LoggingMailer()
    dispatcher = NotificationDispatcher(notification_repo, secretary_repo, mailer)

    registry = HandlerRegistry(
        bus=bus,
        executive_repo=executive_repo,
        meeting_repo=meeting_repo,
        conflict_repo=conflict_repo,
        dispatcher=dispatcher,
    )

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.executive_repo = executive_repo
    e.secretary_repo = secretary_repo
    e.meeting_repo = meeting_repo
    e.conflict_repo = conflict_repo
    e.notification_repo = notification_repo
    e.mailer = mailer
    e.dispatcher = dispatcher
    e.registry = registry
    e.meetings = MeetingService(bus, executive_repo, meeting_repo, conflict_repo)
    e.conflicts = ConflictService(bus, executive_repo, meeting_repo, conflict_repo)
    return e


def add_executive(env, name: str, email: str, tasks: list[Task] | None = None) -> Executive:
    return env.executive_repo.add(Executive(name=name, email=email, tasks=tasks or []))


def add_secretary(env, name: str, email: str, assigned: list[str]) -> Secretary:
    return env.secretary_repo.add(
        Secretary(name=name, email=email, assigned_executives=assigned)
    )


def as_actor(doc, role: ActorRole = ActorRole.EXECUTIVE) -> Actor:
    return Actor(id=doc.id, role=role)


@pytest.fixture()
def board(env):
    """Alice (no tasks) and Bob (busy 14:00-15:00 on 2025-11-09), plus their secretary."""
    alice = add_executive(env, "Alice", "alice@example.com")
    bob = add_executive(
        env,
        "Bob",
        "bob@example.com",
        tasks=[Task(title="Board prep", start_time=at(14), end_time=at(15))],
    )
    sam = add_secretary(env, "Sam", "sam@example.com", [alice.id, bob.id])

    class Board:
        pass

    b = Board()
    b.alice = alice
    b.bob = bob
    b.sam = sam
    b.as_alice = as_actor(alice)
    b.as_bob = as_actor(bob)
    b.as_sam = as_actor(sam, ActorRole.SECRETARY)
    return b
