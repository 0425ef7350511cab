"""Tests for RSVPs, cancellation, completion and the my-day view."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import add_executive, as_actor, at
from tms.domain.errors import Forbidden, InvalidInput, NotFound, StateViolation
from tms.domain.models import (
    Actor,
    ActorRole,
    CreateMeetingRequest,
    InviteStatus,
    MeetingStatus,
    TaskStatus,
)


@pytest.fixture()
def booked(env, board):
    """A conflict-free 15:00-16:00 meeting from Alice with Bob invited."""
    result = env.meetings.create_meeting(
        CreateMeetingRequest(
            title="Strategy sync",
            start_time=at(15),
            end_time=at(16),
            participant_emails=["bob@example.com"],
        ),
        board.as_alice,
    )
    return result.meeting


def test_all_accepted_schedules_meeting(env, board, booked):
    meeting = env.meetings.respond(booked.id, board.as_bob, "accepted")

    assert meeting.status == MeetingStatus.SCHEDULED
    assert env.meeting_repo.get(booked.id).status == MeetingStatus.SCHEDULED


def test_decline_reverts_to_pending_and_drops_participant(env, board, booked):
    env.meetings.respond(booked.id, board.as_bob, "accepted")
    meeting = env.meetings.respond(booked.id, board.as_bob, "Declined")

    assert meeting.status == MeetingStatus.PENDING
    assert board.bob.id not in meeting.participants
    assert meeting.find_invitee(board.bob.id).status == InviteStatus.DECLINED


def test_tentative_keeps_meeting_pending(env, board, booked):
    meeting = env.meetings.respond(booked.id, board.as_bob, "tentative")

    assert meeting.status == MeetingStatus.PENDING
    assert meeting.find_invitee(board.bob.id).status == InviteStatus.TENTATIVE


def test_uninvited_responder_is_added(env, board, booked):
    carol = add_executive(env, "Carol", "carol@example.com")

    meeting = env.meetings.respond(booked.id, as_actor(carol), "accepted")

    entry = meeting.find_invitee(carol.id)
    assert entry is not None and entry.email == "carol@example.com"
    assert meeting.status == MeetingStatus.PENDING


def test_invalid_response_rejected(env, board, booked):
    with pytest.raises(InvalidInput, match="Invalid response"):
        env.meetings.respond(booked.id, board.as_bob, "maybe")


def test_rsvp_unknown_meeting(env, board):
    with pytest.raises(NotFound, match="Meeting not found"):
        env.meetings.respond("missing", board.as_bob, "accepted")


def test_rsvp_unknown_executive(env, board, booked):
    with pytest.raises(NotFound):
        env.meetings.respond(booked.id, Actor(id="nobody", role=ActorRole.EXECUTIVE), "accepted")


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


def test_cancel_closes_rsvps_and_mirrors_tasks(env, board, booked):
    meeting = env.meetings.cancel(booked.id, board.as_alice, now=at(12))

    assert meeting.status == MeetingStatus.CANCELLED
    assert meeting.cancelled_by == board.alice.id
    assert all(e.status == InviteStatus.CANCELLED for e in meeting.invited)

    for executive_id in (board.alice.id, board.bob.id):
        executive = env.executive_repo.get(executive_id)
        [task] = [t for t in executive.tasks if t.meeting_id == booked.id]
        assert task.status == TaskStatus.CANCELLED
        assert task.cancelled_at == at(12)

    with pytest.raises(StateViolation, match="cancelled"):
        env.meetings.respond(booked.id, board.as_bob, "accepted")


def test_cancel_is_idempotent(env, board, booked):
    first = env.meetings.cancel(booked.id, board.as_alice, now=at(12))
    second = env.meetings.cancel(booked.id, board.as_alice, now=at(13))

    assert second.cancelled_at == first.cancelled_at
    assert second.version == first.version


def test_only_creator_may_cancel(env, board, booked):
    with pytest.raises(Forbidden):
        env.meetings.cancel(booked.id, board.as_bob)
    assert env.meeting_repo.get(booked.id).status == MeetingStatus.PENDING


def test_cancelled_meeting_frees_the_slot(env, board, booked):
    env.meetings.cancel(booked.id, board.as_alice, now=at(12))

    result = env.meetings.create_meeting(
        CreateMeetingRequest(
            title="Replacement",
            start_time=at(15),
            end_time=at(16),
            participant_emails=["bob@example.com"],
        ),
        board.as_alice,
    )

    assert result.conflict is None


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


def test_complete_before_end_rejected(env, board, booked):
    with pytest.raises(StateViolation, match="end time not reached"):
        env.meetings.complete(booked.id, board.as_alice, now=at(15, 30))
    assert env.meeting_repo.get(booked.id).status == MeetingStatus.PENDING


def test_complete_after_end(env, board, booked):
    meeting = env.meetings.complete(booked.id, board.as_alice, now=at(16))

    assert meeting.status == MeetingStatus.COMPLETED
    assert meeting.completed_at == at(16)

    with pytest.raises(StateViolation):
        env.meetings.respond(booked.id, board.as_bob, "accepted")
    with pytest.raises(StateViolation):
        env.meetings.cancel(booked.id, board.as_alice)


def test_complete_cancelled_meeting_rejected(env, board, booked):
    env.meetings.cancel(booked.id, board.as_alice, now=at(12))
    with pytest.raises(StateViolation):
        env.meetings.complete(booked.id, board.as_alice, now=at(17))


def test_only_creator_may_complete(env, board, booked):
    with pytest.raises(Forbidden):
        env.meetings.complete(booked.id, board.as_bob, now=at(17))


# ---------------------------------------------------------------------------
# My day
# ---------------------------------------------------------------------------


def test_my_day_lists_invited_and_created(env, board, booked):
    other_day = env.meetings.create_meeting(
        CreateMeetingRequest(
            title="Next day",
            start_time=at(9, day=10),
            end_time=at(10, day=10),
            participant_emails=["bob@example.com"],
        ),
        board.as_alice,
    )

    today = env.meetings.my_day(board.as_bob, "2025-11-09", now=at(8))
    tomorrow = env.meetings.my_day(board.as_bob, None, now=at(8) + timedelta(days=1))

    assert [m.id for m in today] == [booked.id]
    assert [m.id for m in tomorrow] == [other_day.meeting.id]


def test_my_day_rejects_garbage_date(env, board):
    with pytest.raises(InvalidInput):
        env.meetings.my_day(board.as_bob, "blorptastic", now=at(8))
