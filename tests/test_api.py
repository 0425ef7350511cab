"""End-to-end tests through the HTTP surface."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tms.main import (
    app,
    conflict_repo,
    executive_repo,
    mailer,
    meeting_repo,
    notification_repo,
    secretary_repo,
)


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    for repo in (executive_repo, secretary_repo, meeting_repo, conflict_repo):
        repo._store.clear()
    notification_repo._items.clear()
    mailer.outbox.clear()
    yield
    for repo in (executive_repo, secretary_repo, meeting_repo, conflict_repo):
        repo._store.clear()
    notification_repo._items.clear()
    mailer.outbox.clear()


@pytest.fixture()
def client():
    return TestClient(app)


def _headers(actor_id: str, role: str = "executive") -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


@pytest.fixture()
def people(client: TestClient):
    alice = client.post("/executives", json={"name": "Alice", "email": "Alice@Example.com"})
    bob = client.post("/executives", json={"name": "Bob", "email": "bob@example.com"})
    alice_id, bob_id = alice.json()["id"], bob.json()["id"]
    sam = client.post(
        "/secretaries",
        json={"name": "Sam", "email": "sam@example.com", "assigned_executives": [alice_id, bob_id]},
    )
    client.post(
        f"/executives/{bob_id}/tasks",
        json={
            "tasks": [
                {
                    "title": "Board prep",
                    "start_time": "2025-11-09T14:00:00Z",
                    "end_time": "2025-11-09T15:00:00Z",
                }
            ]
        },
        headers=_headers(bob_id),
    )
    return {
        "alice": _headers(alice_id),
        "bob": _headers(bob_id),
        "sam": _headers(sam.json()["id"], "secretary"),
        "alice_id": alice_id,
        "bob_id": bob_id,
    }


def _meeting(start: str, end: str, title: str = "Strategy sync") -> dict:
    return {
        "title": title,
        "start_time": start,
        "end_time": end,
        "participant_emails": ["bob@example.com"],
    }


# ---------------------------------------------------------------------------
# Executives and tasks
# ---------------------------------------------------------------------------


def test_register_executive_normalizes_email(client: TestClient, people):
    resp = client.get(f"/executives/{people['alice_id']}", headers=people["alice"])

    assert resp.status_code == 200
    assert resp.json()["email"] == "alice@example.com"


def test_duplicate_executive_email_rejected(client: TestClient, people):
    resp = client.post("/executives", json={"name": "Other", "email": "ALICE@example.com"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Executive already exists"


def test_my_tasks_alias(client: TestClient, people):
    resp = client.post(
        "/executives/me/tasks",
        json={"tasks": [{"title": "Call", "start_time": "2025-11-09T09:00:00Z"}]},
        headers=people["alice"],
    )

    assert resp.status_code == 201
    assert resp.json()[0]["end_time"].startswith("2025-11-09T09:30:00")

    listed = client.get("/executives/me/tasks?date=2025-11-09", headers=people["alice"])
    assert [t["title"] for t in listed.json()] == ["Call"]


def test_delete_missing_task_404(client: TestClient, people):
    resp = client.delete(f"/executives/{people['bob_id']}/tasks/missing", headers=people["bob"])

    assert resp.status_code == 404


def test_check_availability(client: TestClient, people):
    resp = client.post(
        "/executives/check-availability",
        json={
            "email": "bob@example.com",
            "start_time": "2025-11-09T14:30:00Z",
            "end_time": "2025-11-09T15:30:00Z",
        },
        headers=people["alice"],
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["free"] is False
    assert body["conflicts"][0]["type"] == "task"


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------


def test_clean_meeting_returns_201(client: TestClient, people):
    resp = client.post(
        "/meetings",
        json=_meeting("2025-11-09T15:00:00Z", "2025-11-09T16:00:00Z"),
        headers=people["alice"],
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["conflict"] is None
    assert body["meeting"]["status"] == "pending"
    assert len(body["added_tasks_to"]) == 2


def test_conflicting_meeting_returns_202(client: TestClient, people):
    resp = client.post(
        "/meetings",
        json=_meeting("2025-11-09T14:30:00Z", "2025-11-09T15:30:00Z"),
        headers=people["alice"],
    )

    assert resp.status_code == 202
    body = resp.json()
    assert body["meeting"]["status"] == "conflict"
    assert body["conflict"]["status"] == "open"
    assert body["added_tasks_to"] == []


def test_meeting_validation_400(client: TestClient, people):
    resp = client.post(
        "/meetings",
        json=_meeting("2025-11-09T16:00:00Z", "2025-11-09T15:00:00Z"),
        headers=people["alice"],
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "end_time must be after start_time"


def test_missing_identity_401(client: TestClient, people):
    resp = client.post("/meetings", json=_meeting("2025-11-09T15:00:00Z", "2025-11-09T16:00:00Z"))

    assert resp.status_code == 401


def test_rsvp_and_complete(client: TestClient, people):
    meeting = client.post(
        "/meetings",
        json=_meeting("2025-11-09T15:00:00Z", "2025-11-09T16:00:00Z"),
        headers=people["alice"],
    ).json()["meeting"]

    rsvp = client.post(
        "/meetings/rsvp",
        json={"meeting_id": meeting["id"], "response": "accepted"},
        headers=people["bob"],
    )
    assert rsvp.status_code == 200
    assert rsvp.json()["status"] == "scheduled"

    early = client.post(
        f"/meetings/{meeting['id']}/complete",
        params={"now": "2025-11-09T15:30:00Z"},
        headers=people["alice"],
    )
    assert early.status_code == 409

    done = client.post(
        f"/meetings/{meeting['id']}/complete",
        params={"now": "2025-11-09T16:05:00Z"},
        headers=people["alice"],
    )
    assert done.status_code == 200
    assert done.json()["status"] == "completed"


def test_cancel_by_non_creator_403(client: TestClient, people):
    meeting = client.post(
        "/meetings",
        json=_meeting("2025-11-09T15:00:00Z", "2025-11-09T16:00:00Z"),
        headers=people["alice"],
    ).json()["meeting"]

    resp = client.post(f"/meetings/{meeting['id']}/cancel", headers=people["bob"])

    assert resp.status_code == 403


def test_my_day(client: TestClient, people):
    client.post(
        "/meetings",
        json=_meeting("2025-11-09T15:00:00Z", "2025-11-09T16:00:00Z"),
        headers=people["alice"],
    )

    resp = client.get("/meetings/my-day", params={"date": "2025-11-09"}, headers=people["bob"])

    assert resp.status_code == 200
    assert [m["title"] for m in resp.json()] == ["Strategy sync"]


def test_unknown_meeting_404(client: TestClient, people):
    resp = client.get("/meetings/missing", headers=people["alice"])

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Meeting not found"


def test_manual_conflict_without_overlaps_409(client: TestClient, people):
    resp = client.post(
        "/meetings/conflicts/manual",
        json=_meeting("2025-11-09T09:00:00Z", "2025-11-09T10:00:00Z"),
        headers=people["alice"],
    )

    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Secretary desk
# ---------------------------------------------------------------------------


def test_secretary_routes_require_secretary_role(client: TestClient, people):
    resp = client.get("/secretary/conflicts", headers=people["alice"])

    assert resp.status_code == 403


def test_conflict_desk_flow(client: TestClient, people):
    created = client.post(
        "/meetings",
        json=_meeting("2025-11-09T14:30:00Z", "2025-11-09T15:30:00Z"),
        headers=people["alice"],
    ).json()
    conflict_id = created["conflict"]["id"]

    inbox = client.get("/secretary/notifications", headers=people["sam"]).json()
    assert inbox["unread_count"] == 1
    assert inbox["notifications"][0]["conflict_id"] == conflict_id

    queue = client.get("/secretary/conflicts", params={"status": "open"}, headers=people["sam"])
    assert [c["id"] for c in queue.json()] == [conflict_id]

    proposal = client.patch(
        f"/secretary/conflicts/{conflict_id}/proposals",
        json={"start_time": "2025-11-09T16:00:00Z", "end_time": "2025-11-09T16:30:00Z"},
        headers=people["sam"],
    )
    assert proposal.status_code == 200
    assert proposal.json()["status"] == "in_progress"

    resolved = client.patch(
        f"/secretary/conflicts/{conflict_id}/resolve",
        json={
            "start_time": "2025-11-09T16:00:00Z",
            "end_time": "2025-11-09T16:30:00Z",
            "resolution_notes": "Moved to 4pm",
        },
        headers=people["sam"],
    )
    assert resolved.status_code == 200
    assert resolved.json()["meeting"]["status"] == "pending"
    assert resolved.json()["conflict"]["status"] == "resolved"

    again = client.post(f"/secretary/conflicts/{conflict_id}/escalate", headers=people["sam"])
    assert again.status_code == 409

    summary = client.get("/secretary/conflicts/summary", headers=people["sam"]).json()
    assert summary["summary"]["resolved"] == 1
    assert summary["open_meetings"] == 0


def test_unknown_conflict_404(client: TestClient, people):
    resp = client.get("/secretary/conflicts/missing", headers=people["sam"])

    assert resp.status_code == 404


def test_mark_notifications(client: TestClient, people):
    client.post(
        "/meetings",
        json=_meeting("2025-11-09T14:30:00Z", "2025-11-09T15:30:00Z"),
        headers=people["alice"],
    )
    [item] = client.get("/secretary/notifications", headers=people["sam"]).json()["notifications"]

    read = client.patch(f"/secretary/notifications/{item['id']}/read", headers=people["sam"])
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    unread = client.patch(
        f"/secretary/notifications/{item['id']}/read",
        json={"mark": "unread"},
        headers=people["sam"],
    )
    assert unread.json()["is_read"] is False

    marked = client.post("/secretary/notifications/mark-all-read", headers=people["sam"])
    assert marked.json() == {"updated": 1}

    missing = client.patch("/secretary/notifications/missing/read", headers=people["sam"])
    assert missing.status_code == 404
