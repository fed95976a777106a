"""
Integration tests for the streak API endpoints.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

import protocolstack.features.streaks.service as service_module
from protocolstack.features.streaks.store import InMemoryStreakStore
from protocolstack.main import app

client = TestClient(app)


@pytest.fixture
def clock(monkeypatch):
    """Pin "today" for every zone; tests move it with clock['today']."""
    state = {"today": "2025-12-01"}
    monkeypatch.setattr(service_module, "resolve_today", lambda zone, now=None: state["today"])
    return state


def _complete(stack_id, user="alice", tz="UTC"):
    return client.post(
        f"/v1/stacks/{stack_id}/streak/complete",
        headers={"X-User-Id": user},
        json={"timezone": tz},
    )


def test_complete_requires_auth():
    resp = client.post(f"/v1/stacks/{uuid4()}/streak/complete", json={})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"


def test_first_completion(clock):
    stack_id = str(uuid4())
    resp = _complete(stack_id)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["success"] is True
    assert data["streak"] == 1
    assert data["longest_streak"] == 1
    assert data["badge_unlocked"] is None
    assert data["badge_info"] is None
    assert data["today"] == "2025-12-01"


def test_complete_without_body_uses_default_timezone():
    stack_id = str(uuid4())
    resp = client.post(f"/v1/stacks/{stack_id}/streak/complete", headers={"X-User-Id": "alice"})
    assert resp.status_code == 200
    assert resp.json()["data"]["streak"] == 1

    streak = client.get(f"/v1/stacks/{stack_id}/streak", headers={"X-User-Id": "alice"}).json()["data"]["streak"]
    assert streak["timezone"] == "UTC"


def test_week_unlocks_badge(clock):
    stack_id = str(uuid4())
    days = ["2025-12-01", "2025-12-02", "2025-12-03", "2025-12-04", "2025-12-05", "2025-12-06", "2025-12-07"]
    last = None
    for day in days:
        clock["today"] = day
        last = _complete(stack_id).json()["data"]

    assert last["streak"] == 7
    assert last["badge_unlocked"] == "streak_7"
    assert last["badge_info"] == {"label": "7-Day Streak", "days": 7}

    badges = client.get(f"/v1/stacks/{stack_id}/badges", headers={"X-User-Id": "alice"}).json()["data"]
    assert [b["badge_type"] for b in badges] == ["streak_7"]

    all_badges = client.get("/v1/badges", headers={"X-User-Id": "alice"}).json()["data"]
    assert len(all_badges) == 1
    assert all_badges[0]["stack_id"] == stack_id


def test_stack_streak_at_risk(clock):
    stack_id = str(uuid4())
    _complete(stack_id)

    clock["today"] = "2025-12-03"
    resp = client.get(f"/v1/stacks/{stack_id}/streak", headers={"X-User-Id": "alice"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["streak"]["current_streak"] == 1
    assert data["streak"]["last_activity_date"] == "2025-12-01"
    assert data["is_at_risk"] is True


def test_stack_streak_missing_returns_null():
    resp = client.get(f"/v1/stacks/{uuid4()}/streak", headers={"X-User-Id": "nobody"})
    assert resp.status_code == 200
    assert resp.json()["data"]["streak"] is None
    assert resp.json()["data"]["is_at_risk"] is False


def test_list_streaks_scoped_to_user(clock):
    a, b = str(uuid4()), str(uuid4())
    _complete(a, user="alice")
    _complete(b, user="alice")
    _complete(a, user="bob")

    alice = client.get("/v1/streaks", headers={"X-User-Id": "alice"}).json()["data"]
    bob = client.get("/v1/streaks", headers={"X-User-Id": "bob"}).json()["data"]
    assert {s["stack_id"] for s in alice} == {a, b}
    assert [s["stack_id"] for s in bob] == [a]


def test_invalid_stack_id_is_validation_error():
    resp = _complete("not-a-uuid")
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_unknown_timezone_rejected():
    resp = _complete(str(uuid4()), tz="Mars/Olympus_Mons")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "unknown_timezone"


def test_badge_info():
    resp = client.get("/v1/badges/streak_30/info")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"label": "30-Day Streak", "days": 30}


def test_badge_info_unknown():
    resp = client.get("/v1/badges/streak_5/info")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_malformed_stored_date_is_invalid_date_format(clock, fresh_streak_store):
    if not isinstance(fresh_streak_store, InMemoryStreakStore):
        pytest.skip("corrupts an in-memory record")
    stack_id = str(uuid4())
    _complete(stack_id)
    fresh_streak_store.get_streak("alice", stack_id).last_activity_date = "2025/12/01"

    resp = client.get(f"/v1/stacks/{stack_id}/streak", headers={"X-User-Id": "alice"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_date_format"

    resp = _complete(stack_id)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_date_format"
