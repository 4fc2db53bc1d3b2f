"""HTTP tests for the users/applications routes and their reminder side effects."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.middleware.auth import create_access_token


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _register_and_login(client, name="Ada"):
    email = f"{uuid.uuid4().hex[:12]}@example.com"
    resp = client.post("/api/users/register", json={"name": name, "email": email, "password": "s3cret!"})
    assert resp.status_code == 201
    resp = client.post("/api/users/login", json={"email": email, "password": "s3cret!"})
    assert resp.status_code == 200
    body = resp.json()
    return {"Authorization": body["token"]}, body["user"]


def _deadline_in(**kwargs) -> str:
    return (datetime.now(timezone.utc) + timedelta(**kwargs)).isoformat()


def _pending(application_id):
    return app.state.reminders.pending({application_id})


# =========================================================================
# health
# =========================================================================

def test_healthcheck(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_snapshot(client) -> None:
    body = client.get("/metrics").json()
    assert "counters" in body
    assert "pending_reminders" in body


# =========================================================================
# users
# =========================================================================

def test_register_login_profile(client) -> None:
    headers, user = _register_and_login(client, name="Grace")
    profile = client.get("/api/users/profile", headers=headers)
    assert profile.status_code == 200
    body = profile.json()
    assert body["name"] == "Grace"
    assert body["email"] == user["email"]
    assert "password_hash" not in body


def test_register_requires_email_and_password(client) -> None:
    assert client.post("/api/users/register", json={"email": "x@example.com"}).status_code == 400
    assert client.post("/api/users/register", json={"password": "pw"}).status_code == 400


def test_duplicate_email_rejected(client) -> None:
    email = f"{uuid.uuid4().hex[:12]}@example.com"
    assert client.post("/api/users/register", json={"email": email, "password": "pw"}).status_code == 201
    resp = client.post("/api/users/register", json={"email": email, "password": "other"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already registered"


def test_login_failures(client) -> None:
    email = f"{uuid.uuid4().hex[:12]}@example.com"
    client.post("/api/users/register", json={"email": email, "password": "right"})

    assert client.post("/api/users/login", json={"email": email, "password": "wrong"}).status_code == 401
    assert client.post("/api/users/login", json={"email": "nobody@example.com", "password": "x"}).status_code == 404


def test_token_required(client) -> None:
    assert client.get("/api/applications/").status_code == 401
    assert client.get("/api/applications/", headers={"Authorization": "garbage"}).status_code == 403


def test_bearer_prefix_accepted(client) -> None:
    headers, _ = _register_and_login(client)
    resp = client.get("/api/applications/", headers={"Authorization": f"Bearer {headers['Authorization']}"})
    assert resp.status_code == 200


def test_token_for_unknown_user_has_no_profile(client) -> None:
    headers = {"Authorization": create_access_token(987654321)}
    assert client.get("/api/users/profile", headers=headers).status_code == 404


# =========================================================================
# applications + reminders
# =========================================================================

def test_create_with_deadline_schedules_three_reminders(client) -> None:
    headers, user = _register_and_login(client)
    resp = client.post(
        "/api/applications/",
        json={"title": "Initech SWE Intern", "type": "Internship", "deadline": _deadline_in(hours=25)},
        headers=headers,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "Not Started"
    assert body["userId"] == user["id"]

    timers = _pending(body["id"])
    assert [t.offset_index for t in timers] == [0, 1, 2]
    assert all(t.recipient == user["email"] for t in timers)


def test_create_without_deadline_schedules_nothing(client) -> None:
    headers, _ = _register_and_login(client)
    resp = client.post("/api/applications/", json={"title": "Open application", "status": "In Progress"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["status"] == "In Progress"
    assert _pending(resp.json()["id"]) == []


def test_update_deadline_replaces_reminders(client) -> None:
    headers, _ = _register_and_login(client)
    app_id = client.post(
        "/api/applications/", json={"title": "Hooli", "deadline": _deadline_in(days=3)}, headers=headers
    ).json()["id"]
    assert len(_pending(app_id)) == 3

    resp = client.put(f"/api/applications/{app_id}", json={"deadline": _deadline_in(hours=1)}, headers=headers)
    assert resp.status_code == 200
    assert [t.offset_index for t in _pending(app_id)] == [2]

    resp = client.put(f"/api/applications/{app_id}", json={"deadline": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["deadline"] is None
    assert _pending(app_id) == []


def test_update_other_fields_keeps_title(client) -> None:
    headers, _ = _register_and_login(client)
    app_id = client.post("/api/applications/", json={"title": "Globex"}, headers=headers).json()["id"]

    resp = client.put(
        f"/api/applications/{app_id}",
        json={"status": "Interview Scheduled", "notes": "Panel on Friday"},
        headers=headers,
    )
    body = resp.json()
    assert body["title"] == "Globex"
    assert body["status"] == "Interview Scheduled"
    assert body["notes"] == "Panel on Friday"


def test_delete_cancels_reminders(client) -> None:
    headers, _ = _register_and_login(client)
    app_id = client.post(
        "/api/applications/", json={"title": "Umbrella", "deadline": _deadline_in(days=2)}, headers=headers
    ).json()["id"]

    resp = client.delete(f"/api/applications/{app_id}", headers=headers)
    assert resp.status_code == 200
    assert _pending(app_id) == []
    assert client.delete(f"/api/applications/{app_id}", headers=headers).status_code == 404


def test_other_users_cannot_touch_application(client) -> None:
    owner_headers, _ = _register_and_login(client)
    intruder_headers, _ = _register_and_login(client, name="Mallory")
    app_id = client.post("/api/applications/", json={"title": "Private"}, headers=owner_headers).json()["id"]

    assert client.put(f"/api/applications/{app_id}", json={"title": "x"}, headers=intruder_headers).status_code == 404
    assert client.delete(f"/api/applications/{app_id}", headers=intruder_headers).status_code == 404
    assert client.get("/api/applications/", headers=intruder_headers).json() == []


def test_list_sorted_by_deadline(client) -> None:
    headers, _ = _register_and_login(client)
    client.post("/api/applications/", json={"title": "undated"}, headers=headers)
    client.post("/api/applications/", json={"title": "later", "deadline": _deadline_in(days=5)}, headers=headers)
    client.post("/api/applications/", json={"title": "sooner", "deadline": _deadline_in(days=1)}, headers=headers)

    titles = [a["title"] for a in client.get("/api/applications/", headers=headers).json()]
    assert titles == ["sooner", "later", "undated"]


def test_pending_reminders_endpoint_scoped_to_caller(client) -> None:
    headers, _ = _register_and_login(client)
    other_headers, _ = _register_and_login(client, name="Bob")
    app_id = client.post(
        "/api/applications/", json={"title": "Stark", "deadline": _deadline_in(hours=30)}, headers=headers
    ).json()["id"]
    client.post("/api/applications/", json={"title": "Wayne", "deadline": _deadline_in(hours=30)}, headers=other_headers)

    reminders = client.get("/api/reminders/pending", headers=headers).json()["reminders"]
    assert {r["applicationId"] for r in reminders} == {app_id}
    assert [r["subject"] for r in reminders] == [
        "Your application is due tomorrow!",
        "2 hours left to submit!",
        "Did you finish your application?",
    ]


def test_null_status_on_update_keeps_stored_status(client) -> None:
    headers, _ = _register_and_login(client)
    app_id = client.post(
        "/api/applications/",
        json={"title": "Soylent", "status": "Submitted", "deadline": _deadline_in(hours=30)},
        headers=headers,
    ).json()["id"]

    resp = client.put(f"/api/applications/{app_id}", json={"status": None, "title": None}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "Submitted"
    assert resp.json()["title"] == "Soylent"
    assert len(_pending(app_id)) == 3


def test_update_moves_updated_at_forward(client) -> None:
    headers, _ = _register_and_login(client)
    created = client.post("/api/applications/", json={"title": "Vandelay"}, headers=headers).json()

    updated = client.put(f"/api/applications/{created['id']}", json={"notes": "Called back"}, headers=headers).json()
    assert datetime.fromisoformat(updated["updatedAt"]) >= datetime.fromisoformat(created["updatedAt"])
    assert datetime.fromisoformat(updated["updatedAt"]).tzinfo is None
