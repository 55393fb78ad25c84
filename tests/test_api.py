from __future__ import annotations

import pytest

from rollcall.main import create_app
from tests.fakes import CTX, KEY, make_enrollment, make_student


@pytest.fixture
def app(monkeypatch, container, students_repo):
    monkeypatch.setenv("APP_ENV", "testing")
    students_repo.seed(
        *[make_student(f"S{i}", f"R{i}", enrollments=[make_enrollment(i, f"S{i}")]) for i in range(1, 6)]
    )
    return create_app(container)


def _login(client, user_id="F1", role="faculty", department="CSE"):
    with client.session_transaction() as s:
        s["user_id"] = user_id
        s["role"] = role
        s["department"] = department
        s["status"] = "active"


def test_requires_session(app):
    resp = app.test_client().get("/api/roster", query_string=CTX)

    assert resp.status_code == 403
    assert resp.get_json()["success"] is False


def test_roster_endpoint(app):
    client = app.test_client()
    _login(client)

    resp = client.get("/api/roster", query_string={k: v for k, v in CTX.items() if k != "department"})

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["data"]["strategy_used"] == "canonical_match"
    assert [s["roll_number"] for s in body["data"]["students"]] == ["R1", "R2", "R3", "R4", "R5"]


def test_malformed_context_is_400(app):
    client = app.test_client()
    _login(client)

    resp = client.get("/api/roster", query_string={**CTX, "semester": "Sem 7"})

    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "MALFORMED_CONTEXT"


def test_mark_edit_and_report(app):
    client = app.test_client()
    _login(client)

    marked = client.post("/api/attendance", json={**CTX, "date": "2025-03-10", "absent_roll_numbers": ["R1", "R5"]})
    edited = client.put("/api/attendance", json={**CTX, "date": "2025-03-10", "absent_roll_numbers": ["R1"]})
    report = client.get("/api/attendance/report", query_string={"composite_key": KEY, "start": "2025-03-01", "end": "2025-03-31"})

    assert marked.status_code == 201
    assert marked.get_json()["data"]["present"] == ["R2", "R3", "R4"]
    assert edited.status_code == 200
    assert edited.get_json()["data"]["status"] == "modified"
    assert report.get_json()["data"]["sessions"] == 1


def test_unknown_roll_is_422(app):
    client = app.test_client()
    _login(client)

    resp = client.post("/api/attendance", json={**CTX, "date": "2025-03-10", "absent_roll_numbers": ["R42"]})

    assert resp.status_code == 422
    assert resp.get_json()["error"]["details"] == {"unknown": ["R42"]}


def test_unbound_faculty_is_403(app):
    client = app.test_client()
    _login(client, user_id="F9")

    resp = client.post("/api/attendance", json={**CTX, "date": "2025-03-10", "absent_roll_numbers": []})

    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"


def test_audit_feed_for_own_actor(app):
    client = app.test_client()
    _login(client)
    client.get("/api/roster", query_string=CTX)

    mine = client.get("/api/audit", query_string={"actor_id": "F1"})
    others = client.get("/api/audit", query_string={"actor_id": "F2"})

    assert [e["operation"] for e in mine.get_json()["data"]] == ["roster.resolve"]
    assert others.status_code == 403


def test_drift_endpoint_is_read_only(app, students_repo):
    client = app.test_client()
    _login(client, user_id="H1", role="hod")

    resp = client.get("/api/roster/drift", query_string=CTX)

    assert resp.status_code == 200
    assert resp.get_json()["data"]["total"] == 5
    assert {i["kind"] for i in resp.get_json()["data"]["issues"]} == {"faculty_mismatch"}
