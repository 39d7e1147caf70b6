# tests/test_sessions_api.py
import gc
from http import HTTPStatus

from app.services import meeting_scheduler


def _create(client, title: str = "Sync", created_by: str = "alice") -> dict:
    resp = client.post("/api/session", json={"title": title, "createdBy": created_by})
    assert resp.status_code == HTTPStatus.CREATED, resp.text
    return resp.json()


def test_create_session_returns_code_and_session(client):
    data = _create(client)

    assert meeting_scheduler.is_valid_session_code(data["sessionCode"])
    assert data["title"] == "Sync"
    assert data["createdBy"] == "alice"
    assert data["status"] == "collecting"
    assert data["participants"] == {}
    assert data["proposedTimes"] == []


def test_create_session_requires_title_and_creator(client):
    resp = client.post("/api/session", json={"title": "Sync"})

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "error" in resp.json()


def test_create_session_retries_on_code_collision(client, monkeypatch):
    codes = iter(["DUPE01", "DUPE01", "FRESH1"])
    monkeypatch.setattr(meeting_scheduler, "generate_session_code", lambda length=6: next(codes))

    first = _create(client, title="First")
    second = _create(client, title="Second")

    assert first["sessionCode"] == "DUPE01"
    assert second["sessionCode"] == "FRESH1"
    # The original session was not overwritten.
    assert client.get("/api/session", params={"code": "DUPE01"}).json()["title"] == "First"


def test_create_session_gives_up_after_max_attempts(client, monkeypatch):
    monkeypatch.setattr(meeting_scheduler, "generate_session_code", lambda length=6: "TAKEN1")
    _create(client)

    resp = client.post("/api/session", json={"title": "Again", "createdBy": "bob"})

    assert resp.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert resp.json() == {"error": "Could not allocate a unique session code"}


def test_get_session_by_code(client):
    code = _create(client)["sessionCode"]

    resp = client.get("/api/session", params={"code": code.lower()})

    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["sessionCode"] == code


def test_get_session_without_code_is_400(client):
    resp = client.get("/api/session")

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert resp.json() == {"error": "Session code is required"}


def test_get_unknown_session_is_404(client):
    resp = client.get("/api/session", params={"code": "ZZZZZZ"})

    assert resp.status_code == HTTPStatus.NOT_FOUND
    assert resp.json() == {"error": "Session not found"}


def test_join_session_and_rejoin_is_idempotent(client):
    code = _create(client)["sessionCode"]
    payload = {"sessionCode": code, "userId": "bob", "name": "Bob", "email": "bob@example.com"}

    first = client.post("/api/session/join", json=payload)
    second = client.post("/api/session/join", json={**payload, "name": "Robert"})

    assert first.status_code == HTTPStatus.OK
    body = first.json()
    assert body["sessionCode"] == code
    assert body["participant"]["userId"] == "bob"
    assert body["participant"]["email"] == "bob@example.com"
    assert body["participant"]["conversationHistory"] == []
    assert second.json()["participant"]["name"] == "Bob"

    session = client.get("/api/session", params={"code": code}).json()
    assert list(session["participants"]) == ["bob"]


def test_join_unknown_session_is_404(client):
    resp = client.post(
        "/api/session/join",
        json={"sessionCode": "NOPE00", "userId": "bob", "name": "Bob"},
    )

    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_join_requires_user_id_and_name(client):
    code = _create(client)["sessionCode"]

    resp = client.post("/api/session/join", json={"sessionCode": code, "name": "Bob"})

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert "userId" in resp.json()["error"]


def test_lookups_of_unknown_codes_leave_no_actors_behind(client):
    for i in range(50):
        assert client.get("/api/session", params={"code": f"NONE{i:02d}"}).status_code == 404
        assert client.get("/api/admin", params={"code": f"MISS{i:02d}"}).status_code == 404

    gc.collect()

    assert len(client.app.state.registry) == 0
