# tests/test_health.py
from http import HTTPStatus


def test_health_endpoint_ok(client):
    """
    Basic sanity test to verify that /health responds with 200 OK
    and has the expected JSON shape and types.
    """
    response = client.get("/health")

    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert data["status"] == "ok"
    assert isinstance(data["app_name"], str)
    assert data["environment"] == "test"
    assert "timestamp_utc" in data


def test_health_reports_dispatcher_disabled_in_tests(client):
    """
    ALARM_DISPATCH_ENABLED is false in the test environment, so no alarm loop runs.
    """
    data = client.get("/health").json()

    assert data["alarm_dispatcher_running"] is False
    assert data["loaded_actors"] == 0


def test_health_counts_actors_in_use(client):
    held = client.app.state.registry.get("HOLD01")

    data = client.get("/health").json()

    assert data["loaded_actors"] == 1
    assert held.name == "HOLD01"
