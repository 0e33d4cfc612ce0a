"""
REST API tests: login/logout, settings read/update/reset, status and history.
"""

import json

from bridge.enums.events import BridgeEvent
from bridge.domain.telemetry import TelemetrySample

from conftest import TEST_PASSWORD, TEST_USERNAME


def _login(client, username=TEST_USERNAME, password=TEST_PASSWORD):
    return client.post("/api/login", json={"username": username, "password": password})


class TestAuthEndpoints:
    def test_login_returns_token(self, client, registered_user):
        response = _login(client)

        assert response.status_code == 200
        body = response.get_json()
        assert body["ok"] is True
        assert body["error"] is None
        assert body["data"]["username"] == TEST_USERNAME
        assert body["data"]["token"]
        assert body["data"]["expires_at"]

    def test_login_with_wrong_password(self, client, registered_user):
        response = _login(client, password="wrong")

        assert response.status_code == 401
        body = response.get_json()
        assert body["ok"] is False
        assert body["error"]["message"] == "Invalid username or password"

    def test_login_requires_both_fields(self, client):
        response = client.post("/api/login", json={"username": TEST_USERNAME})
        assert response.status_code == 400

        response = client.post("/api/login", data="not json", content_type="text/plain")
        assert response.status_code == 400

    def test_token_from_login_unlocks_settings(self, client, registered_user):
        token = _login(client).get_json()["data"]["token"]

        response = client.get("/api/settings", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200

    def test_logout_revokes_token(self, client, auth_headers):
        response = client.post("/api/logout", headers=auth_headers)
        assert response.status_code == 200

        response = client.get("/api/settings", headers=auth_headers)
        assert response.status_code == 401


class TestSettingsEndpoints:
    def test_settings_require_bearer_token(self, client):
        assert client.get("/api/settings").status_code == 401
        assert client.post("/api/settings", json={}).status_code == 401
        assert client.post("/api/settings/reset").status_code == 401

        response = client.get("/api/settings", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "UNAUTHORIZED"

    def test_get_returns_full_snapshot(self, client, auth_headers):
        response = client.get("/api/settings", headers=auth_headers)

        data = response.get_json()["data"]
        assert set(data) == {"thresholds", "indicators", "automations"}
        assert data["thresholds"]["lux"] == {"min": 500, "max": 10000}
        assert data["automations"] == {"led": False, "hum": False, "fan": False}

    def test_partial_update_keeps_prior_values_for_bad_fields(self, client, auth_headers, app_overrides):
        response = client.post(
            "/api/settings",
            headers=auth_headers,
            json={"thresholds": {"lux": {"min": "abc", "max": 900}}},
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["thresholds"]["lux"] == {"min": 500, "max": 900}

        with open(app_overrides["settings_path"], encoding="utf-8") as fh:
            assert json.load(fh) == data

    def test_garbage_body_is_a_no_op(self, client, auth_headers):
        before = client.get("/api/settings", headers=auth_headers).get_json()["data"]

        response = client.post("/api/settings", headers=auth_headers, json=[1, 2, 3])

        assert response.status_code == 200
        assert response.get_json()["data"] == before

    def test_update_changes_live_snapshot(self, client, auth_headers, container):
        client.post("/api/settings", headers=auth_headers, json={"automations": {"hum": True}})

        assert container.settings_store.get().automation_enabled("hum") is True

    def test_reset_restores_defaults(self, client, auth_headers):
        client.post("/api/settings", headers=auth_headers, json={"automations": {"fan": True}})

        response = client.post("/api/settings/reset", headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()["data"]["automations"]["fan"] is False


class TestStatusEndpoints:
    def test_status_is_public(self, client):
        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["mqtt"] == {"enabled": False, "connected": False, "health": None}
        assert data["throttle"]["admitted"] == 0
        assert "timestamp" in data

    def test_history_lists_admitted_samples(self, client, container):
        for value in (20.0, 21.0, 22.0):
            container.event_bus.publish(BridgeEvent.TELEMETRY_RECEIVED, TelemetrySample(temperature=value))
        container.event_bus.drain()

        response = client.get("/api/history?limit=2")

        data = response.get_json()["data"]
        assert data["count"] == 2
        assert [s["temperature"] for s in data["samples"]] == [21.0, 22.0]

    def test_history_limit_is_bounded(self, client):
        assert client.get("/api/history?limit=0").status_code == 400
        assert client.get("/api/history?limit=5000").status_code == 400

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.get_json()["ok"] is False
