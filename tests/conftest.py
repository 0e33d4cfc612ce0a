"""
Shared test fixtures for the bridge test suite.

Provides:
- A bridge app wired to temporary files (MQTT disabled, no throttling)
- A registered user and a bearer token for it
- A FakeSocketIO capturing emits for service-level tests
- A ``make_sample`` factory for telemetry

Usage:
    def test_example(client, auth_headers):
        response = client.get("/api/settings", headers=auth_headers)
        assert response.status_code == 200
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so tests can import application modules
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from bridge import create_app  # noqa: E402
from bridge.domain.telemetry import TelemetrySample  # noqa: E402
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler  # noqa: E402

# ---------------------------------------------------------------------------
# Logging: keep test output quiet
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("bridge").setLevel(logging.WARNING)

TEST_USERNAME = "grower"
TEST_PASSWORD = "s3cret-pass"


class FakeSocketIO:
    def __init__(self) -> None:
        self.emits: list[dict] = []

    def emit(self, event, payload, to=None, namespace="/"):
        self.emits.append({"event": event, "payload": payload, "to": to, "namespace": namespace})

    def events(self, name: str) -> list[dict]:
        return [e for e in self.emits if e["event"] == name]


@pytest.fixture()
def fake_sio():
    return FakeSocketIO()


@pytest.fixture()
def make_sample():
    def _make(**fields) -> TelemetrySample:
        return TelemetrySample(**fields)

    return _make


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler(tmp_path):
    """File-backed SQLite database with the identity tables created.

    A file is used rather than ``:memory:`` because connections are per thread.
    """
    handler = SQLiteDatabaseHandler(str(tmp_path / "bridge.db"))
    handler.create_tables()
    yield handler
    handler.close_db()


# ========================== Application Fixtures ===========================


@pytest.fixture()
def app_overrides(tmp_path):
    return {
        "environment": "testing",
        "enable_mqtt": False,
        "database_path": str(tmp_path / "bridge.db"),
        "settings_path": str(tmp_path / "settings.json"),
        "audit_log_path": str(tmp_path / "audit.log"),
        "telemetry_min_interval": 0.0,
        "history_size": 10,
        "default_thresholds": {},
    }


@pytest.fixture()
def app(app_overrides):
    flask_app = create_app(app_overrides)
    flask_app.config["TESTING"] = True
    yield flask_app
    container = flask_app.config["CONTAINER"]
    container.shutdown()
    container.audit_logger.close()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def registered_user(container):
    assert container.auth_manager.register_user(TEST_USERNAME, TEST_PASSWORD)
    return TEST_USERNAME


@pytest.fixture()
def auth_token(container, registered_user):
    return container.auth_manager.issue_token(registered_user).token


@pytest.fixture()
def auth_headers(auth_token):
    return {"Authorization": f"Bearer {auth_token}"}
