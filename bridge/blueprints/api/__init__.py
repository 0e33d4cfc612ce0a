"""
REST API blueprints, all mounted under ``/api``.

- auth_api:     login / logout (bearer tokens)
- settings_api: settings snapshot read, partial update, reset
- status_api:   link health, throttle counters, telemetry history
"""

from bridge.blueprints.api.auth import auth_api
from bridge.blueprints.api.settings import settings_api
from bridge.blueprints.api.status import status_api

__all__ = ["auth_api", "settings_api", "status_api"]
