"""
Settings API
============

Read and update the live settings snapshot. Updates are partial: only
well-typed fields are taken, everything else keeps its current value, so a
POST never fails on its body. Every successful update is pushed to all
Socket.IO clients as ``settings_updated``.
"""

from __future__ import annotations

import logging

from flask import Blueprint

from bridge.blueprints.api._common import get_container, get_json
from bridge.security.auth import api_token_required, current_identity
from bridge.utils.http import safe_route, success_response

logger = logging.getLogger(__name__)

settings_api = Blueprint("settings_api", __name__)


@settings_api.get("")
@api_token_required
@safe_route("Failed to load settings")
def get_settings():
    return success_response(get_container().settings_store.get().to_dict())


@settings_api.post("")
@api_token_required
@safe_route("Failed to update settings")
def update_settings():
    container = get_container()
    body = get_json()
    settings = container.settings_store.merge(body)

    username = current_identity().username
    logger.info("Settings updated by '%s'", username)
    container.audit_logger.log_event(
        actor=username,
        action="update",
        resource="settings",
        outcome="success",
        fields=sorted(body) if isinstance(body, dict) else [],
    )
    container.socket_hub.broadcast_settings(settings)
    return success_response(settings.to_dict())


@settings_api.post("/reset")
@api_token_required
@safe_route("Failed to reset settings")
def reset_settings():
    container = get_container()
    settings = container.settings_store.reset()

    username = current_identity().username
    logger.info("Settings reset to defaults by '%s'", username)
    container.audit_logger.log_event(actor=username, action="reset", resource="settings", outcome="success")
    container.socket_hub.broadcast_settings(settings)
    return success_response(settings.to_dict())
