"""
Authentication API
==================

Password login issuing an opaque bearer token, and logout revoking it.
The token is what Socket.IO clients present in their ``auth`` event.
"""

from __future__ import annotations

import logging

from flask import Blueprint

from bridge.blueprints.api._common import get_container, get_json
from bridge.schemas.auth import LoginRequest
from bridge.security.auth import api_token_required, bearer_token, current_identity
from bridge.utils.http import error_response, safe_route, success_response

logger = logging.getLogger(__name__)

auth_api = Blueprint("auth_api", __name__)


@auth_api.post("/login")
@safe_route("Login failed")
def login():
    body = get_json()
    # A malformed body surfaces as a 400 through safe_route.
    credentials = LoginRequest.model_validate(body if isinstance(body, dict) else {})

    issued = get_container().auth_manager.login(credentials.username.strip(), credentials.password)
    if issued is None:
        return error_response("Invalid username or password", 401, code="INVALID_CREDENTIALS")

    return success_response(
        {
            "token": issued.token,
            "username": issued.username,
            "expires_at": issued.expires_at.isoformat(),
        }
    )


@auth_api.post("/logout")
@api_token_required
@safe_route("Logout failed")
def logout():
    identity = current_identity()
    get_container().auth_manager.revoke_token(bearer_token(), actor=identity.username)
    return success_response({"username": identity.username}, message="Logged out")
