from functools import wraps
from typing import Callable, TypeVar, cast

from flask import current_app, g, request

from bridge.domain.exceptions import IdentityBackendError, InvalidCredentialError
from bridge.security.session_gate import Identity
from bridge.utils.http import error_response, safe_error

F = TypeVar("F", bound=Callable[..., object])


def bearer_token() -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def api_token_required(view_func: F) -> F:
    """Validate the bearer token for API endpoints (returns JSON 401)."""

    @wraps(view_func)
    def wrapped(*args, **kwargs):
        gate = current_app.config["CONTAINER"].session_gate
        try:
            g.identity = gate.validate(bearer_token())
        except InvalidCredentialError as exc:
            return error_response(
                str(exc) or "Authentication required",
                status=401,
                code="UNAUTHORIZED",
            )
        except IdentityBackendError as exc:
            return safe_error(exc, 500, context="validating bearer token")
        return view_func(*args, **kwargs)

    return cast(F, wrapped)


def current_identity() -> Identity | None:
    return g.get("identity")
