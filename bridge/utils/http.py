"""
JSON response helpers for the REST API.

Every response uses the same envelope::

    {"ok": true,  "data": {...}, "error": null}
    {"ok": false, "data": null,  "error": {"message": "...", "code": "...", "timestamp": "..."}}

5xx responses carry a fixed message per status; the real exception only
goes to the server log.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from pydantic import ValidationError as PydanticValidationError

from bridge.domain.exceptions import BridgeError
from bridge.utils.time import iso_now

_log = logging.getLogger(__name__)

_STATUS_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    401: "Authentication required",
    403: "Access denied",
    404: "Resource not found",
    405: "Method not allowed",
    413: "Request body too large",
    500: "An internal error occurred",
    503: "Service unavailable",
}


def _envelope(ok: bool, data: Any, error: dict[str, Any] | None, status: int, **extra: Any) -> Response:
    response = jsonify({"ok": ok, "data": data, "error": error, **extra})
    response.status_code = status
    return response


def success_response(data: Any = None, status: int = 200, *, message: str | None = None) -> Response:
    extra = {"message": message} if message is not None else {}
    return _envelope(True, data, None, status, **extra)


def error_response(
    message: str,
    status: int = 400,
    *,
    code: str | None = None,
    details: dict[str, Any] | None = None,
) -> Response:
    error: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if code:
        error["code"] = code
    if details:
        error["details"] = details
    return _envelope(False, None, error, status)


def safe_error(exc: BaseException, status: int = 500, *, context: str = "") -> Response:
    """Log ``exc`` with its traceback and answer with the generic message for ``status``."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    return error_response(_STATUS_MESSAGES.get(status, _STATUS_MESSAGES[500]), status)


def bridge_error_response(exc: BridgeError, context: str = "") -> Response:
    """Map a domain exception onto its ``http_status``. 5xx detail stays server-side."""
    status = exc.http_status
    if status >= 500:
        return safe_error(exc, status, context=context or type(exc).__name__)
    return error_response(str(exc) or _STATUS_MESSAGES.get(status, "Request failed"), status)


def safe_route(error_message: str = "An internal error occurred", *, error_status: int = 500) -> Callable:
    """Wrap a view so domain errors, body validation errors and crashes all answer in the envelope.

    Usage::

        @settings_api.get("")
        @api_token_required
        @safe_route("Failed to load settings")
        def get_settings():
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except PydanticValidationError as exc:
                fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
                return error_response("Invalid request body", 400, code="INVALID_BODY", details={"fields": fields})
            except BridgeError as exc:
                return bridge_error_response(exc, error_message)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
