"""Centralized exception hierarchy for the bridge.

All domain and service exceptions inherit from :class:`BridgeError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

The REST layer (see ``bridge.utils.http.safe_route`` and the global handler in
``bridge.create_app``) maps these to HTTP status codes via ``http_status``.

Hierarchy
---------
::

    BridgeError (base, maps to 500)
    ├── ValidationError              (400: bad input from caller)
    │   └── MalformedTelemetryError  (400: device payload rejected)
    ├── AuthenticationError          (401: no usable identity)
    │   └── InvalidCredentialError   (401: unknown / expired / blank token)
    ├── ServiceError                 (500: business-logic failure)
    │   ├── RepositoryError          (500: file / database persistence)
    │   └── IdentityBackendError     (500: identity lookup unavailable)
    ├── DeviceError                  (503: broker / device communication)
    │   ├── LinkDownError            (503: broker not connected)
    │   └── PublishError             (503: broker refused the publish)
    └── ConfigurationError           (500: missing / invalid config)
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all bridge errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class is a 4xx).
    detail:
        Optional machine-readable context dict for structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(BridgeError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class MalformedTelemetryError(ValidationError):
    """A telemetry payload could not be turned into a sample."""


class AuthenticationError(BridgeError):
    """The caller could not be identified (HTTP 401)."""

    http_status: int = 401


class InvalidCredentialError(AuthenticationError):
    """The presented credential is missing, unknown, revoked or expired."""


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(BridgeError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """File or database persistence failure (HTTP 500)."""


class IdentityBackendError(ServiceError):
    """The identity collaborator could not answer (HTTP 500)."""


class DeviceError(BridgeError):
    """Broker or device communication failure (HTTP 503)."""

    http_status: int = 503


class LinkDownError(DeviceError):
    """The broker link is not connected; nothing was published."""


class PublishError(DeviceError):
    """The broker client rejected a publish while connected."""


class ConfigurationError(BridgeError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
