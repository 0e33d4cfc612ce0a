"""
Session Gate
============
Turns a presented credential into an :class:`Identity` or refuses it.

The gate holds no state of its own. REST endpoints call it per request; the
Socket Hub calls it once per connection and caches the identity on the
connection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from bridge.domain.exceptions import IdentityBackendError, InvalidCredentialError

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def resolve_token(self, token: str) -> Optional[str]: ...


@dataclass(frozen=True)
class Identity:
    username: str

    def to_dict(self) -> dict:
        return {"username": self.username}


class SessionGate:
    def __init__(self, provider: IdentityProvider):
        self._provider = provider

    def validate(self, credential: object) -> Identity:
        """
        Validate ``credential`` against the identity provider.

        Raises:
            InvalidCredentialError: missing, blank, unknown, revoked or expired.
            IdentityBackendError: the provider could not answer.
        """
        if not isinstance(credential, str) or not credential.strip():
            raise InvalidCredentialError("Missing credential")

        try:
            username = self._provider.resolve_token(credential.strip())
        except IdentityBackendError:
            raise
        except Exception as exc:
            logger.error("Identity provider failed: %s", exc, exc_info=True)
            raise IdentityBackendError("Identity provider unavailable") from exc

        if not username:
            raise InvalidCredentialError("Invalid or expired credential")
        return Identity(username=username)
