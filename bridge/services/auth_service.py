"""
User Authentication Service
===========================
Password login with bcrypt hashing and opaque bearer tokens.

Tokens are random URL-safe strings handed to the client once; only their
sha256 digest is stored, with an expiry. This is the identity collaborator
behind :class:`bridge.security.session_gate.SessionGate`.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import bcrypt

from bridge.domain.exceptions import IdentityBackendError, RepositoryError
from bridge.utils.time import coerce_datetime, utc_now
from infrastructure.database.repositories.auth import AuthRepository
from infrastructure.logging.audit import AuditLogger

TOKEN_BYTES = 32

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedToken:
    token: str
    username: str
    expires_at: datetime


@dataclass
class UserAuthManager:
    """
    Manages user authentication with bcrypt hashing and audit logging.
    """

    database_handler: Any
    audit_logger: Optional[AuditLogger] = None
    token_ttl_hours: int = 24
    # Optional injection for tests/composition; lazily initialized from database_handler.
    auth_repo: Optional[AuthRepository] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.auth_repo is None and self.database_handler is not None:
            self.auth_repo = AuthRepository(self.database_handler)

    def _repo(self) -> AuthRepository:
        if self.auth_repo is None:
            raise RuntimeError("AuthRepository is not configured")
        return self.auth_repo

    def _audit(self, actor: str, action: str, outcome: str, **metadata: Any) -> None:
        if self.audit_logger:
            self.audit_logger.log_event(actor=actor, action=action, resource="user", outcome=outcome, **metadata)

    def hash_password(self, password: str) -> str:
        """Hash the provided password using bcrypt."""
        salt = bcrypt.gensalt()
        hashed_password = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed_password.decode("utf-8")

    def check_password(self, stored_password: str, provided_password: str) -> bool:
        """Validate a plaintext password against the stored hash."""
        return bcrypt.checkpw(provided_password.encode("utf-8"), stored_password.encode("utf-8"))

    def register_user(self, username: str, password: str) -> bool:
        password_hash = self.hash_password(password)
        try:
            created = self._repo().create_user(username, password_hash)
        except RepositoryError as exc:
            logger.error("Error registering user '%s': %s", username, exc)
            self._audit(username, "register", "error", error=str(exc))
            return False
        if not created:
            self._audit(username, "register", "error", error="username_taken")
            return False
        logger.info("User '%s' registered successfully.", username)
        self._audit(username, "register", "success")
        return True

    def authenticate_user(self, username: str, password: str) -> bool:
        try:
            user = self._repo().get_user_auth_by_username(username)
        except RepositoryError as exc:
            raise IdentityBackendError("User lookup failed") from exc

        if not user:
            logger.warning("Authentication failed for user '%s': user not found.", username)
            self._audit(username, "login", "not_found")
            return False

        if not self.check_password(user["password_hash"], password):
            logger.warning("Authentication failed for user '%s': invalid credentials.", username)
            self._audit(username, "login", "denied")
            return False

        logger.info("User '%s' authenticated successfully.", username)
        self._audit(username, "login", "success")
        return True

    # --- Bearer tokens --------------------------------------------------------

    def issue_token(self, username: str) -> IssuedToken:
        """Create a new bearer token for an already authenticated user."""
        try:
            user = self._repo().get_user_auth_by_username(username)
            if not user:
                raise IdentityBackendError(f"User '{username}' vanished while issuing a token")
            token = secrets.token_urlsafe(TOKEN_BYTES)
            now = utc_now()
            expires_at = now + timedelta(hours=self.token_ttl_hours)
            self._repo().store_token(user["id"], hash_token(token), now.isoformat(), expires_at.isoformat())
        except RepositoryError as exc:
            raise IdentityBackendError("Token could not be stored") from exc
        return IssuedToken(token=token, username=user["username"], expires_at=expires_at)

    def login(self, username: str, password: str) -> Optional[IssuedToken]:
        """Check the password and issue a token, or return None on bad credentials."""
        if not self.authenticate_user(username, password):
            return None
        return self.issue_token(username)

    def resolve_token(self, token: str) -> Optional[str]:
        """
        Return the username bound to a live token.

        Returns None for unknown, revoked or expired tokens.

        Raises:
            IdentityBackendError: the token store could not be queried.
        """
        try:
            row = self._repo().find_token(hash_token(token))
        except RepositoryError as exc:
            raise IdentityBackendError("Token lookup failed") from exc
        if not row or row["revoked_at"]:
            return None
        expires_at = coerce_datetime(row["expires_at"])
        if expires_at is None or expires_at <= utc_now():
            return None
        return row["username"]

    def revoke_token(self, token: str, *, actor: str = "unknown") -> bool:
        try:
            revoked = self._repo().revoke_token(hash_token(token), utc_now().isoformat())
        except RepositoryError as exc:
            raise IdentityBackendError("Token revocation failed") from exc
        self._audit(actor, "logout", "success" if revoked else "not_found")
        return revoked

    def cleanup_expired_tokens(self) -> int:
        try:
            removed = self._repo().cleanup_expired_tokens(utc_now().isoformat())
        except RepositoryError as exc:
            logger.warning("Expired token cleanup failed: %s", exc)
            return 0
        if removed:
            logger.info("Removed %s expired bearer token(s)", removed)
        return removed
