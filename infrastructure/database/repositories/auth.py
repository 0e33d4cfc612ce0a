"""
Auth Repository
===============

Repository for bridge user accounts and their bearer tokens.
Keeps SQL out of UserAuthManager.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

from bridge.domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


class AuthRepository:
    """Repository for user-authentication database operations."""

    def __init__(self, backend: Any) -> None:
        """
        Args:
            backend: Database handler exposing a ``connection()`` context
                     manager (SQLiteDatabaseHandler).
        """
        self._backend = backend

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, username: str, password_hash: str) -> bool:
        """Create a user account. Returns *False* when the name is taken."""
        try:
            with self._backend.connection() as db:
                db.execute(
                    "INSERT INTO Users (username, password_hash) VALUES (?, ?)",
                    (username.strip(), password_hash),
                )
                return True
        except sqlite3.IntegrityError:
            logger.warning("create_user rejected: username '%s' already exists", username)
            return False
        except sqlite3.Error as e:
            raise RepositoryError(f"create_user failed: {e}") from e

    def get_user_auth_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Return ``{id, username, password_hash}`` or *None*."""
        try:
            with self._backend.connection() as db:
                row = db.execute(
                    "SELECT id, username, password_hash FROM Users WHERE username = ?",
                    (username.strip(),),
                ).fetchone()
        except sqlite3.Error as e:
            raise RepositoryError(f"get_user_auth_by_username failed: {e}") from e
        if not row:
            return None
        return {"id": row[0], "username": row[1], "password_hash": row[2]}

    # ------------------------------------------------------------------
    # Bearer tokens
    # ------------------------------------------------------------------

    def store_token(self, user_id: int, token_hash: str, created_at_iso: str, expires_at_iso: str) -> None:
        try:
            with self._backend.connection() as db:
                db.execute(
                    """
                    INSERT INTO ApiTokens (user_id, token_hash, created_at, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, token_hash, created_at_iso, expires_at_iso),
                )
        except sqlite3.Error as e:
            raise RepositoryError(f"store_token failed: {e}") from e

    def find_token(self, token_hash: str) -> Optional[Dict[str, Any]]:
        """Return ``{user_id, username, expires_at, revoked_at}`` or *None*."""
        try:
            with self._backend.connection() as db:
                row = db.execute(
                    """
                    SELECT t.user_id, u.username, t.expires_at, t.revoked_at
                    FROM ApiTokens t
                    JOIN Users u ON u.id = t.user_id
                    WHERE t.token_hash = ?
                    """,
                    (token_hash,),
                ).fetchone()
        except sqlite3.Error as e:
            raise RepositoryError(f"find_token failed: {e}") from e
        if not row:
            return None
        return {
            "user_id": row[0],
            "username": row[1],
            "expires_at": row[2],
            "revoked_at": row[3],
        }

    def revoke_token(self, token_hash: str, revoked_at_iso: str) -> bool:
        """Mark a live token revoked. Returns *False* when nothing matched."""
        try:
            with self._backend.connection() as db:
                cursor = db.execute(
                    "UPDATE ApiTokens SET revoked_at = ? WHERE token_hash = ? AND revoked_at IS NULL",
                    (revoked_at_iso, token_hash),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as e:
            raise RepositoryError(f"revoke_token failed: {e}") from e

    def cleanup_expired_tokens(self, cutoff_iso: str) -> int:
        """Delete tokens that expired before *cutoff_iso*. Returns the count removed."""
        try:
            with self._backend.connection() as db:
                cursor = db.execute("DELETE FROM ApiTokens WHERE expires_at < ?", (cutoff_iso,))
                return cursor.rowcount
        except sqlite3.Error as e:
            raise RepositoryError(f"cleanup_expired_tokens failed: {e}") from e
