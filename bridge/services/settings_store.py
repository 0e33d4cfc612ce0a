"""
Settings Store
==============
Owner of the single live :class:`~bridge.domain.settings.Settings` snapshot.

Readers get the current immutable snapshot. Writers go through ``merge``,
which builds the complete new snapshot first and swaps it in by reference,
then persists it through the repository outside the state lock. A failed
write is logged; the in-memory snapshot stays authoritative.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol

from bridge.domain.exceptions import RepositoryError
from bridge.domain.settings import Settings, merge_settings

logger = logging.getLogger(__name__)


class SettingsRepository(Protocol):
    def load(self) -> Optional[dict[str, Any]]: ...

    def save(self, data: dict[str, Any]) -> None: ...


class SettingsStore:
    def __init__(self, repository: SettingsRepository | None = None, *, defaults: Settings | None = None):
        self._repository = repository
        self._defaults = defaults or Settings.defaults()
        self._lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._current = self._load_initial()

    @property
    def defaults(self) -> Settings:
        return self._defaults

    def _load_initial(self) -> Settings:
        if self._repository is None:
            return self._defaults
        try:
            stored = self._repository.load()
        except RepositoryError as e:
            logger.warning("Persisted settings unreadable, using defaults: %s", e)
            return self._defaults
        if stored is None:
            logger.info("No persisted settings found, using defaults")
            return self._defaults
        # Stored values pass through the same rule as client updates.
        return merge_settings(self._defaults, stored)

    def get(self) -> Settings:
        """Return the current snapshot."""
        with self._lock:
            return self._current

    def merge(self, partial: Any) -> Settings:
        """Apply a partial update and persist the result. Never raises for bad input."""
        with self._lock:
            updated = merge_settings(self._current, partial)
            self._current = updated
        self.persist()
        return updated

    def reset(self) -> Settings:
        """Restore the startup defaults and persist them."""
        with self._lock:
            self._current = self._defaults
        self.persist()
        return self._defaults

    def persist(self) -> bool:
        """
        Write the current snapshot through the repository.

        Returns:
            False when the write failed. The failure is logged, not raised.
        """
        if self._repository is None:
            return True
        with self._persist_lock:
            # Re-read under the persist lock so the newest snapshot is the last one written.
            snapshot = self.get()
            try:
                self._repository.save(snapshot.to_dict())
            except RepositoryError as e:
                logger.error("Failed to persist settings: %s", e)
                return False
        return True
