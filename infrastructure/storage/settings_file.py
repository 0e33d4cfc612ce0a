"""JSON file persistence for the bridge settings snapshot.

Writes go to a temporary file that is atomically swapped into place, guarded
by an advisory lock file so two processes never interleave a write.
"""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, Optional

from bridge.domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


class FileLock:
    """Simple file-lock using a lockfile (cross-platform, advisory).

    It uses atomic creation of a .lock file and retries until timeout. A lock
    file older than ``stale_after`` seconds was left by a writer that died
    and is removed.
    """

    def __init__(
        self, lock_path: str, timeout: float = 5.0, retry: float = 0.05, stale_after: float = 30.0
    ) -> None:
        self.lock_path = lock_path
        self.timeout = float(timeout)
        self.retry = float(retry)
        self.stale_after = float(stale_after)
        self._acquired = False

    def acquire(self) -> bool:
        start = time.monotonic()
        while True:
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                self._acquired = True
                return True
            except FileExistsError:
                if self._break_if_stale():
                    continue
                if (time.monotonic() - start) >= self.timeout:
                    return False
                time.sleep(self.retry)

    def _break_if_stale(self) -> bool:
        try:
            age = time.time() - os.path.getmtime(self.lock_path)
        except FileNotFoundError:
            # Released between our attempt and the check.
            return True
        if age <= self.stale_after:
            return False
        logger.warning("Removing stale lock file %s (%.0fs old)", self.lock_path, age)
        try:
            os.unlink(self.lock_path)
        except FileNotFoundError:
            pass
        return True

    def release(self) -> None:
        try:
            if self._acquired and os.path.exists(self.lock_path):
                os.unlink(self.lock_path)
        finally:
            self._acquired = False

    def __enter__(self):
        if not self.acquire():
            raise TimeoutError(f"Failed to acquire file lock: {self.lock_path}")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


class JsonSettingsRepository:
    """Load/save contract over one JSON document on disk."""

    def __init__(self, path: str, *, lock_timeout: float = 5.0, stale_lock_after: float = 30.0) -> None:
        self.path = path
        self.lock_timeout = lock_timeout
        self.stale_lock_after = stale_lock_after

    def _lock(self) -> FileLock:
        return FileLock(self._lock_path, timeout=self.lock_timeout, stale_after=self.stale_lock_after)

    @property
    def _lock_path(self) -> str:
        return self.path + ".lock"

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored document, or None when no file exists yet.

        Raises:
            RepositoryError: the file exists but cannot be read or is not a JSON object.
        """
        if not os.path.exists(self.path):
            return None
        try:
            with self._lock():
                with open(self.path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
        except (OSError, ValueError, TimeoutError) as e:
            raise RepositoryError(f"Cannot read settings file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise RepositoryError(f"Settings file {self.path} does not hold a JSON object")
        return data

    def save(self, data: Dict[str, Any]) -> None:
        """Atomically replace the stored document.

        Raises:
            RepositoryError: the directory, lock or file could not be written.
        """
        tmp = self.path + ".tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with self._lock():
                with open(tmp, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2, sort_keys=True)
                os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError, TimeoutError) as e:
            raise RepositoryError(f"Cannot write settings file {self.path}: {e}") from e
        logger.debug("Settings written to %s", self.path)
