"""Advisory lock serialising mutating operations on one workspace."""
from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional

from .errors import LockTimeoutError, StorageError

LOGGER = logging.getLogger(__name__)


class AdvisoryLock:
    """Lock file created with ``O_EXCL`` plus an in-process mutex.

    Only cooperating processes that take the same lock are serialised; the
    spreadsheets themselves are never locked.
    """

    def __init__(self, path: str | Path, *, timeout: float = 30.0, poll_interval: float = 0.1) -> None:
        self.path = Path(path)
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._mutex = threading.Lock()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        deadline = time.monotonic() + self._timeout
        if not self._mutex.acquire(timeout=max(self._timeout, 0)):
            raise LockTimeoutError(f"Timed out waiting for lock '{self.path}'")
        try:
            self._create_lock_file(deadline)
        except BaseException:
            self._mutex.release()
            raise
        self._held = True
        LOGGER.debug("Acquired workspace lock %s", self.path)

    def _create_lock_file(self, deadline: float) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                handle = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"Timed out waiting for lock '{self.path}'; remove it if no other process is running"
                    ) from None
                time.sleep(self._poll_interval)
                continue
            except OSError as exc:
                raise StorageError(f"Could not create lock file '{self.path}': {exc}") from exc
            with os.fdopen(handle, "w", encoding="utf-8") as lock_file:
                lock_file.write(str(os.getpid()))
            return

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink(missing_ok=True)
        finally:
            self._held = False
            self._mutex.release()
            LOGGER.debug("Released workspace lock %s", self.path)

    def __enter__(self) -> "AdvisoryLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, traceback) -> Optional[bool]:
        self.release()
        return None


__all__ = ["AdvisoryLock"]
