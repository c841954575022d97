"""Exclusive run lock serialising scan runs on one host.

A manual ``hostguard scan`` overlapping the scheduled one would otherwise
race on the status file.  :class:`RunLock` holds an exclusive ``flock`` on a
lock file for the orchestrator's whole lifecycle; a second run blocks until
the first has persisted its record.

If the lock file cannot be opened (for example the state directory is not
writable) the run proceeds without the lock and a warning is logged.
"""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class RunLock:
    """Context manager holding an exclusive lock on *path*.

    Attributes:
        acquired: ``True`` while the lock is held.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._fd: int | None = None
        self.acquired = False

    def __enter__(self) -> "RunLock":
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            logger.warning("Run lock unavailable path=%s error=%r; running unlocked", self._path, exc)
            return self

        try:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                logger.info("Another scan is running; waiting for lock path=%s", self._path)
                fcntl.flock(self._fd, fcntl.LOCK_EX)
        except OSError as exc:
            # e.g. ENOLCK on network filesystems
            logger.warning("Run lock not acquired path=%s error=%r; running unlocked", self._path, exc)
            os.close(self._fd)
            self._fd = None
            return self

        self.acquired = True
        try:
            os.ftruncate(self._fd, 0)
            os.write(self._fd, f"{os.getpid()}\n".encode())
        except OSError as exc:
            logger.debug("Could not record pid in run lock path=%s error=%r", self._path, exc)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._fd is None:
            return
        try:
            if self.acquired:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
            self.acquired = False
