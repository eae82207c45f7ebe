"""
Object lock — at most one action per object at a time.

An advisory ``fcntl.flock`` on a per-object lock file. Acquisition
polls a non-blocking flock until the timeout elapses, so a stuck peer
turns into a ``LockTimeoutError`` instead of a hang. The lock file
holds the owner's pid, action and acquisition time for debugging.

flock locks belong to the open file description: two ``ObjectLock``
instances on the same file exclude each other even inside a single
process.
"""

from __future__ import annotations

import errno
import fcntl
import json
import logging
import os
import time
from pathlib import Path
from types import TracebackType

from svcctl.core.errors import LockTimeoutError

logger = logging.getLogger(__name__)

# Seconds between two non-blocking acquisition attempts
POLL_INTERVAL = 0.05


class ObjectLock:
    """Exclusive advisory lock on a file.

    Args:
        path: Lock file path. Parent directories are created.
        timeout: Seconds to wait for the lock. 0 means a single attempt.
        intent: Free text written in the lock file (the action name).
    """

    def __init__(self, path: Path, timeout: float = 30.0, intent: str = ""):
        self.path = Path(path)
        self.timeout = timeout
        self.intent = intent
        self._fd: int | None = None

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock or raise ``LockTimeoutError``."""
        if self._fd is not None:
            raise RuntimeError(f"{self.path}: lock already held by this instance")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError as e:
                    if e.errno not in (errno.EWOULDBLOCK, errno.EAGAIN):
                        raise
                if time.monotonic() >= deadline:
                    logger.info("lock %s busy, held by %s", self.path, self._read_owner())
                    raise LockTimeoutError(str(self.path), self.timeout)
                time.sleep(POLL_INTERVAL)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        self._write_owner()
        logger.debug("lock %s acquired (%s)", self.path, self.intent)

    def release(self) -> None:
        """Release the lock. No-op when not held."""
        fd = self._fd
        if fd is None:
            return
        self._fd = None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.debug("lock %s released", self.path)

    def __enter__(self) -> ObjectLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def _write_owner(self) -> None:
        assert self._fd is not None
        info = {"pid": os.getpid(), "intent": self.intent, "acquired_at": time.time()}
        data = json.dumps(info).encode()
        os.ftruncate(self._fd, 0)
        os.pwrite(self._fd, data, 0)

    def _read_owner(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError):
            return {}
