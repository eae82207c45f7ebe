"""
StatusBus — thread-safe cache of the last known status of each resource.

Drivers and the orchestrator post statuses; status-reporting callers
read them. The bus is constructed once per process, started at init,
stopped at teardown, and passed explicitly to whatever needs it.

Lifecycle:
    stopped → start() → started → stop() → stopped

Using the bus while stopped is a programming error and raises
immediately; so does starting it twice. Nothing is kept across
restarts: ``stop()`` drops the cache.

Thread safety model
───────────────────
A single ``_lock`` guards the lifecycle flag and the mapping. Posts
are last-writer-wins per (path, rid) key. There is no ordering
between posts to different keys.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)


class StatusBusError(RuntimeError):
    """The status bus was used out of lifecycle order."""


class StatusBusNotStartedError(StatusBusError):
    def __init__(self) -> None:
        super().__init__("status bus is not started")


class StatusBusAlreadyStartedError(StatusBusError):
    def __init__(self) -> None:
        super().__init__("status bus is already started")


@dataclass(frozen=True)
class StatusEntry:
    """Last posted status of one resource."""

    status: Status = Status.UNDEF
    pending: bool = False               # an action on the resource is in flight
    updated_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "pending": self.pending,
            "updated_at": self.updated_at,
        }


class StatusBus:
    """Process-wide (object path, rid) → status cache."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started = False
        self._entries: dict[tuple[ObjectPath, str], StatusEntry] = {}

    @property
    def started(self) -> bool:
        with self._lock:
            return self._started

    def start(self) -> None:
        """Start the bus. Raises if already started."""
        with self._lock:
            if self._started:
                raise StatusBusAlreadyStartedError()
            self._started = True
            self._entries = {}
        logger.debug("status bus started")

    def stop(self) -> None:
        """Stop the bus and drop the cache. Safe when not started."""
        with self._lock:
            if not self._started:
                return
            self._started = False
            self._entries = {}
        logger.debug("status bus stopped")

    def post(
        self,
        path: ObjectPath,
        rid: str,
        status: Status,
        pending: bool = False,
    ) -> None:
        """Record the status of a resource."""
        entry = StatusEntry(status=status, pending=pending)
        with self._lock:
            if not self._started:
                raise StatusBusNotStartedError()
            self._entries[(path, rid)] = entry
        logger.debug("status %s %s → %s%s", path, rid, status.value, " (pending)" if pending else "")

    def get(self, path: ObjectPath, rid: str) -> Status:
        """Last posted status of a resource, ``undef`` if never posted."""
        return self.get_entry(path, rid).status

    def get_entry(self, path: ObjectPath, rid: str) -> StatusEntry:
        with self._lock:
            if not self._started:
                raise StatusBusNotStartedError()
            entry = self._entries.get((path, rid))
        if entry is None:
            return StatusEntry(updated_at=0.0)
        return entry

    def snapshot(self, path: ObjectPath | None = None) -> dict[ObjectPath, dict[str, StatusEntry]]:
        """Copy of the cache, optionally restricted to one object."""
        with self._lock:
            if not self._started:
                raise StatusBusNotStartedError()
            items = list(self._entries.items())
        result: dict[ObjectPath, dict[str, StatusEntry]] = {}
        for (p, rid), entry in items:
            if path is not None and p != path:
                continue
            result.setdefault(p, {})[rid] = entry
        return result
