"""
Tests for the object action lock — exclusion, timeout and owner info.
"""

import json
import threading
import time
from pathlib import Path

import pytest

from svcctl.core.engine.lock import ObjectLock
from svcctl.core.errors import LockTimeoutError


class TestObjectLock:
    def test_acquire_release(self, tmp_path: Path):
        lock = ObjectLock(tmp_path / "lock" / "action", timeout=1, intent="start")
        lock.acquire()
        assert lock.locked
        lock.release()
        assert not lock.locked

    def test_context_manager(self, tmp_path: Path):
        path = tmp_path / "action"
        with ObjectLock(path) as lock:
            assert lock.locked
        assert not lock.locked
        # Free again
        with ObjectLock(path, timeout=0):
            pass

    def test_owner_info(self, tmp_path: Path):
        path = tmp_path / "action"
        with ObjectLock(path, intent="stop"):
            info = json.loads(path.read_text())
        assert info["intent"] == "stop"
        assert info["pid"] > 0

    def test_release_when_not_held(self, tmp_path: Path):
        ObjectLock(tmp_path / "action").release()

    def test_double_acquire(self, tmp_path: Path):
        lock = ObjectLock(tmp_path / "action")
        lock.acquire()
        try:
            with pytest.raises(RuntimeError):
                lock.acquire()
        finally:
            lock.release()


class TestObjectLockContention:
    def test_timeout(self, tmp_path: Path):
        path = tmp_path / "action"
        with ObjectLock(path):
            t0 = time.monotonic()
            with pytest.raises(LockTimeoutError):
                ObjectLock(path, timeout=0.2).acquire()
            assert time.monotonic() - t0 >= 0.2

    def test_waits_for_release(self, tmp_path: Path):
        path = tmp_path / "action"
        holder = ObjectLock(path)
        holder.acquire()
        acquired = threading.Event()

        def waiter():
            with ObjectLock(path, timeout=5):
                acquired.set()

        t = threading.Thread(target=waiter)
        t.start()
        time.sleep(0.2)
        assert not acquired.is_set()
        holder.release()
        t.join(timeout=5)
        assert acquired.is_set()

    def test_mutual_exclusion(self, tmp_path: Path):
        path = tmp_path / "action"
        inside = 0
        overlaps = 0
        guard = threading.Lock()

        def worker():
            nonlocal inside, overlaps
            for _ in range(5):
                with ObjectLock(path, timeout=10):
                    with guard:
                        inside += 1
                        if inside > 1:
                            overlaps += 1
                    time.sleep(0.01)
                    with guard:
                        inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == 0
