"""
Tests for the resource action orchestrator — ordering, stop on first
failure, rollback, abort vetoes, dry run and locking.
"""

from pathlib import Path

import pytest

from svcctl.adapters.mock import MockResource
from svcctl.core.engine.lock import ObjectLock
from svcctl.core.engine.orchestrator import ResourceActionOrchestrator
from svcctl.core.errors import AbortActionError, LockTimeoutError, ResourceActionError
from svcctl.core.models.action import ActionOptions
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status


def _start(res, ctx):
    res.start(ctx)


def _make(journal: list, *rids: str) -> list[MockResource]:
    return [MockResource(rid, journal=journal) for rid in rids]


def _actions(journal: list, action: str) -> list[str]:
    return [rid for a, rid in journal if a == action]


@pytest.fixture
def orch(tmp_path: Path, svc_path: ObjectPath, bus) -> ResourceActionOrchestrator:
    return ResourceActionOrchestrator(svc_path, tmp_path / "lock" / "action", bus)


# ── Ordering Tests ───────────────────────────────────────────────────


class TestApplyOrder:
    def test_applies_in_given_order(self, orch):
        journal: list = []
        resources = _make(journal, "disk#1", "fs#1", "app#1")
        orch.run("start", resources, _start)
        assert _actions(journal, "start") == ["disk#1", "fs#1", "app#1"]
        assert all(r.status() == Status.UP for r in resources)

    def test_success_discards_rollback(self, orch):
        journal: list = []
        orch.run("start", _make(journal, "disk#1", "app#1"), _start)
        assert not any(a.startswith("rollback") for a, _ in journal)

    def test_statuses_posted(self, orch, bus, svc_path):
        resources = _make([], "fs#1", "app#1")
        orch.run("start", resources, _start)
        entry = bus.get_entry(svc_path, "app#1")
        assert entry.status == Status.UP
        assert not entry.pending

    def test_no_resources(self, orch):
        orch.run("start", [], _start, abort_check=True)


# ── Failure Tests ────────────────────────────────────────────────────


class TestFailure:
    def test_stops_at_first_failure(self, orch):
        journal: list = []
        disk, fs, app = _make(journal, "disk#1", "fs#1", "app#1")
        fs.set_failure("start", "mount failed")
        with pytest.raises(ResourceActionError) as exc_info:
            orch.run("start", [disk, fs, app], _start)
        assert exc_info.value.rid == "fs#1"
        assert "mount failed" in str(exc_info.value)
        assert _actions(journal, "start") == ["disk#1", "fs#1"]

    def test_rollback_in_reverse_order(self, orch):
        journal: list = []
        disk, fs, app = _make(journal, "disk#1", "fs#1", "app#1")
        app.set_failure("start")
        with pytest.raises(ResourceActionError):
            orch.run("start", [disk, fs, app], _start)
        assert _actions(journal, "rollback-start") == ["fs#1", "disk#1"]
        assert disk.status() == Status.DOWN
        assert fs.status() == Status.DOWN

    def test_os_error_is_wrapped(self, orch):
        journal: list = []
        disk, app = _make(journal, "disk#1", "app#1")
        app.set_crash("start", PermissionError("denied"))
        with pytest.raises(ResourceActionError) as exc_info:
            orch.run("start", [disk, app], _start)
        assert isinstance(exc_info.value.cause, PermissionError)
        assert _actions(journal, "rollback-start") == ["disk#1"]

    def test_unexpected_exception_propagates_after_rollback(self, orch):
        journal: list = []
        disk, app = _make(journal, "disk#1", "app#1")
        app.set_crash("start", KeyError("bug"))
        with pytest.raises(KeyError):
            orch.run("start", [disk, app], _start)
        assert _actions(journal, "rollback-start") == ["disk#1"]

    def test_post_sequence_failure_rolls_back(self, orch):
        journal: list = []

        def post(ctx):
            raise ResourceActionError("app#1", "standby start", OSError("boom"))

        with pytest.raises(ResourceActionError):
            orch.run("start", _make(journal, "disk#1", "app#1"), _start, post_sequence=post)
        assert _actions(journal, "rollback-start") == ["app#1", "disk#1"]

    def test_post_sequence_runs_after_resources(self, orch):
        journal: list = []
        orch.run(
            "start",
            _make(journal, "disk#1"),
            _start,
            post_sequence=lambda ctx: journal.append(("post", ctx.action)),
        )
        assert journal[-1] == ("post", "start")

    def test_failed_resource_status_posted(self, orch, bus, svc_path):
        (app,) = _make([], "app#1")
        app.set_failure("start")
        with pytest.raises(ResourceActionError):
            orch.run("start", [app], _start)
        entry = bus.get_entry(svc_path, "app#1")
        assert entry.status == Status.DOWN
        assert not entry.pending


# ── Abort Tests ──────────────────────────────────────────────────────


class TestAbortCheck:
    def test_veto_prevents_any_start(self, orch):
        journal: list = []
        disk, fs, app = _make(journal, "disk#1", "fs#1", "app#1")
        fs.set_abort()
        with pytest.raises(AbortActionError) as exc_info:
            orch.run("start", [disk, fs, app], _start, abort_check=True)
        assert exc_info.value.rids == ["fs#1"]
        assert _actions(journal, "start") == []

    def test_every_resource_polled(self, orch):
        journal: list = []
        resources = _make(journal, "disk#1", "fs#1", "app#1")
        resources[0].set_abort()
        with pytest.raises(AbortActionError):
            orch.run("start", resources, _start, abort_check=True)
        assert sorted(_actions(journal, "abort")) == ["app#1", "disk#1", "fs#1"]

    def test_multiple_vetoes_sorted(self, orch):
        resources = _make([], "disk#1", "fs#1", "app#1")
        resources[2].set_abort()
        resources[0].set_abort()
        with pytest.raises(AbortActionError) as exc_info:
            orch.run("start", resources, _start, abort_check=True)
        assert exc_info.value.rids == ["app#1", "disk#1"]

    def test_crashing_veto_counts_as_veto(self, orch):
        (app,) = _make([], "app#1")
        app.set_crash("abort")
        with pytest.raises(AbortActionError):
            orch.run("start", [app], _start, abort_check=True)

    def test_no_veto(self, orch):
        journal: list = []
        orch.run("start", _make(journal, "disk#1", "app#1"), _start, abort_check=True)
        assert _actions(journal, "start") == ["disk#1", "app#1"]

    def test_abort_resources_polled_instead(self, orch):
        journal: list = []
        disk, app = _make(journal, "disk#1", "app#1")
        disk.set_abort()
        with pytest.raises(AbortActionError) as exc_info:
            orch.run("start", [app], _start, abort_check=True, abort_resources=[disk, app])
        assert exc_info.value.rids == ["disk#1"]
        assert _actions(journal, "start") == []


# ── Options Tests ────────────────────────────────────────────────────


class TestOptions:
    def test_dry_run_changes_nothing(self, orch):
        journal: list = []
        resources = _make(journal, "disk#1", "app#1")
        orch.run("start", resources, _start, ActionOptions(dry_run=True))
        assert _actions(journal, "start") == []
        assert all(r.status() == Status.DOWN for r in resources)

    def test_lock_timeout(self, orch):
        journal: list = []
        with ObjectLock(orch.lock_path):
            with pytest.raises(LockTimeoutError):
                orch.run("start", _make(journal, "app#1"), _start, ActionOptions(lock_timeout=0.1))
        assert journal == []

    def test_no_lock_ignores_held_lock(self, orch):
        journal: list = []
        with ObjectLock(orch.lock_path):
            orch.run("start", _make(journal, "app#1"), _start, ActionOptions(no_lock=True))
        assert _actions(journal, "start") == ["app#1"]

    def test_lock_released_after_failure(self, orch):
        (app,) = _make([], "app#1")
        app.set_failure("start")
        with pytest.raises(ResourceActionError):
            orch.run("start", [app], _start)
        with ObjectLock(orch.lock_path, timeout=0):
            pass

    def test_without_bus(self, tmp_path: Path, svc_path: ObjectPath):
        orch = ResourceActionOrchestrator(svc_path, tmp_path / "action")
        resources = _make([], "app#1")
        orch.run("start", resources, _start)
        assert resources[0].status() == Status.UP
