"""
Mock resource — universal test double for the resource protocol.

Records every call, holds an in-memory status, and can be configured
to fail (expected error), crash (unexpected exception) or veto a start
per action. Each successful change registers a rollback step that
restores the previous status, so rollback ordering is observable.
"""

from __future__ import annotations

from pathlib import Path

from svcctl.adapters.base import ActionContext, Aborter, Provisioner, Resource
from svcctl.core.engine import rollback
from svcctl.core.errors import SvcctlError
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status


class MockResource(Resource, Aborter, Provisioner):
    """Mock resource for testing.

    By default every action succeeds. ``calls`` lists ``(action, rid)``
    tuples in call order, rollbacks appear as ``("rollback-<action>", rid)``.
    Pass a shared ``journal`` list to observe ordering across resources.
    """

    driver_group = "app"
    driver_name = "mock"

    def __init__(
        self,
        rid: str = "app#1",
        params=None,
        *,
        object_path: ObjectPath | None = None,
        var_dir: Path | None = None,
        node: str = "",
        status: Status = Status.DOWN,
        provisioned: bool = True,
        journal: list[tuple[str, str]] | None = None,
    ):
        super().__init__(rid, params, object_path=object_path, var_dir=var_dir, node=node)
        self._status = status
        self._provisioned = provisioned
        self._failures: dict[str, str] = {}
        self._crashes: dict[str, BaseException] = {}
        self._abort = False
        self.calls: list[tuple[str, str]] = journal if journal is not None else []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def actions(self) -> list[str]:
        """Names of the actions this mock received, in order."""
        return [action for action, rid in self.calls if rid == self.rid]

    # ── Configuration ───────────────────────────────────────────

    def set_failure(self, action: str, error: str = "Mock failure") -> None:
        """Make *action* raise an expected error."""
        self._failures[action] = error

    def set_crash(self, action: str, exc: BaseException | None = None) -> None:
        """Make *action* raise an unexpected exception."""
        self._crashes[action] = exc or RuntimeError(f"mock crash in {action}")

    def set_abort(self, abort: bool = True) -> None:
        self._abort = abort

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self.calls.clear()
        self._failures.clear()
        self._crashes.clear()
        self._abort = False

    # ── Resource protocol ───────────────────────────────────────

    def abort(self) -> bool:
        self._record("abort")
        if "abort" in self._crashes:
            raise self._crashes["abort"]
        return self._abort

    def start(self, ctx: ActionContext) -> None:
        self._change(ctx, "start", Status.UP)

    def stop(self, ctx: ActionContext) -> None:
        self._change(ctx, "stop", Status.DOWN)

    def status(self) -> Status:
        if "status" in self._crashes:
            raise self._crashes["status"]
        return self._status

    def provisioned(self) -> bool:
        return self._provisioned

    def provision(self, ctx: ActionContext) -> None:
        self._record("provision")
        self._maybe_fail("provision")
        previous = self._provisioned
        self._provisioned = True
        rollback.register(ctx, lambda: self._undo("provision", previous), "unprovision")

    def unprovision(self, ctx: ActionContext) -> None:
        self._record("unprovision")
        self._maybe_fail("unprovision")
        self._provisioned = False
        self._status = Status.DOWN

    # ── Helpers ─────────────────────────────────────────────────

    def _change(self, ctx: ActionContext, action: str, status: Status) -> None:
        self._record(action)
        self._maybe_fail(action)
        previous = self._status
        self._status = status
        rollback.register(ctx, lambda: self._restore(action, previous), f"undo {action}")

    def _restore(self, action: str, status: Status) -> None:
        self._record(f"rollback-{action}")
        self._status = status

    def _undo(self, action: str, provisioned: bool) -> None:
        self._record(f"rollback-{action}")
        self._provisioned = provisioned

    def _maybe_fail(self, action: str) -> None:
        if action in self._crashes:
            raise self._crashes[action]
        if action in self._failures:
            raise SvcctlError(self._failures[action])

    def _record(self, action: str) -> None:
        self.calls.append((action, self.rid))
