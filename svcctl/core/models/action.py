"""
Action options and results — the object action contract.

Options describe how an action runs (locking, dry run, resource
subset). Results are what the selection dispatcher returns, one per
dispatched object: a value, an expected error, or a defect (an
unexpected exception escaping the object's action, kept apart because
it signals a bug rather than a failure).
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from svcctl.core.models.path import ObjectPath


class ObjectAction(StrEnum):
    """Actions the dispatcher knows how to route to objects."""

    START = "start"
    STOP = "stop"
    PROVISION = "provision"
    UNPROVISION = "unprovision"
    STATUS = "status"


class ActionOptions(BaseModel):
    """How an object action runs."""

    dry_run: bool = False
    no_lock: bool = False               # danger: skip the action lock
    lock_timeout: float = Field(default=30.0, ge=0)
    rid: str = ""                       # resource selector (app#1,disk)
    force: bool = False                 # allow dangerous operations


@dataclass
class ActionResult:
    """Outcome of one object's action in a dispatched batch.

    Exactly one of these holds:
        ok       — ``error`` and ``defect`` are None, ``value`` is the return
        error    — ``error`` is the expected failure
        defect   — ``defect`` is the unexpected exception, ``traceback`` its trace
    """

    path: ObjectPath
    value: Any = None
    error: BaseException | None = None
    defect: BaseException | None = None
    traceback: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.defect is None

    @property
    def kind(self) -> str:
        if self.defect is not None:
            return "defect"
        if self.error is not None:
            return "error"
        return "ok"

    @classmethod
    def success(cls, path: ObjectPath, value: Any = None) -> ActionResult:
        return cls(path=path, value=value)

    @classmethod
    def failure(cls, path: ObjectPath, error: BaseException) -> ActionResult:
        return cls(path=path, error=error)

    @classmethod
    def crash(cls, path: ObjectPath, defect: BaseException) -> ActionResult:
        """Wrap an unexpected exception, keeping its traceback."""
        return cls(
            path=path,
            defect=defect,
            traceback="".join(traceback.format_exception(defect)),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"path": str(self.path), "status": self.kind}
        if self.value is not None:
            result["value"] = self.value
        if self.error is not None:
            result["error"] = str(self.error)
        if self.defect is not None:
            result["defect"] = repr(self.defect)
            result["traceback"] = self.traceback
        return result
