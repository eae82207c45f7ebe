"""
Error taxonomy shared by the engine, the drivers and the dispatcher.

Everything deriving from ``SvcctlError`` is an expected, reportable
failure: a missing binary, a lock timeout, a resource refusing to start.
The selection dispatcher reports these as normal per-object errors.

Any other exception escaping an object action is a defect (a driver or
programming bug) and is reported separately, with its traceback.

Usage errors (calling things out of lifecycle order) are not part of
this hierarchy: they derive from ``RuntimeError`` and are meant to be
fixed, not handled.
"""

from __future__ import annotations


class SvcctlError(Exception):
    """Base class for expected, reportable failures."""


class LockTimeoutError(SvcctlError):
    """The object action lock could not be acquired in time."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"{name}: lock not acquired within {timeout:g}s")
        self.name = name
        self.timeout = timeout


class AbortActionError(SvcctlError):
    """A resource vetoed the action during the pre-flight check."""

    def __init__(self, action: str, rids: list[str]):
        super().__init__(f"abort {action}: vetoed by {', '.join(rids)}")
        self.action = action
        self.rids = rids


class ResourceActionError(SvcctlError):
    """A resource action failed and stopped the ordered sequence."""

    def __init__(self, rid: str, action: str, cause: BaseException):
        super().__init__(f"{rid}: {action} failed: {cause}")
        self.rid = rid
        self.action = action
        self.cause = cause


class SelectorError(SvcctlError):
    """A selector expression could not be resolved."""


class DriverError(SvcctlError):
    """A resource driver is unknown or misconfigured."""
