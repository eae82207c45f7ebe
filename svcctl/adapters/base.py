"""
Resource driver base — the contract between the engine and drivers.

Every resource driver implements ``Resource``: start, stop and status.
Drivers may also implement ``Aborter`` (a pre-flight veto polled before
a start) and ``Provisioner`` (allocate and release what the resource
needs).

The engine only talks to drivers through this protocol. Drivers decide
what commands to run; the engine decides when, in which order, under
which lock, and what to undo when something fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from svcctl.core.engine.rollback import RollbackStack
from svcctl.core.models.action import ActionOptions
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status


class ActionContext(BaseModel):
    """What a driver sees of the running object action.

    One context exists per invocation. ``for_resource()`` hands each
    resource a shallow copy that shares the same rollback stack.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: ObjectPath
    action: str
    options: ActionOptions = Field(default_factory=ActionOptions)
    rollback: RollbackStack = Field(default_factory=RollbackStack)
    rid: str = ""

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    @property
    def force(self) -> bool:
        return self.options.force

    def for_resource(self, rid: str) -> ActionContext:
        return self.model_copy(update={"rid": rid})


class NoParams(BaseModel):
    """Keyword schema of drivers without keywords."""

    model_config = ConfigDict(extra="forbid")


class Resource(ABC):
    """Abstract base class for all resource drivers.

    To create a new driver:
        1. Subclass Resource (plus Aborter / Provisioner as needed)
        2. Set driver_group, driver_name and a pydantic Params model
        3. Implement start, stop, status
        4. Register it in the DriverRegistry

    Drivers signal failures by raising ``SvcctlError`` (or ``OSError``).
    They register a rollback step for each change a later failure in the
    same invocation should undo.
    """

    driver_group: ClassVar[str] = ""
    driver_name: ClassVar[str] = ""
    Params: ClassVar[type[BaseModel]] = NoParams

    def __init__(
        self,
        rid: str,
        params: BaseModel | None = None,
        *,
        object_path: ObjectPath | None = None,
        var_dir: Path | None = None,
        node: str = "",
    ):
        self.rid = rid
        self.params: Any = params if params is not None else self.Params()
        self.object_path = object_path
        self.var_dir = var_dir or Path(".")
        self.node = node

    @property
    def type(self) -> str:
        return f"{self.driver_group}.{self.driver_name}"

    @property
    def label(self) -> str:
        """Short human description."""
        return self.type

    @abstractmethod
    def start(self, ctx: ActionContext) -> None:
        """Bring the resource up."""

    @abstractmethod
    def stop(self, ctx: ActionContext) -> None:
        """Bring the resource down."""

    @abstractmethod
    def status(self) -> Status:
        """Evaluate the current status. Should not raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} rid={self.rid!r}>"


class Aborter(ABC):
    """Capability: veto a start before anything is changed."""

    @abstractmethod
    def abort(self) -> bool:
        """Return True to refuse the start (e.g. active elsewhere)."""


class Provisioner(ABC):
    """Capability: allocate and release the resource's backing."""

    @abstractmethod
    def provisioned(self) -> bool:
        """Whether the backing already exists."""

    @abstractmethod
    def provision(self, ctx: ActionContext) -> None:
        """Allocate the backing."""

    @abstractmethod
    def unprovision(self, ctx: ActionContext) -> None:
        """Release the backing."""
