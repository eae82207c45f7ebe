"""
Objects — the actors the selection dispatcher acts upon.

``Svc`` and ``Vol`` objects own ordered resources and expose the
lifecycle actions. ``Keystore`` objects (``cfg``, ``sec``) only hold
data: they have no lifecycle actions, so the dispatcher skips them.

Resource order:
    start, provision      ip → volume → disk → fs → share → container → app → sync → task
    stop, unprovision     the reverse

Within a driver group, resources sort by rid index (app#2 before app#10).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, cast

from svcctl.adapters.base import ActionContext, Provisioner, Resource
from svcctl.adapters.registry import DriverRegistry
from svcctl.core.engine.orchestrator import ResourceActionOrchestrator
from svcctl.core.engine.statusbus import StatusBus
from svcctl.core.models.action import ActionOptions
from svcctl.core.models.cluster import ClusterConfig, ObjectConfig
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)

DRIVER_GROUP_ORDER = ("ip", "volume", "disk", "fs", "share", "container", "app", "sync", "task")

# Actions walking the resources in reverse order
_REVERSED_ACTIONS = frozenset({"stop", "unprovision"})


def resource_sort_key(rid: str) -> tuple[int, int, str]:
    """Sort key placing resources in driver-group precedence order."""
    group, _, index = rid.partition("#")
    try:
        rank = DRIVER_GROUP_ORDER.index(group)
    except ValueError:
        rank = len(DRIVER_GROUP_ORDER)
    return rank, int(index) if index.isdigit() else 0, index


def match_resource(res: Resource, selector: str) -> bool:
    """Whether *res* matches a ``--rid`` expression.

    The expression is a comma-separated list of rids (``app#1``),
    driver groups (``app``) or driver types (``app.forking``).
    """
    if not selector:
        return True
    for term in (t.strip() for t in selector.split(",")):
        if term and term in (res.rid, res.driver_group, res.type):
            return True
    return False


class BaseObject:
    """An object made of ordered resources."""

    def __init__(
        self,
        path: ObjectPath,
        resources: Sequence[Resource] = (),
        *,
        var_dir: Path = Path("."),
        bus: StatusBus | None = None,
    ):
        self.path = path
        self.var_dir = var_dir
        self.bus = bus
        self._resources = sorted(resources, key=lambda r: resource_sort_key(r.rid))

    @property
    def lock_path(self) -> Path:
        return self.var_dir / "lock" / self.path.fqn / "action"

    def list_resources(self, action: str = "start", selector: str = "") -> list[Resource]:
        """Resources in the order *action* applies them."""
        resources = [r for r in self._resources if match_resource(r, selector)]
        if action in _REVERSED_ACTIONS:
            resources.reverse()
        return resources

    def orchestrator(self) -> ResourceActionOrchestrator:
        return ResourceActionOrchestrator(self.path, self.lock_path, self.bus)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.path}>"


class Actor(BaseObject):
    """An object supporting the lifecycle actions."""

    def start(self, options: ActionOptions | None = None) -> None:
        options = options or ActionOptions()
        self.orchestrator().run(
            "start",
            self.list_resources("start", options.rid),
            lambda res, ctx: res.start(ctx),
            options,
            abort_check=True,
            abort_resources=self.list_resources("start"),
            post_sequence=self._standby_start,
        )

    def stop(self, options: ActionOptions | None = None) -> None:
        options = options or ActionOptions()
        self.orchestrator().run(
            "stop",
            self.list_resources("stop", options.rid),
            lambda res, ctx: res.stop(ctx),
            options,
        )

    def provision(self, options: ActionOptions | None = None) -> None:
        options = options or ActionOptions()
        self.orchestrator().run(
            "provision",
            self._provisioners("provision", options.rid),
            _provision,
            options,
        )

    def unprovision(self, options: ActionOptions | None = None) -> None:
        options = options or ActionOptions()
        self.orchestrator().run(
            "unprovision",
            self._provisioners("unprovision", options.rid),
            lambda res, ctx: res.unprovision(ctx),  # type: ignore[attr-defined]
            options,
        )

    def status(self, options: ActionOptions | None = None) -> dict[str, Any]:
        """Evaluate every resource, post to the bus, aggregate."""
        options = options or ActionOptions()
        resources: dict[str, str] = {}
        statuses: list[Status] = []
        for res in self.list_resources("status", options.rid):
            try:
                value = res.status()
            except Exception as e:
                logger.warning("%s %s: status evaluation failed: %s", self.path, res.rid, e)
                value = Status.UNDEF
            if self.bus is not None:
                self.bus.post(self.path, res.rid, value)
            resources[res.rid] = value.value
            statuses.append(value)
        return {"avail": Status.aggregate(statuses).value, "resources": resources}

    def _provisioners(self, action: str, selector: str) -> list[Resource]:
        return [r for r in self.list_resources(action, selector) if isinstance(r, Provisioner)]

    def _standby_start(self, ctx: ActionContext) -> None:
        # Standby resources are not supported yet: nothing runs after the
        # primary sequence.
        logger.debug("%s: no standby resources to start", self.path)


class Svc(Actor):
    """A service: the general purpose object kind."""


class Vol(Actor):
    """A volume: storage resources consumed by services."""


class Keystore(BaseObject):
    """A key-value store object (cfg, sec). No lifecycle actions."""

    def __init__(self, path: ObjectPath, data: dict[str, str] | None = None, **kwargs: Any):
        super().__init__(path, **kwargs)
        self._data = dict(data or {})

    def keys(self) -> list[str]:
        return sorted(self._data)

    def get(self, key: str) -> str | None:
        return self._data.get(key)


def _provision(res: Resource, ctx: ActionContext) -> None:
    prov = cast(Provisioner, res)
    if prov.provisioned() and not ctx.force:
        logger.info("%s %s: already provisioned", ctx.path, res.rid)
        return
    prov.provision(ctx)


_KIND_CLASSES: dict[str, type[Actor]] = {"svc": Svc, "vol": Vol}


class ObjectFactory:
    """Build object instances from the cluster configuration.

    Args:
        config: The loaded cluster configuration.
        registry: Driver registry used to instantiate resources.
        bus: Status bus handed to every object.
    """

    def __init__(
        self,
        config: ClusterConfig,
        registry: DriverRegistry,
        bus: StatusBus | None = None,
    ):
        self.config = config
        self.registry = registry
        self.bus = bus

    def new(self, path: ObjectPath) -> BaseObject | None:
        """Instantiate the object at *path*, None if not declared.

        Raises:
            DriverError: A resource references an unknown driver or has
                invalid keywords.
        """
        declared = self.config.get_object(path)
        if declared is None:
            logger.debug("don't know how to handle %s", path)
            return None

        var_dir = Path(self.config.var_dir)
        if path.kind in ("cfg", "sec"):
            return Keystore(path, declared.data, var_dir=var_dir, bus=self.bus)

        cls = _KIND_CLASSES[path.kind]
        return cls(path, self._resources(path, declared), var_dir=var_dir, bus=self.bus)

    def _resources(self, path: ObjectPath, declared: ObjectConfig) -> list[Resource]:
        return [
            self.registry.create(
                res,
                object_path=path,
                var_dir=Path(self.config.var_dir),
                node=self.config.node,
            )
            for res in declared.resources
            if not res.disable
        ]
