"""
Action use case — run one lifecycle action across selected objects.

This is the top-level entry for start, stop, provision and unprovision:
it loads the cluster config, builds the object factory, resolves the
selector and dispatches the action. The full vertical slice from user
intent to per-object results.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from svcctl.adapters.registry import DriverRegistry, default_registry
from svcctl.core import context
from svcctl.core.config.loader import ConfigError, load_cluster
from svcctl.core.engine.objects import ObjectFactory
from svcctl.core.engine.selection import ConfigSelectorResolver, Selection
from svcctl.core.engine.statusbus import StatusBus
from svcctl.core.models.action import ActionOptions, ActionResult, ObjectAction

logger = logging.getLogger(__name__)


@dataclass
class ActionRunResult:
    """Result of running an action on a selection."""

    action: str = ""
    selector: str = ""
    results: list[ActionResult] = field(default_factory=list)
    error: str | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.kind == "error")

    @property
    def defects(self) -> int:
        return sum(1 for r in self.results if r.kind == "defect")

    @property
    def all_ok(self) -> bool:
        return self.error is None and self.succeeded == self.total

    @property
    def status(self) -> str:
        if self.error:
            return "failed"
        if self.succeeded == self.total:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def sorted_results(self) -> list[ActionResult]:
        """Results in path order, for display."""
        return sorted(self.results, key=lambda r: r.path)

    def to_dict(self) -> dict:
        result: dict = {"action": self.action, "selector": self.selector}
        if self.error:
            result["error"] = self.error
            return result

        result["status"] = self.status
        result["total"] = self.total
        result["succeeded"] = self.succeeded
        result["failed"] = self.failed
        result["defects"] = self.defects
        result["results"] = [r.to_dict() for r in self.sorted_results()]
        return result


def run_action(
    action: ObjectAction | str,
    selector: str,
    options: ActionOptions | None = None,
    config_path: Path | None = None,
    registry: DriverRegistry | None = None,
    bus: StatusBus | None = None,
) -> ActionRunResult:
    """Run *action* on every object selected by *selector*.

    Args:
        action: start, stop, provision or unprovision.
        selector: Selector expression (e.g. 'svc*', '**').
        options: Action options. Without an explicit lock_timeout, the
            cluster lock timeout applies.
        config_path: Optional explicit path to cluster.yml.
        registry: Optional pre-configured driver registry.
        bus: Optional running status bus. A private one is used otherwise.

    Returns:
        ActionRunResult with one result per dispatched object.
    """
    result = ActionRunResult(action=str(action), selector=selector)

    try:
        config = load_cluster(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if config.node:
        context.set_node_name(config.node)

    options = options or ActionOptions()
    if "lock_timeout" not in options.model_fields_set:
        options = options.model_copy(update={"lock_timeout": config.lock_timeout})

    with running_bus(bus) as running:
        factory = ObjectFactory(config, registry or default_registry(), running)
        selection = Selection(selector, ConfigSelectorResolver(config))
        result.results = selection.action(action, factory, options)

    if not result.results:
        logger.warning("%s: no object selected by '%s'", action, selector)
    return result


@contextmanager
def running_bus(bus: StatusBus | None) -> Iterator[StatusBus]:
    """Use *bus* as is, or start a private one for the duration."""
    if bus is not None:
        yield bus
        return
    private = StatusBus()
    private.start()
    try:
        yield private
    finally:
        private.stop()
