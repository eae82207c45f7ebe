"""
Status use case — evaluate selected objects and aggregate their status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from svcctl.adapters.registry import DriverRegistry, default_registry
from svcctl.core import context
from svcctl.core.config.loader import ConfigError, load_cluster
from svcctl.core.engine.objects import ObjectFactory
from svcctl.core.engine.selection import ConfigSelectorResolver, Selection
from svcctl.core.engine.statusbus import StatusBus
from svcctl.core.models.action import ActionOptions, ActionResult, ObjectAction
from svcctl.core.models.cluster import ClusterConfig
from svcctl.core.use_cases.action import running_bus


@dataclass
class StatusResult:
    """Aggregated status of the selected objects."""

    config: ClusterConfig | None = None
    config_path: Path | None = None
    results: list[ActionResult] = field(default_factory=list)
    error: str | None = None

    @property
    def objects(self) -> dict[str, dict]:
        """Status report per object path, for the objects evaluated."""
        return {str(r.path): r.value for r in sorted(self.results, key=lambda r: r.path) if r.ok}

    @property
    def failures(self) -> dict[str, str]:
        return {
            str(r.path): str(r.error or r.defect)
            for r in sorted(self.results, key=lambda r: r.path)
            if not r.ok
        }

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        if self.config:
            result["cluster"] = {"name": self.config.name, "node": self.config.node}
        result["objects"] = self.objects
        if self.failures:
            result["failures"] = self.failures
        return result


def get_status(
    selector: str = "**",
    config_path: Path | None = None,
    rid: str = "",
    registry: DriverRegistry | None = None,
    bus: StatusBus | None = None,
) -> StatusResult:
    """Evaluate the status of every object selected by *selector*.

    Args:
        selector: Selector expression, all objects by default.
        config_path: Optional explicit path to cluster.yml.
        rid: Optional resource selector.
        registry: Optional pre-configured driver registry.
        bus: Optional running status bus receiving the evaluations.

    Returns:
        StatusResult with one status report per object.
    """
    result = StatusResult(config_path=config_path)

    try:
        config = load_cluster(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if config.node:
        context.set_node_name(config.node)
    result.config = config

    with running_bus(bus) as running:
        factory = ObjectFactory(config, registry or default_registry(), running)
        selection = Selection(selector, ConfigSelectorResolver(config))
        result.results = selection.action(ObjectAction.STATUS, factory, ActionOptions(rid=rid))

    return result
