"""
Driver registry — map resource types to driver classes.

The registry is the single point of driver management. Objects never
import drivers directly: they ask the registry to build a resource
from its configuration, which validates the driver keywords against
the driver's pydantic ``Params`` model.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from svcctl.adapters.base import Resource
from svcctl.core.errors import DriverError
from svcctl.core.models.cluster import ResourceConfig
from svcctl.core.models.path import ObjectPath

logger = logging.getLogger(__name__)


class DriverRegistry:
    """Registry of resource driver classes, keyed by ``<group>.<name>``."""

    def __init__(self) -> None:
        self._drivers: dict[str, type[Resource]] = {}

    def register(self, driver: type[Resource]) -> None:
        """Register a driver class."""
        name = f"{driver.driver_group}.{driver.driver_name}"
        if name in self._drivers:
            logger.warning("Overwriting existing driver: %s", name)
        self._drivers[name] = driver
        logger.debug("Registered driver: %s", name)

    def unregister(self, name: str) -> None:
        self._drivers.pop(name, None)

    def get(self, name: str) -> type[Resource] | None:
        return self._drivers.get(name)

    def list_drivers(self) -> list[str]:
        return sorted(self._drivers)

    def create(
        self,
        config: ResourceConfig,
        *,
        object_path: ObjectPath | None = None,
        var_dir: Path | None = None,
        node: str = "",
    ) -> Resource:
        """Instantiate the resource described by *config*.

        Raises:
            DriverError: Unknown type, group mismatch, or invalid keywords.
        """
        driver = self._drivers.get(config.type)
        if driver is None:
            raise DriverError(f"{object_path} {config.rid}: unknown driver '{config.type}'")
        if driver.driver_group != config.driver_group:
            raise DriverError(
                f"{object_path} {config.rid}: driver '{config.type}' "
                f"is not in the '{config.driver_group}' group"
            )
        try:
            params = driver.Params.model_validate(config.params)
        except ValidationError as e:
            raise DriverError(f"{object_path} {config.rid}: invalid keywords: {e}") from e

        return driver(config.rid, params, object_path=object_path, var_dir=var_dir, node=node)

    def describe(self) -> dict[str, dict[str, Any]]:
        """Keyword schema of every registered driver."""
        return {name: drv.Params.model_json_schema() for name, drv in sorted(self._drivers.items())}


def default_registry() -> DriverRegistry:
    """A registry holding every built-in driver."""
    from svcctl.adapters.apps.forking import ForkingApp
    from svcctl.adapters.fs.flag import FlagFs
    from svcctl.adapters.volumes.lvm import LogicalVolumeDisk

    registry = DriverRegistry()
    registry.register(ForkingApp)
    registry.register(FlagFs)
    registry.register(LogicalVolumeDisk)
    return registry
