"""
Config check use case — validate cluster.yml and report issues.

Beyond schema validation, every resource is built through the driver
registry so unknown drivers and invalid driver keywords are reported
before any action runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from svcctl.adapters.registry import DriverRegistry, default_registry
from svcctl.core.config.loader import ConfigError, find_cluster_file, load_cluster
from svcctl.core.errors import DriverError
from svcctl.core.models.cluster import ClusterConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ClusterConfig | None = None
    config_path: Path | None = None
    resource_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "cluster_name": self.config.name if self.config else None,
            "object_count": len(self.config.objects) if self.config else 0,
            "resource_count": self.resource_count,
        }


def check_config(
    config_path: Path | None = None,
    registry: DriverRegistry | None = None,
) -> ConfigCheckResult:
    """Validate the cluster configuration and report issues.

    Args:
        config_path: Optional explicit path to cluster.yml.
        registry: Driver registry validating the resources.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_cluster_file()
    if config_path is None:
        result.errors.append("No cluster.yml found.")
        return result
    result.config_path = config_path

    try:
        config = load_cluster(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config

    if not config.objects:
        result.warnings.append("No objects defined. The cluster has nothing to manage.")

    registry = registry or default_registry()
    for obj in config.objects:
        path = obj.object_path
        if path.kind in ("cfg", "sec"):
            if obj.resources:
                result.warnings.append(f"{path}: resources are ignored on {path.kind} objects")
            continue
        if not obj.resources:
            result.warnings.append(f"{path}: no resources")
        for res in obj.resources:
            if res.disable:
                continue
            try:
                registry.create(res, object_path=path, node=config.node)
            except DriverError as e:
                result.errors.append(str(e))
            else:
                result.resource_count += 1

    result.valid = len(result.errors) == 0
    return result
