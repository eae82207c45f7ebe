"""
Configuration loader — reads cluster.yml into domain models.

This is the only place the cluster configuration is parsed. It reads
YAML, validates against the pydantic models, and returns a typed
``ClusterConfig``.

Layout of cluster.yml:

    cluster:
      name: prod
      node: node1
      var_dir: /var/lib/svcctl
    objects:
      - path: svc1
        resources:
          - rid: fs#1
            type: fs.flag
          - rid: app#1
            type: app.forking
            params: {start: "/srv/app start", check: "/srv/app status"}

The settings may also sit at the top level, next to ``objects``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from svcctl.core.errors import SvcctlError
from svcctl.core.models.cluster import ClusterConfig

logger = logging.getLogger(__name__)

# Default config filename
CLUSTER_CONFIG_FILE = "cluster.yml"

# Keys allowed next to the "cluster" section
_TOP_LEVEL_KEYS = ("version", "objects")


class ConfigError(SvcctlError):
    """Raised when cluster configuration is invalid or missing."""


def find_cluster_file(start_dir: Path | None = None) -> Path | None:
    """Search for cluster.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to cluster.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CLUSTER_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_cluster(path: Path | None = None) -> ClusterConfig:
    """Load and validate the cluster configuration.

    Args:
        path: Explicit path to cluster.yml. If None, searches upward.

    Returns:
        Validated ClusterConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_cluster_file()

    if path is None:
        raise ConfigError(f"No {CLUSTER_CONFIG_FILE} found. Specify one with --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading cluster config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    cluster_data = data.get("cluster")
    if cluster_data is None:
        cluster_data = data
    elif isinstance(cluster_data, dict):
        cluster_data = dict(cluster_data)
        for key in _TOP_LEVEL_KEYS:
            if key in data and key not in cluster_data:
                cluster_data[key] = data[key]
    else:
        raise ConfigError(f"Expected 'cluster' to be a mapping in {path}")

    try:
        config = ClusterConfig.model_validate(cluster_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid cluster configuration: {e}") from e

    logger.info("Loaded cluster '%s' with %d objects", config.name, len(config.objects))
    return config
