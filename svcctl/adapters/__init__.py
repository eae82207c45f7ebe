"""Adapters — resource drivers and the tools they run.

Public re-exports for convenient access.
"""

from svcctl.adapters.base import ActionContext, Aborter, Provisioner, Resource
from svcctl.adapters.mock import MockResource
from svcctl.adapters.registry import DriverRegistry, default_registry

__all__ = [
    "Aborter",
    "ActionContext",
    "DriverRegistry",
    "MockResource",
    "Provisioner",
    "Resource",
    "default_registry",
]
