"""
Domain models — types shared by the engine, the drivers and the CLI.

All models are re-exported here for convenient access:

    from svcctl.core.models import ObjectPath, Status, ActionOptions, ClusterConfig
"""

from svcctl.core.models.action import ActionOptions, ActionResult, ObjectAction
from svcctl.core.models.cluster import ClusterConfig, ObjectConfig, ResourceConfig
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status

__all__ = [
    # action.py
    "ActionOptions",
    "ActionResult",
    # cluster.py
    "ClusterConfig",
    "ObjectAction",
    "ObjectConfig",
    # path.py
    "ObjectPath",
    "ResourceConfig",
    # status.py
    "Status",
]
