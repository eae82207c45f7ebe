"""
Cluster model — the declared objects and their resources.

Loaded from cluster.yml, this is the canonical truth about which
objects exist on this node and which resources compose them. Driver
specific keywords stay in ``ResourceConfig.params`` and are validated
by the driver itself.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from svcctl.core.models.path import ObjectPath

_RID_RE = re.compile(r"^[a-z]+#[A-Za-z0-9_.-]+$")


class ResourceConfig(BaseModel):
    """A resource declared in an object section."""

    rid: str                            # <driver group>#<index>, e.g. app#1
    type: str                           # <driver group>.<driver name>, e.g. app.forking
    params: dict[str, Any] = Field(default_factory=dict)
    disable: bool = False

    @field_validator("rid")
    @classmethod
    def _check_rid(cls, value: str) -> str:
        if not _RID_RE.match(value):
            raise ValueError(f"invalid rid {value!r}, expected <group>#<index>")
        return value

    @property
    def driver_group(self) -> str:
        return self.rid.split("#", 1)[0]


class ObjectConfig(BaseModel):
    """An object declared in cluster.yml."""

    path: str
    description: str = ""
    resources: list[ResourceConfig] = Field(default_factory=list)
    data: dict[str, str] = Field(default_factory=dict)  # cfg/sec keys

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        ObjectPath.parse(value)
        return value

    @model_validator(mode="after")
    def _check_unique_rids(self) -> ObjectConfig:
        seen: set[str] = set()
        for res in self.resources:
            if res.rid in seen:
                raise ValueError(f"{self.path}: duplicate rid {res.rid!r}")
            seen.add(res.rid)
        return self

    @property
    def object_path(self) -> ObjectPath:
        return ObjectPath.parse(self.path)


class ClusterConfig(BaseModel):
    """Root configuration — loaded from cluster.yml."""

    version: int = 1

    name: str = "default"
    node: str = ""                      # this node name, defaults to the hostname
    var_dir: str = "/var/lib/svcctl"    # lock files and driver state
    lock_timeout: float = 30.0

    objects: list[ObjectConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_paths(self) -> ClusterConfig:
        seen: set[ObjectPath] = set()
        for obj in self.objects:
            path = obj.object_path
            if path in seen:
                raise ValueError(f"duplicate object {path}")
            seen.add(path)
        return self

    def get_object(self, path: ObjectPath) -> ObjectConfig | None:
        """Look up an object declaration by path."""
        for obj in self.objects:
            if obj.object_path == path:
                return obj
        return None

    def object_paths(self) -> list[ObjectPath]:
        return [obj.object_path for obj in self.objects]
