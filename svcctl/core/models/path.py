"""
Object path — the identity of a managed object.

A path is ``<namespace>/<kind>/<name>``. Objects in the ``root``
namespace have shorter forms:

    app1            → root/svc/app1
    vol/data        → root/vol/data
    prod/svc/app1   → prod/svc/app1
"""

from __future__ import annotations

import re
from dataclasses import dataclass

ROOT_NAMESPACE = "root"
DEFAULT_KIND = "svc"
KINDS = ("svc", "vol", "cfg", "sec")

_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9._-]*[a-z0-9])?$", re.IGNORECASE)


@dataclass(frozen=True, order=True)
class ObjectPath:
    """Identity of a managed object."""

    namespace: str
    kind: str
    name: str

    @classmethod
    def parse(cls, text: str) -> ObjectPath:
        """Parse a path in any of its short or full forms.

        Raises:
            ValueError: Malformed path, unknown kind or invalid name.
        """
        parts = text.strip().split("/")
        if len(parts) == 1:
            namespace, kind, name = ROOT_NAMESPACE, DEFAULT_KIND, parts[0]
        elif len(parts) == 2:
            namespace, (kind, name) = ROOT_NAMESPACE, parts
        elif len(parts) == 3:
            namespace, kind, name = parts
        else:
            raise ValueError(f"invalid object path: {text!r}")

        if kind not in KINDS:
            raise ValueError(f"invalid object path {text!r}: unknown kind {kind!r}")
        for part in (namespace, name):
            if not _NAME_RE.match(part):
                raise ValueError(f"invalid object path {text!r}: bad name {part!r}")
        return cls(namespace=namespace, kind=kind, name=name)

    @property
    def fqn(self) -> str:
        """The full ``namespace/kind/name`` form."""
        return f"{self.namespace}/{self.kind}/{self.name}"

    def __str__(self) -> str:
        if self.namespace != ROOT_NAMESPACE:
            return self.fqn
        if self.kind == DEFAULT_KIND:
            return self.name
        return f"{self.kind}/{self.name}"
