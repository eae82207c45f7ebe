"""
Flag filesystem driver (fs.flag) — a file marking the object as up here.

The flag holds the name of the node that created it. On shared storage
this makes the flag a cheap "active elsewhere" detector: a start is
vetoed when the flag exists and belongs to another node.

Keywords:
    path    Flag file path (default: <var_dir>/flag/<namespace>/<kind>/<name>/<rid>.flag)
    perm    Octal permissions applied to the flag (e.g. "600")
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from svcctl.adapters.base import ActionContext, Aborter, Provisioner, Resource
from svcctl.core import context
from svcctl.core.engine import rollback
from svcctl.core.errors import SvcctlError
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)


class FlagHeldError(SvcctlError):
    """The flag belongs to another node."""


class FlagParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = ""
    perm: str | None = None

    @field_validator("perm")
    @classmethod
    def _check_perm(cls, value: str | None) -> str | None:
        if value is not None:
            int(value, 8)  # ValueError → validation error
        return value


class FlagFs(Resource, Aborter, Provisioner):
    """Flag file resource."""

    driver_group = "fs"
    driver_name = "flag"
    Params = FlagParams

    @property
    def flag_path(self) -> Path:
        if self.params.path:
            return Path(self.params.path)
        base = self.var_dir / "flag"
        if self.object_path is not None:
            base = base / self.object_path.fqn
        return base / f"{self.rid.replace('#', '.')}.flag"

    @property
    def label(self) -> str:
        return str(self.flag_path)

    @property
    def node_name(self) -> str:
        return self.node or context.get_node_name()

    def owner(self) -> str:
        """Node name stored in the flag, empty when absent."""
        try:
            return self.flag_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""

    # ── Capabilities ────────────────────────────────────────────

    def abort(self) -> bool:
        owner = self.owner()
        if owner and owner != self.node_name:
            logger.error("%s: flag %s is held by node %s", self.rid, self.flag_path, owner)
            return True
        return False

    def start(self, ctx: ActionContext) -> None:
        p = self.flag_path
        owner = self.owner()
        if owner and owner != self.node_name:
            raise FlagHeldError(f"{p} is held by node {owner}")
        if owner:
            logger.info("%s: flag %s already set", self.rid, p)
        else:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(self.node_name + "\n", encoding="utf-8")
            logger.info("%s: set flag %s", self.rid, p)
            rollback.register(ctx, lambda: p.unlink(missing_ok=True), f"remove flag {p}")
        self._set_mode(ctx, p)

    def stop(self, ctx: ActionContext) -> None:
        p = self.flag_path
        if not p.exists():
            logger.info("%s: flag %s already removed", self.rid, p)
            return
        logger.info("%s: remove flag %s", self.rid, p)
        p.unlink()

    def status(self) -> Status:
        owner = self.owner()
        if not owner:
            return Status.DOWN
        if owner != self.node_name:
            logger.debug("%s: flag held by %s", self.rid, owner)
            return Status.DOWN
        return Status.UP

    def provisioned(self) -> bool:
        return self.flag_path.parent.is_dir()

    def provision(self, ctx: ActionContext) -> None:
        d = self.flag_path.parent
        if d.is_dir():
            return
        logger.info("%s: create flag directory %s", self.rid, d)
        d.mkdir(parents=True)
        rollback.register(ctx, d.rmdir, f"remove flag directory {d}")

    def unprovision(self, ctx: ActionContext) -> None:
        p = self.flag_path
        p.unlink(missing_ok=True)
        try:
            p.parent.rmdir()
            logger.info("%s: removed flag directory %s", self.rid, p.parent)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.info("%s: keep flag directory %s: %s", self.rid, p.parent, e)

    # ── Helpers ─────────────────────────────────────────────────

    def _set_mode(self, ctx: ActionContext, p: Path) -> None:
        if self.params.perm is None:
            return
        wanted = int(self.params.perm, 8)
        current = stat.S_IMODE(p.stat().st_mode)
        if current == wanted:
            return
        logger.info("%s: set %s mode to %o", self.rid, p, wanted)
        os.chmod(p, wanted)
        rollback.register(ctx, lambda: os.chmod(p, current), f"set {p} mode back to {current:o}")
