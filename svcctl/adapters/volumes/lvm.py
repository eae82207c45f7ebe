"""
LVM logical volume driver (disk.lv).

``LV`` wraps the lvm2 command line tools; ``LogicalVolumeDisk`` is the
resource driver built on it.

Commands used:
    lvs --reportformat json <vg>/<lv>       show, attrs, devices
    lvchange -ay|-an <vg>/<lv>              activate, deactivate
    lvcreate --yes -L <size> -n <lv> <vg>   create
    lvremove <args> /dev/<vg>/<lv>          remove

``lvs`` exits with code 5 when the logical volume does not exist.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from svcctl.adapters.base import ActionContext, Provisioner, Resource
from svcctl.adapters.shell.command import Command, CommandExitError
from svcctl.core.engine import rollback
from svcctl.core.errors import SvcctlError
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)

# lvs exit code for "logical volume not found"
LVS_NOT_FOUND = 5

# Position of the state character in lv_attr, and its "active" value
ATTR_INDEX_STATE = 4
ATTR_STATE_ACTIVE = "a"


class LVError(SvcctlError):
    """An lvm2 command failed or returned an unexpected report."""


class LVNotFoundError(LVError):
    """The logical volume does not exist."""


@dataclass
class LVInfo:
    """One row of the lvs JSON report."""

    lv_name: str = ""
    vg_name: str = ""
    lv_attr: str = ""
    lv_size: str = ""
    devices: str = ""

    @classmethod
    def from_report(cls, row: dict) -> LVInfo:
        return cls(
            lv_name=row.get("lv_name", ""),
            vg_name=row.get("vg_name", ""),
            lv_attr=row.get("lv_attr", ""),
            lv_size=row.get("lv_size", ""),
            devices=row.get("devices", ""),
        )


class LV:
    """A logical volume, addressed as ``<vg>/<name>``."""

    def __init__(self, vg: str, name: str, log: logging.Logger | None = None):
        self.vg = vg
        self.name = name
        self.log = log or logger

    @property
    def fqn(self) -> str:
        return f"{self.vg}/{self.name}"

    @property
    def dev_path(self) -> str:
        return f"/dev/{self.vg}/{self.name}"

    # ── Queries ─────────────────────────────────────────────────

    def show(self) -> LVInfo:
        """Report of this logical volume.

        Raises:
            LVNotFoundError: The logical volume does not exist.
            LVError: lvs failed or its output is not the expected JSON.
        """
        cmd = self._quiet("lvs", "--reportformat", "json", self.fqn)
        try:
            cmd.run()
        except CommandExitError as e:
            if e.exit_code == LVS_NOT_FOUND:
                raise LVNotFoundError(f"{self.fqn}: logical volume does not exist") from e
            raise
        rows = self._rows(cmd)
        if len(rows) != 1:
            raise LVNotFoundError(f"{self.fqn}: logical volume does not exist")
        return LVInfo.from_report(rows[0])

    def attrs(self) -> str:
        """The lv_attr string, empty when the volume does not exist."""
        try:
            return self.show().lv_attr
        except LVNotFoundError:
            return ""

    def exists(self) -> bool:
        try:
            self.show()
        except LVNotFoundError:
            return False
        return True

    def is_active(self) -> bool:
        attrs = self.attrs()
        return len(attrs) > ATTR_INDEX_STATE and attrs[ATTR_INDEX_STATE] == ATTR_STATE_ACTIVE

    def devices(self) -> list[str]:
        """Paths of the physical devices backing the volume."""
        cmd = self._quiet("lvs", "-o", "devices", "--reportformat", "json", self.fqn)
        cmd.run()
        rows = self._rows(cmd)
        if not rows:
            raise LVNotFoundError(f"lv {self.fqn} not found")
        if len(rows) > 1:
            raise LVError(f"lv {self.fqn} has multiple matches")
        return [s.split("(")[0] for s in rows[0].get("devices", "").split()]

    # ── Changes ─────────────────────────────────────────────────

    def activate(self) -> None:
        self._loud("lvchange", "-ay", self.fqn).run()

    def deactivate(self) -> None:
        self._loud("lvchange", "-an", self.fqn).run()

    def create(self, size: str, options: list[str] | None = None) -> None:
        """Create the volume. A bare number is a size in bytes."""
        if size.isdigit():
            # lvcreate defaults to megabytes
            size = f"{size}B"
        self._loud(
            "lvcreate", *(options or []), "--yes", "-L", size, "-n", self.name, self.vg
        ).run()

    def remove(self, options: list[str] | None = None) -> None:
        self._loud("lvremove", *(options or []), self.dev_path).run()

    # ── Helpers ─────────────────────────────────────────────────

    def _quiet(self, name: str, *args: str) -> Command:
        return Command(
            name,
            args,
            log=self.log,
            command_log_level=logging.DEBUG,
            stdout_log_level=logging.DEBUG,
            stderr_log_level=logging.DEBUG,
            buffer_stdout=True,
        )

    def _loud(self, name: str, *args: str) -> Command:
        return Command(
            name,
            args,
            log=self.log,
            command_log_level=logging.INFO,
            stdout_log_level=logging.INFO,
            stderr_log_level=logging.ERROR,
        )

    def _rows(self, cmd: Command) -> list[dict]:
        try:
            data = json.loads(cmd.stdout)
        except ValueError as e:
            raise LVError(f"{cmd}: invalid json report: {e}") from e
        report = data.get("report") or []
        if not report:
            raise LVError(f"{cmd}: no report")
        return report[0].get("lv") or []


class LogicalVolumeParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vg: str = Field(min_length=1)
    name: str = Field(min_length=1)
    size: str = ""
    create_options: list[str] = Field(default_factory=list)


class LogicalVolumeDisk(Resource, Provisioner):
    """A logical volume, activated on start."""

    driver_group = "disk"
    driver_name = "lv"
    Params = LogicalVolumeParams

    @property
    def lv(self) -> LV:
        return LV(self.params.vg, self.params.name, log=logger)

    @property
    def label(self) -> str:
        return self.lv.fqn

    def start(self, ctx: ActionContext) -> None:
        lv = self.lv
        if lv.is_active():
            logger.info("%s: %s is already up", self.rid, lv.fqn)
            return
        lv.activate()
        rollback.register(ctx, lv.deactivate, f"deactivate {lv.fqn}")

    def stop(self, ctx: ActionContext) -> None:
        lv = self.lv
        if not lv.exists():
            logger.info("%s: %s already removed", self.rid, lv.fqn)
            return
        if not lv.is_active():
            logger.info("%s: %s is already down", self.rid, lv.fqn)
            return
        lv.deactivate()

    def status(self) -> Status:
        try:
            return Status.UP if self.lv.is_active() else Status.DOWN
        except SvcctlError as e:
            logger.warning("%s: %s", self.rid, e)
            return Status.UNDEF

    def provisioned(self) -> bool:
        return self.lv.exists()

    def provision(self, ctx: ActionContext) -> None:
        if not self.params.size:
            raise LVError(f"{self.rid}: the size keyword is required to provision")
        lv = self.lv
        lv.create(self.params.size, self.params.create_options)
        rollback.register(ctx, lambda: lv.remove(["-f"]), f"remove {lv.fqn}")

    def unprovision(self, ctx: ActionContext) -> None:
        lv = self.lv
        if not lv.exists():
            logger.info("%s: %s already unprovisioned", self.rid, lv.fqn)
            return
        lv.remove(["-f"])
