"""Disk drivers — disk.lv."""

from svcctl.adapters.volumes.lvm import LV, LogicalVolumeDisk

__all__ = ["LV", "LogicalVolumeDisk"]
