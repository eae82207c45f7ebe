"""Filesystem drivers — fs.flag."""

from svcctl.adapters.fs.flag import FlagFs

__all__ = ["FlagFs"]
