"""Application drivers — app.forking."""

from svcctl.adapters.apps.forking import ForkingApp

__all__ = ["ForkingApp"]
