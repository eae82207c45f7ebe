"""
Status model — the availability states of resources and objects.
"""

from __future__ import annotations

from enum import StrEnum


class Status(StrEnum):
    """Availability status of a resource or an object."""

    UNDEF = "undef"
    UP = "up"
    DOWN = "down"
    WARN = "warn"
    STANDBY_UP = "stdby up"
    STANDBY_DOWN = "stdby down"
    NOT_APPLICABLE = "n/a"

    def add(self, other: Status) -> Status:
        """Aggregate two statuses, as done for an object from its resources.

        ``undef`` and ``n/a`` are neutral. Mixing up and down states
        degrades to ``warn``. ``warn`` absorbs everything.
        """
        if self in (Status.UNDEF, Status.NOT_APPLICABLE):
            return other
        if other in (Status.UNDEF, Status.NOT_APPLICABLE):
            return self
        if Status.WARN in (self, other):
            return Status.WARN
        ups = {Status.UP, Status.STANDBY_UP}
        downs = {Status.DOWN, Status.STANDBY_DOWN}
        if self in ups and other in ups:
            return Status.UP if Status.UP in (self, other) else Status.STANDBY_UP
        if self in downs and other in downs:
            return Status.DOWN if Status.DOWN in (self, other) else Status.STANDBY_DOWN
        return Status.WARN

    @classmethod
    def aggregate(cls, statuses: list[Status]) -> Status:
        """Fold a list of statuses with ``add``. Empty lists read ``n/a``."""
        result = cls.NOT_APPLICABLE
        for status in statuses:
            result = result.add(status)
        return result
