"""
Rollback stack — compensating steps for one action invocation.

A driver that changes something during a successful step registers
how to undo it. If a later step of the same invocation fails, the
orchestrator unwinds the stack newest-first. On success the stack is
discarded. Each step runs at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from svcctl.adapters.base import ActionContext

logger = logging.getLogger(__name__)

Compensation = Callable[[], None]


@dataclass
class RollbackStep:
    """One registered compensation."""

    fn: Compensation
    description: str = ""
    owner: str = ""                     # rid of the registering resource


class RollbackStack:
    """Compensations registered by one invocation, unwound in reverse."""

    def __init__(self) -> None:
        self._steps: list[RollbackStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    def register(self, fn: Compensation, description: str = "", owner: str = "") -> None:
        self._steps.append(RollbackStep(fn=fn, description=description, owner=owner))
        logger.debug("rollback registered: %s %s", owner, description)

    def unwind(self) -> list[Exception]:
        """Run every step newest-first and empty the stack.

        Step failures are logged and returned, never raised.
        """
        errors: list[Exception] = []
        while self._steps:
            step = self._steps.pop()
            logger.info("rollback %s %s", step.owner, step.description)
            try:
                step.fn()
            except Exception as e:
                logger.error("rollback %s %s failed: %s", step.owner, step.description, e)
                errors.append(e)
        return errors

    def discard(self) -> None:
        self._steps.clear()


def register(ctx: ActionContext, fn: Compensation, description: str = "") -> None:
    """Register a compensation in the invocation carried by *ctx*."""
    ctx.rollback.register(fn, description=description, owner=ctx.rid)
