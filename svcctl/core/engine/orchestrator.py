"""
Resource action orchestrator — one object action, start to finish.

Flow:
    acquire lock → abort check → apply (ordered) → post-sequence → release lock
                                      │
                                      └─ on failure: rollback (newest first), re-raise

The resource order is the caller's. It encodes driver precedence
(disks before filesystems before apps on start, the reverse on stop)
and is never changed here. Apply stops at the first failing resource:
later resources are not attempted.

Resource statuses are posted to the status bus around each step,
flagged pending while the step runs.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from svcctl.adapters.base import ActionContext, Aborter, Resource
from svcctl.core.engine.lock import ObjectLock
from svcctl.core.engine.statusbus import StatusBus
from svcctl.core.errors import AbortActionError, ResourceActionError, SvcctlError
from svcctl.core.models.action import ActionOptions
from svcctl.core.models.path import ObjectPath
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)

ApplyFn = Callable[[Resource, ActionContext], None]
PostSequenceFn = Callable[[ActionContext], None]


class ResourceActionOrchestrator:
    """Drive one object's multi-resource action.

    Args:
        path: The object being acted upon.
        lock_path: The object's action lock file.
        bus: Status bus receiving resource statuses, if any.
    """

    def __init__(self, path: ObjectPath, lock_path: Path, bus: StatusBus | None = None):
        self.path = path
        self.lock_path = lock_path
        self.bus = bus

    def run(
        self,
        action: str,
        resources: Sequence[Resource],
        apply: ApplyFn,
        options: ActionOptions | None = None,
        *,
        abort_check: bool = False,
        abort_resources: Sequence[Resource] | None = None,
        post_sequence: PostSequenceFn | None = None,
    ) -> None:
        """Run *apply* on each resource, in order, under the object lock.

        Args:
            action: Action name, for logs and the lock owner info.
            resources: Resources in application order.
            apply: Called as ``apply(resource, ctx)`` for each resource.
            options: Locking, dry-run and force options.
            abort_check: Poll the resources' abort vetoes first.
            abort_resources: Resources polled by the abort check, when
                they differ from *resources* (a --rid subset still
                answers to every veto of the object).
            post_sequence: Runs after every resource succeeded.

        Raises:
            LockTimeoutError: The lock was not acquired in time.
            AbortActionError: A resource vetoed the action.
            ResourceActionError: A resource action failed (after rollback).
        """
        options = options or ActionOptions()
        ctx = ActionContext(path=self.path, action=action, options=options)
        voters: Sequence[Resource] | None = None
        if abort_check:
            voters = resources if abort_resources is None else abort_resources

        if options.no_lock:
            logger.warning("%s: %s without the action lock", self.path, action)
            self._locked_run(ctx, resources, apply, voters, post_sequence)
            return

        with ObjectLock(self.lock_path, timeout=options.lock_timeout, intent=action):
            self._locked_run(ctx, resources, apply, voters, post_sequence)

    def _locked_run(
        self,
        ctx: ActionContext,
        resources: Sequence[Resource],
        apply: ApplyFn,
        voters: Sequence[Resource] | None,
        post_sequence: PostSequenceFn | None,
    ) -> None:
        if voters is not None:
            self.abort_check(ctx.action, voters)

        if ctx.dry_run:
            for res in resources:
                logger.info("%s %s: would %s (%s)", self.path, res.rid, ctx.action, res.label)
            return

        try:
            self._apply(ctx, resources, apply)
            if post_sequence is not None:
                post_sequence(ctx)
        except BaseException:
            if len(ctx.rollback):
                logger.info("%s: %s failed, rolling back %d steps", self.path, ctx.action, len(ctx.rollback))
                errors = ctx.rollback.unwind()
                if errors:
                    logger.error("%s: %d rollback steps failed", self.path, len(errors))
            raise
        ctx.rollback.discard()

    # ── Abort check ─────────────────────────────────────────────

    def abort_check(self, action: str, resources: Sequence[Resource]) -> None:
        """Poll every resource's veto concurrently; raise if any vetoes.

        Resources without the ``Aborter`` capability never veto. A veto
        that raises counts as a veto.
        """
        logger.debug("%s: abort %s check", self.path, action)
        if not resources:
            return

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(resources),
            thread_name_prefix="abort",
        ) as pool:
            futures = {pool.submit(self._abort_vote, res): res for res in resources}
            concurrent.futures.wait(futures)

        vetoes = sorted(futures[f].rid for f in futures if f.result())
        if vetoes:
            raise AbortActionError(action, vetoes)

    def _abort_vote(self, res: Resource) -> bool:
        if not isinstance(res, Aborter):
            return False
        try:
            veto = res.abort()
        except Exception as e:
            logger.error("%s %s: abort check failed: %s", self.path, res.rid, e)
            return True
        if veto:
            logger.error("%s %s: abort start", self.path, res.rid)
        return veto

    # ── Apply ───────────────────────────────────────────────────

    def _apply(self, ctx: ActionContext, resources: Sequence[Resource], apply: ApplyFn) -> None:
        for res in resources:
            logger.info("%s %s: %s", self.path, res.rid, ctx.action)
            self._post(res.rid, self._last_status(res.rid), pending=True)
            try:
                apply(res, ctx.for_resource(res.rid))
            except (SvcctlError, OSError) as e:
                logger.error("%s %s: %s failed: %s", self.path, res.rid, ctx.action, e)
                raise ResourceActionError(res.rid, ctx.action, e) from e
            finally:
                self._post(res.rid, self._evaluate(res))

    def _evaluate(self, res: Resource) -> Status:
        try:
            return res.status()
        except Exception as e:
            logger.warning("%s %s: status evaluation failed: %s", self.path, res.rid, e)
            return Status.UNDEF

    def _last_status(self, rid: str) -> Status:
        if self.bus is None:
            return Status.UNDEF
        return self.bus.get(self.path, rid)

    def _post(self, rid: str, status: Status, pending: bool = False) -> None:
        if self.bus is not None:
            self.bus.post(self.path, rid, status, pending)
