"""
Selection dispatcher — one action, many objects, concurrently.

A selector expression is resolved into object paths, then the same
named action runs on every resolved object, one task per object.
Results are collected in completion order: callers must not assume
they follow the selection order.

Flow:
    expression → resolve paths → build objects → capability check → dispatch → collect

Objects not supporting the action (a ``cfg`` has no ``start``) are
skipped silently and contribute no result. A crash inside an object's
action never takes the batch down: it becomes a defect result, so the
batch always yields one result per dispatched object.
"""

from __future__ import annotations

import concurrent.futures
import fnmatch
import logging
from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from svcctl.core.engine.objects import ObjectFactory
from svcctl.core.errors import SelectorError, SvcctlError
from svcctl.core.models.action import ActionOptions, ActionResult, ObjectAction
from svcctl.core.models.cluster import ClusterConfig
from svcctl.core.models.path import ObjectPath

logger = logging.getLogger(__name__)


# ── Capabilities ────────────────────────────────────────────────


@runtime_checkable
class Starter(Protocol):
    def start(self, options: ActionOptions | None = None) -> None: ...


@runtime_checkable
class Stopper(Protocol):
    def stop(self, options: ActionOptions | None = None) -> None: ...


@runtime_checkable
class Provisioner(Protocol):
    def provision(self, options: ActionOptions | None = None) -> None: ...


@runtime_checkable
class Unprovisioner(Protocol):
    def unprovision(self, options: ActionOptions | None = None) -> None: ...


@runtime_checkable
class StatusEvaluator(Protocol):
    def status(self, options: ActionOptions | None = None) -> dict[str, Any]: ...


CAPABILITIES: dict[ObjectAction, type] = {
    ObjectAction.START: Starter,
    ObjectAction.STOP: Stopper,
    ObjectAction.PROVISION: Provisioner,
    ObjectAction.UNPROVISION: Unprovisioner,
    ObjectAction.STATUS: StatusEvaluator,
}


# ── Resolution ──────────────────────────────────────────────────


class SelectorResolver(Protocol):
    def resolve(self, expression: str) -> list[ObjectPath]: ...


class ConfigSelectorResolver:
    """Resolve selector expressions against the declared objects.

    The expression is a comma-separated list of glob patterns, each
    matched against both the short (``svc1``, ``ns1/vol/data``) and the
    full (``root/svc/svc1``) path forms. ``**`` selects everything.
    """

    def __init__(self, config: ClusterConfig):
        self.config = config

    def resolve(self, expression: str) -> list[ObjectPath]:
        """Paths matching *expression*, in declaration order.

        Raises:
            SelectorError: Empty expression or empty term.
        """
        if not expression or not expression.strip():
            raise SelectorError("empty selector expression")
        terms = [t.strip() for t in expression.split(",")]
        if any(not t for t in terms):
            raise SelectorError(f"invalid selector expression '{expression}': empty term")

        selected: list[ObjectPath] = []
        for path in self.config.object_paths():
            if any(_match(path, term) for term in terms):
                selected.append(path)
        return selected


def _match(path: ObjectPath, term: str) -> bool:
    if term == "**":
        return True
    return fnmatch.fnmatchcase(str(path), term) or fnmatch.fnmatchcase(path.fqn, term)


# ── Dispatch ────────────────────────────────────────────────────


class Selection:
    """A selector expression and the means to resolve it.

    Args:
        expression: Selector expression, e.g. ``svc*,ns1/vol/*``.
        resolver: Turns the expression into object paths.
    """

    def __init__(self, expression: str, resolver: SelectorResolver):
        self.expression = expression
        self.resolver = resolver

    def expand(self) -> list[ObjectPath]:
        """Resolve the expression. A resolution failure selects nothing."""
        try:
            paths = self.resolver.resolve(self.expression)
        except SvcctlError as e:
            logger.warning("selection '%s' not resolved: %s", self.expression, e)
            return []
        logger.debug("selection '%s' expanded to %d objects", self.expression, len(paths))
        return paths

    def action(
        self,
        action: ObjectAction | str,
        factory: ObjectFactory,
        *args: Any,
        **kwargs: Any,
    ) -> list[ActionResult]:
        """Run *action* on every selected object supporting it.

        Args:
            action: The action name.
            factory: Builds the object instances.
            *args: Passed to every object's action.
            **kwargs: Passed to every object's action.

        Returns:
            One ActionResult per dispatched object, in completion order.

        Raises:
            ValueError: Unknown action name.
        """
        action = ObjectAction(action)
        capability = CAPABILITIES[action]
        results: list[ActionResult] = []
        jobs: list[tuple[ObjectPath, Callable[..., Any]]] = []

        for path in self.expand():
            try:
                obj = factory.new(path)
            except SvcctlError as e:
                logger.error("%s: %s", path, e)
                results.append(ActionResult.failure(path, e))
                continue
            if obj is None:
                continue
            if not isinstance(obj, capability):
                logger.debug("%s: %s not applicable, skipped", path, action)
                continue
            jobs.append((path, getattr(obj, action.value)))

        if jobs:
            results.extend(_dispatch(action, jobs, args, kwargs))
        return results


def _dispatch(
    action: ObjectAction,
    jobs: Sequence[tuple[ObjectPath, Callable[..., Any]]],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> list[ActionResult]:
    results: list[ActionResult] = []
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=len(jobs),
        thread_name_prefix=f"selection-{action}",
    ) as pool:
        futures = [pool.submit(_supervise, path, fn, args, kwargs) for path, fn in jobs]
        for future in concurrent.futures.as_completed(futures):
            result = future.result()
            status_marker = "✓" if result.ok else "✗"
            logger.info("%s %s:%s → %s", status_marker, result.path, action, result.kind)
            results.append(result)
    return results


def _supervise(
    path: ObjectPath,
    fn: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> ActionResult:
    """Run one object's action, turning any exception into a result."""
    try:
        value = fn(*args, **kwargs)
    except SvcctlError as e:
        logger.error("%s: %s", path, e)
        return ActionResult.failure(path, e)
    except Exception as e:
        logger.exception("%s: unexpected error", path)
        return ActionResult.crash(path, e)
    return ActionResult.success(path, value)
