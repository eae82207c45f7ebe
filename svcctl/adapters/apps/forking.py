"""
Forking application driver (app.forking) — daemons started by a script.

The start command is expected to fork the application and return. The
check command decides the status: exit code 0 is up, anything else is
down. Every command runs through ``Command``, under the configured
user/group and with a per-action deadline.

Keywords:
    start, stop, check      Command strings (shell syntax allowed)
    cwd, env                Working directory, environment overrides
    user, group             Run the commands as this identity
    timeout                 Default deadline in seconds
    start_timeout           Start deadline, takes precedence over timeout
    stop_timeout            Stop deadline, takes precedence over timeout
    check_timeout           Check deadline, takes precedence over timeout
    status_log              Log the check output (stdout info, stderr warning)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from svcctl.adapters.base import ActionContext, Resource
from svcctl.adapters.shell.command import (
    Command,
    CommandDeadlineError,
    CommandError,
    CommandExitError,
    command_args_from_string,
)
from svcctl.core.engine import rollback
from svcctl.core.models.status import Status

logger = logging.getLogger(__name__)


class ForkingAppParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: str = ""
    stop: str = ""
    check: str = ""
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    user: str | None = None
    group: str | None = None
    timeout: float | None = Field(default=None, gt=0)
    start_timeout: float | None = Field(default=None, gt=0)
    stop_timeout: float | None = Field(default=None, gt=0)
    check_timeout: float | None = Field(default=None, gt=0)
    status_log: bool = False

    def timeout_for(self, action: str) -> float | None:
        specific = getattr(self, f"{action}_timeout", None)
        return specific or self.timeout


class ForkingApp(Resource):
    """Application started and stopped by commands."""

    driver_group = "app"
    driver_name = "forking"
    Params = ForkingAppParams

    @property
    def label(self) -> str:
        return self.params.start or self.type

    def start(self, ctx: ActionContext) -> None:
        if not self.params.start:
            return
        if self.status() == Status.UP:
            logger.info("%s: already up", self.rid)
            return
        self._run("start", self.params.start)
        if self.params.stop:
            rollback.register(ctx, lambda: self._run("stop", self.params.stop), "stop")

    def stop(self, ctx: ActionContext) -> None:
        if not self.params.stop:
            return
        if self.status() == Status.DOWN:
            logger.info("%s: already down", self.rid)
            return
        self._run("stop", self.params.stop)

    def status(self) -> Status:
        if not self.params.check:
            return Status.NOT_APPLICABLE
        log_output = self.params.status_log
        cmd = self._command(
            "check",
            self.params.check,
            command_log_level=None,
            stdout_log_level=logging.INFO if log_output else None,
            stderr_log_level=logging.WARNING if log_output else None,
        )
        try:
            cmd.run()
        except CommandExitError:
            return Status.DOWN
        except CommandDeadlineError as e:
            logger.warning("%s: check: %s", self.rid, e)
            return Status.UNDEF
        except CommandError as e:
            logger.warning("%s: check: %s", self.rid, e)
            return Status.UNDEF
        return Status.UP

    def _run(self, action: str, command: str) -> None:
        logger.info("%s: %s", self.rid, action)
        self._command(action, command).run()

    def _command(self, action: str, command: str, **levels: int | None) -> Command:
        argv = command_args_from_string(command)
        options: dict = {
            "command_log_level": logging.INFO,
            "stdout_log_level": logging.INFO,
            "stderr_log_level": logging.ERROR,
        }
        options.update(levels)
        return Command(
            argv[0],
            argv[1:],
            cwd=self.params.cwd,
            env=self.params.env,
            user=self.params.user,
            group=self.params.group,
            log=logger,
            timeout=self.params.timeout_for(action),
            label=f"{self.rid} {action}",
            **options,
        )
