"""
Command executor — run one external command and watch it closely.

Every driver runs its external tools through ``Command``. It captures
the output line by line, logs each line at a per-stream level, feeds
optional line callbacks, buffers the output for programmatic use, drops
privileges when asked, and kills the whole process group when a
deadline expires.

Lifecycle:
    Command(...) → start() → wait()        (or run() for both)

Helper tasks (one thread each, all known before the spawn):
    stdout reader   — when stdout is logged, buffered or has a callback
    stderr reader   — same rule for stderr
    deadline        — when a timeout is set; fires while the process or a
                      reader is still running

Each helper posts its name on a completion queue sized to the helper
count. ``wait()`` collects every reader signal before reaping the
process, so buffered output is complete when ``wait()`` returns.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
import queue
import shlex
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import IO

from svcctl.core.errors import SvcctlError

logger = logging.getLogger(__name__)

# Synthetic stderr line emitted when a deadline kills the process
DEADLINE_EXCEEDED = "DeadlineExceeded"

# Any of these in a command string means it needs a shell
_SHELL_TOKENS = ("|", "&&", ";")

LineCallback = Callable[[str], None]


class CommandError(SvcctlError):
    """Base class for command execution failures."""


class CommandStartError(CommandError):
    """The process could not be created."""


class CommandCredentialError(CommandStartError):
    """The requested user or group could not be resolved."""


class CommandExitError(CommandError):
    """The process exited with a non-zero code."""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"{command}: exit code {exit_code}")
        self.command = command
        self.exit_code = exit_code


class CommandDeadlineError(CommandError):
    """The process outlived its deadline and was killed."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"{command}: deadline of {timeout:g}s exceeded")
        self.command = command
        self.timeout = timeout


class CommandUsageError(RuntimeError):
    """Command methods called out of lifecycle order."""


@dataclass(frozen=True)
class CommandSpec:
    """Immutable description of one invocation.

    Log levels are ``logging`` levels; ``None`` disables that output.
    """

    name: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    user: str | None = None
    group: str | None = None
    log_level: int | None = logging.DEBUG
    command_log_level: int | None = None
    stdout_log_level: int | None = None
    stderr_log_level: int | None = None
    buffer_stdout: bool = False
    buffer_stderr: bool = False
    on_stdout_line: LineCallback | None = None
    on_stderr_line: LineCallback | None = None
    timeout: float | None = None
    label: str = ""

    def captures(self, stream: str) -> bool:
        """Whether *stream* ('stdout' or 'stderr') needs a reader task."""
        if stream == "stdout":
            return (
                self.stdout_log_level is not None
                or self.buffer_stdout
                or self.on_stdout_line is not None
            )
        return (
            self.stderr_log_level is not None
            or self.buffer_stderr
            or self.on_stderr_line is not None
        )


class Command:
    """One external command invocation.

    Args:
        name: Program to execute (looked up in PATH when not absolute).
        args: Program arguments.
        cwd: Working directory.
        env: Environment overrides, merged over the current environment.
        user: Run as this user (name or numeric id).
        group: Run as this group (name or numeric id). Defaults to the
            primary group of ``user``.
        log: Logger receiving the command and output lines.
        log_level: Level for lifecycle messages.
        command_log_level: Level for the "running <cmd>" message.
        stdout_log_level: Level for each stdout line.
        stderr_log_level: Level for each stderr line.
        buffer_stdout: Keep stdout for ``stdout``.
        buffer_stderr: Keep stderr for ``stderr``.
        on_stdout_line: Called with each stdout line.
        on_stderr_line: Called with each stderr line.
        timeout: Seconds before the process group is killed.
        label: Human label used in error messages.
    """

    def __init__(
        self,
        name: str,
        args: Sequence[str] = (),
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        user: str | None = None,
        group: str | None = None,
        log: logging.Logger | None = None,
        log_level: int | None = logging.DEBUG,
        command_log_level: int | None = None,
        stdout_log_level: int | None = None,
        stderr_log_level: int | None = None,
        buffer_stdout: bool = False,
        buffer_stderr: bool = False,
        on_stdout_line: LineCallback | None = None,
        on_stderr_line: LineCallback | None = None,
        timeout: float | None = None,
        label: str = "",
    ):
        self.spec = CommandSpec(
            name=name,
            args=tuple(args),
            cwd=cwd,
            env=dict(env or {}),
            user=user,
            group=group,
            log_level=log_level,
            command_log_level=command_log_level,
            stdout_log_level=stdout_log_level,
            stderr_log_level=stderr_log_level,
            buffer_stdout=buffer_stdout,
            buffer_stderr=buffer_stderr,
            on_stdout_line=on_stdout_line,
            on_stderr_line=on_stderr_line,
            timeout=timeout if timeout and timeout > 0 else None,
            label=label,
        )
        self._log = log or logger

        # ── Run state (owned by this instance after start) ──────────
        self._proc: subprocess.Popen[bytes] | None = None
        self._pid = 0
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._tasks: list[tuple[str, threading.Thread]] = []
        self._done: queue.Queue[str] = queue.Queue()
        self._spawned = threading.Event()
        self._readers_done = threading.Event()
        self._readers_left = 0
        self._readers_lock = threading.Lock()
        self._deadline_at = 0.0
        self._deadline_exceeded = False
        self._started = False
        self._waited = False
        self._display = ""

    # ── Properties ──────────────────────────────────────────────

    @property
    def pid(self) -> int:
        """Process id, 0 before the process exists."""
        return self._pid

    @property
    def stdout(self) -> bytes:
        """Buffered stdout, meaningful after ``wait()``."""
        return _strip_sentinel(self._stdout)

    @property
    def stderr(self) -> bytes:
        """Buffered stderr, meaningful after ``wait()``."""
        return _strip_sentinel(self._stderr)

    @property
    def exit_code(self) -> int:
        """Process exit code. Negative when killed by a signal."""
        if not self._waited or self._proc is None:
            raise CommandUsageError(f"{self}: exit code read before wait()")
        return self._proc.returncode

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline_exceeded

    def __str__(self) -> str:
        if not self._display:
            self._display = shlex.join([self.spec.name, *self.spec.args])
        return self._display

    def __repr__(self) -> str:
        return f"<Command {self} pid={self._pid}>"

    # ── Lifecycle ───────────────────────────────────────────────

    def run(self) -> None:
        """Start the command and wait for it."""
        self.start()
        self.wait()

    def start(self) -> None:
        """Spawn the process and its helper tasks, without blocking.

        Raises:
            CommandUsageError: Already started.
            CommandCredentialError: User or group resolution failed.
            CommandStartError: The process could not be created.
        """
        if self._started:
            raise CommandUsageError(f"{self}: already started")
        self._started = True
        spec = self.spec

        if not spec.name:
            raise CommandStartError("can not create command from an empty name")

        try:
            uid, gid, groups = resolve_credentials(spec.user, spec.group)
        except CommandCredentialError as e:
            self._log.error(
                "unable to set credential from user '%s', group '%s' for action '%s': %s",
                spec.user, spec.group, spec.label, e,
            )
            raise

        env = None
        if spec.env:
            env = dict(os.environ)
            env.update(spec.env)

        streams = [s for s in ("stdout", "stderr") if spec.captures(s)]
        self._readers_left = len(streams)
        if not streams:
            self._readers_done.set()
        helper_count = len(streams) + (1 if spec.timeout else 0)
        self._done = queue.Queue(maxsize=helper_count)

        if spec.timeout:
            self._deadline_at = time.monotonic() + spec.timeout
            self._spawn_task("deadline", self._watch_deadline)

        self._log_at(spec.command_log_level, "running %s", self)
        self._log_at(spec.log_level, "running %s (cwd=%s)", self, spec.cwd)

        try:
            self._proc = subprocess.Popen(
                [spec.name, *spec.args],
                cwd=spec.cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE if "stdout" in streams else subprocess.DEVNULL,
                stderr=subprocess.PIPE if "stderr" in streams else subprocess.DEVNULL,
                user=uid,
                group=gid,
                extra_groups=groups,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            self._spawned.set()
            self._log_at(spec.log_level, "running %s failed: %s", self, e)
            raise CommandStartError(f"{self}: {e}") from e

        self._pid = self._proc.pid
        self._spawned.set()

        for stream in streams:
            self._spawn_task(stream, self._read_stream, stream, getattr(self._proc, stream))

    def wait(self) -> None:
        """Block until the process exits and every helper task is done.

        Raises:
            CommandUsageError: Not started, or already waited.
            CommandDeadlineError: The deadline expired.
            CommandExitError: The process exited non-zero.
        """
        proc = self._proc
        if proc is None:
            raise CommandUsageError(f"{self}: wait() called before a successful start()")
        if self._waited:
            raise CommandUsageError(f"{self}: already waited")

        has_deadline = self.spec.timeout is not None
        pending_readers = len(self._tasks) - (1 if has_deadline else 0)
        deadline_done = False
        while pending_readers > 0:
            name = self._done.get()
            self._log_at(self.spec.log_level, "end of %s task for pid %d", name, self._pid)
            if name == "deadline":
                deadline_done = True
            else:
                pending_readers -= 1

        returncode = proc.wait()
        if has_deadline and not deadline_done:
            self._done.get()
        self._waited = True

        self._log_at(
            self.spec.log_level, "%s exited with code %d (pid %d)", self, returncode, self._pid
        )
        if self._deadline_exceeded:
            raise CommandDeadlineError(str(self), self.spec.timeout or 0.0)
        if returncode != 0:
            raise CommandExitError(str(self), returncode)

    # ── Helper tasks ────────────────────────────────────────────

    def _spawn_task(self, name: str, target: Callable[..., None], *args: object) -> None:
        def runner() -> None:
            try:
                target(*args)
            except Exception:
                self._log.exception("%s: %s task failed", self, name)
            finally:
                if name != "deadline":
                    self._reader_finished()
                self._done.put(name)

        thread = threading.Thread(target=runner, name=f"cmd-{name}", daemon=True)
        self._tasks.append((name, thread))
        thread.start()

    def _read_stream(self, stream: str, pipe: IO[bytes]) -> None:
        spec = self.spec
        if stream == "stdout":
            level, callback = spec.stdout_log_level, spec.on_stdout_line
            buf = self._stdout if spec.buffer_stdout else None
            tag = "out"
        else:
            level, callback = spec.stderr_log_level, spec.on_stderr_line
            buf = self._stderr if spec.buffer_stderr else None
            tag = "err"

        with pipe:
            for raw in iter(pipe.readline, b""):
                line = raw.rstrip(b"\n").rstrip(b"\r")
                text = line.decode("utf-8", errors="replace")
                if level is not None:
                    self._log.log(level, "pid %d %s: %s", self._pid, tag, text)
                if callback is not None:
                    callback(text)
                if buf is not None:
                    buf += b"\n" + line

    def _watch_deadline(self) -> None:
        timeout = self.spec.timeout or 0.0
        if not self._spawned.wait(timeout):
            # No process to signal yet
            self._deadline_exceeded = True
            self._log.log(
                self.spec.log_level or logging.WARNING,
                "%s: deadline exceeded before process creation", self,
            )
            return
        proc = self._proc
        if proc is None:
            return
        # A child outliving the leader can hold the captured pipes open:
        # the deadline covers the readers as well as the process.
        if not self._readers_done.wait(self._remaining()):
            self._expire(proc)
            return
        try:
            proc.wait(timeout=self._remaining())
        except subprocess.TimeoutExpired:
            self._expire(proc)

    def _remaining(self) -> float:
        return max(0.0, self._deadline_at - time.monotonic())

    def _reader_finished(self) -> None:
        with self._readers_lock:
            self._readers_left -= 1
            if self._readers_left <= 0:
                self._readers_done.set()

    def _expire(self, proc: subprocess.Popen[bytes]) -> None:
        spec = self.spec
        self._deadline_exceeded = True
        if spec.on_stderr_line is not None:
            spec.on_stderr_line(DEADLINE_EXCEEDED)
        level = spec.stderr_log_level if spec.stderr_log_level is not None else spec.log_level
        self._log_at(level, "pid %d err: %s", self._pid, DEADLINE_EXCEEDED)
        self._log_at(spec.log_level, "kill %s pid %d: deadline exceeded", self, self._pid)
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as e:
            self._log.warning("kill %s pid %d failed: %s", self, self._pid, e)

    def _log_at(self, level: int | None, msg: str, *args: object) -> None:
        if level is not None:
            self._log.log(level, msg, *args)


def resolve_credentials(
    user: str | None, group: str | None
) -> tuple[int | None, int | None, list[int] | None]:
    """Resolve user and group names (or numeric ids) to ``(uid, gid, groups)``.

    When only a user is given, its primary group is used. ``groups`` is
    the supplementary group list the child must run with: the user's
    own groups, empty when only a group is given, None when neither is
    (the caller's identity is kept).

    Raises:
        CommandCredentialError: A requested name or id is unknown.
    """
    uid: int | None = None
    gid: int | None = None
    name = ""
    if user:
        try:
            pw = pwd.getpwuid(int(user)) if user.isdigit() else pwd.getpwnam(user)
        except KeyError as e:
            raise CommandCredentialError(f"unknown user '{user}'") from e
        uid, gid, name = pw.pw_uid, pw.pw_gid, pw.pw_name
    if group:
        try:
            gr = grp.getgrgid(int(group)) if group.isdigit() else grp.getgrnam(group)
        except KeyError as e:
            raise CommandCredentialError(f"unknown group '{group}'") from e
        gid = gr.gr_gid
    if uid is None and gid is None:
        return None, None, None
    groups = os.getgrouplist(name, gid) if name and gid is not None else []
    return uid, gid, groups


def command_args_from_string(s: str) -> list[str]:
    """Split a command string into argv.

    Strings chaining commands (``|``, ``&&``, ``;``) run through
    ``/bin/sh -c``; anything else is split with shell quoting rules.
    """
    if not s or not s.strip():
        raise ValueError("can not create command from empty string")
    if any(token in s for token in _SHELL_TOKENS):
        return ["/bin/sh", "-c", s]
    args = shlex.split(s)
    if not args:
        raise ValueError("unexpected empty command args from string")
    return args


def _strip_sentinel(buf: bytearray) -> bytes:
    return bytes(buf[1:]) if buf else b""
