"""System commands — external processes as pipeline filters.

A ``SystemCommand`` is a filter whose output is an OS process's stdout.
Building one costs nothing; the process is spawned the first time the
command (or anything downstream of it) is driven.

State machine::

    NOT_STARTED ──start──▶ STARTED ──spawned──▶ ACTIVE ──reaped──▶ TERMINATED

Starting a command:
    1. Resolve the executable through the registry and search path
       (``CommandNotFoundError`` if nothing matches).
    2. Schedule a job with the controller, with a stdin pipe only when
       an input filter is attached.
    3. Spawn through the controller (``SpawnFailedError`` leaves the job
       WAITING; a later ``start`` reschedules it).
    4. If there is an input, start a *pump* thread copying the input's
       bytes into the child's stdin and closing it when the input ends.

Why a pump thread?  The child blocks writing stdout when nobody reads
it, and we block writing its stdin when it is busy writing.  Reading
and writing from the same thread can deadlock both sides; a separate
writer cannot.

Failure reporting:
    - A write into a pipe whose reader has gone (the child exited or
      was killed) ends the pump quietly; the condition is kept as
      ``broken_pipe`` and logged.
    - A failure *upstream* (say, an earlier command was not found) is
      kept by the pump and re-raised to whoever drives this command
      once its output ends; the child just sees EOF on stdin.
"""

from __future__ import annotations

import shlex
from collections.abc import Iterator
from contextlib import suppress
from enum import StrEnum
from threading import Lock, Thread
from typing import IO, TYPE_CHECKING

from py_shell.errors import PipeBrokenError, SpawnFailedError
from py_shell.filter import Filter
from py_shell.jobs import ExitStatus, Job, JobStatus
from py_shell.signals import KILL_SIGNAL, SignalLike

if TYPE_CHECKING:
    from py_shell.context import ShellContext
    from py_shell.controller import ProcessController
    from py_shell.registry import CommandRegistry

_BLOCK_SIZE = 64 * 1024
_SOURCE = "command"


class CommandState(StrEnum):
    """Lifecycle of a system command."""

    NOT_STARTED = "not_started"
    STARTED = "started"
    ACTIVE = "active"
    TERMINATED = "terminated"


class SystemCommand(Filter):
    """An external command whose stdout is this filter's output."""

    def __init__(
        self,
        context: ShellContext,
        controller: ProcessController,
        registry: CommandRegistry,
        name: str,
        *args: str,
    ) -> None:
        """Describe a command; nothing is resolved or spawned yet.

        Args:
            context: The shell whose cwd, search path and log apply.
            controller: The job table that spawns and reaps the process.
            registry: Resolves *name* to an executable.
            name: Command name or path.
            *args: Arguments passed to the command.

        """
        super().__init__(context)
        self._controller = controller
        self._registry = registry
        self._name = name
        self._args = [str(a) for a in args]
        self._state = CommandState.NOT_STARTED
        self._job: Job | None = None
        self._path: str | None = None
        self._driven = False
        self._pump: Thread | None = None
        self._pump_error: BaseException | None = None
        self._broken_pipe: PipeBrokenError | None = None
        self._start_lock = Lock()

    # -- Queries ---------------------------------------------------------------

    @property
    def name(self) -> str:
        """Return the command name as given."""
        return self._name

    @property
    def args(self) -> list[str]:
        """Return the command's arguments."""
        return list(self._args)

    @property
    def path(self) -> str | None:
        """Return the resolved executable, or None before start."""
        return self._path

    @property
    def state(self) -> CommandState:
        """Return the lifecycle state, tracking reaps done by the controller."""
        if self._job is not None and self._job.status is JobStatus.TERMINATED:
            self._state = CommandState.TERMINATED
        return self._state

    @property
    def job(self) -> Job | None:
        """Return the job, or None before the first start attempt."""
        return self._job

    @property
    def pid(self) -> int | None:
        """Return the process id once spawned."""
        return self._job.pid if self._job is not None else None

    @property
    def exit_status(self) -> ExitStatus | None:
        """Return the final status once reaped."""
        return self._job.exit_status if self._job is not None else None

    @property
    def broken_pipe(self) -> PipeBrokenError | None:
        """Return the broken-pipe condition the pump hit, if any."""
        return self._broken_pipe

    def attach_input(self, upstream: Filter) -> None:
        """Attach an input; only possible before the command starts.

        Raises:
            RuntimeError: If the command has already started.

        """
        if self._state is not CommandState.NOT_STARTED:
            msg = f"Cannot attach input to {self}: already {self._state}"
            raise RuntimeError(msg)
        super().attach_input(upstream)

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> Job:
        """Resolve, schedule and spawn the command (once).

        Calling ``start`` again after a successful start returns the same
        job.  After a spawn failure it reschedules and tries again.

        Raises:
            CommandNotFoundError: If the executable cannot be found.
            SpawnFailedError: If the OS refused to spawn it.

        """
        with self._start_lock:
            if self._state is not CommandState.NOT_STARTED:
                assert self._job is not None  # noqa: S101
                return self._job

            self._path = self._registry.find(
                self._name, self._context.search_path, self._context.cwd
            )
            argv = [self._path, *self._args]
            if self._job is not None and self._job.status is JobStatus.WAITING:
                job = self._controller.reschedule(self._job)
                job.argv = argv
            else:
                job = self._controller.schedule(
                    str(self), argv, stdin_piped=self._input is not None
                )
            self._job = job
            self._state = CommandState.STARTED
            try:
                process = self._controller.start(job)
            except SpawnFailedError:
                self._state = CommandState.NOT_STARTED
                raise
            self._state = CommandState.ACTIVE

            if self._input is not None:
                assert process.stdin is not None  # noqa: S101
                self._pump = Thread(
                    target=self._run_pump,
                    args=(self._input, process.stdin),
                    name=f"pump-{job.job_id}",
                    daemon=True,
                )
                self._pump.start()
        return job

    def terminate(self) -> ExitStatus | None:
        """Ask the process to terminate; return its status if already gone."""
        if self._job is None:
            self._context.logger.warning(f"terminate: {self} was never started", source=_SOURCE)
            return None
        return self._controller.terminate(self._job)

    def kill(self, sig: SignalLike = KILL_SIGNAL) -> ExitStatus | None:
        """Send *sig* (SIGKILL by default); return the status if already gone."""
        if self._job is None:
            self._context.logger.warning(f"kill: {self} was never started", source=_SOURCE)
            return None
        self._controller.signal(self._job, sig)
        return self._controller.poll(self._job)

    def wait(self) -> ExitStatus:
        """Run the command to completion, discarding unread output."""
        if not self._driven:
            self.drain()
        assert self._job is not None  # noqa: S101
        return self._controller.reap(self._job)

    # -- Production ------------------------------------------------------------

    def chunks(self) -> Iterator[bytes]:
        """Yield the child's stdout as it arrives, blocking for data.

        Raises:
            RuntimeError: If the command's output was already consumed, or
                discarded by the controller while waiting for the job.
            CommandNotFoundError: If the executable cannot be found.
            SpawnFailedError: If the OS refused to spawn it.

        """
        if self._driven:
            msg = f"{self} has already been driven; a process cannot be re-run"
            raise RuntimeError(msg)
        job = self.start()
        self._driven = True
        stdout = self._controller.claim_output(job)

        exhausted = False
        try:
            while block := stdout.read1(_BLOCK_SIZE):
                yield block
            exhausted = True
        finally:
            self._finish(job, stdout, exhausted=exhausted)
        if self._pump_error is not None:
            raise self._pump_error

    def _finish(self, job: Job, stdout: IO[bytes], *, exhausted: bool) -> None:
        with suppress(OSError):
            stdout.close()
        if not exhausted:
            # Abandoned early: leave the job for wait_all rather than block here.
            self._controller.poll(job)
            return
        if self._pump is not None:
            self._pump.join()
        status = self._controller.reap(job)
        self._state = CommandState.TERMINATED
        self._context.logger.debug(f"{self} finished: {status}", source=_SOURCE)

    def _run_pump(self, upstream: Filter, stdin: IO[bytes]) -> None:
        chunks = upstream.chunks()
        try:
            for chunk in chunks:
                stdin.write(chunk)
                stdin.flush()
        except BrokenPipeError as e:
            msg = f"{self} stopped reading its input"
            self._broken_pipe = PipeBrokenError(msg)
            self._broken_pipe.__cause__ = e
            self._context.logger.info(str(self._broken_pipe), source=_SOURCE)
        except Exception as e:  # noqa: BLE001
            self._pump_error = e
            self._context.logger.error(f"input to {self} failed: {e}", source=_SOURCE)
        finally:
            chunks.close()
            with suppress(OSError):
                stdin.close()

    def __str__(self) -> str:
        """Return the command line, shell-quoted."""
        return shlex.join([self._name, *self._args])

    def __repr__(self) -> str:
        """Return ``<SystemCommand 'cmd args'>``."""
        return f"<SystemCommand {str(self)!r}>"
