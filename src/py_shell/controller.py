"""Process controller — the job table behind one shell.

The controller is the only code that creates, signals and reaps OS
processes.  Commands ask it to *schedule* a job (a table entry, no
process yet) and then to *start* it (the actual spawn).  Keeping the two
steps apart means a spawn failure leaves a WAITING job behind, visible
to ``waiting_jobs`` and accounted for by ``wait_all``, rather than
vanishing.

Fork serialization:
    Every controller in the interpreter shares one ``ControllerRegistry``
    and, through it, one spawn lock.  Spawning duplicates pipe
    descriptors into the child; two shells spawning at once could leak
    each other's pipe ends into the wrong children, which then hold a
    pipe open and stop its reader ever seeing EOF.  Holding the lock
    around the spawn call (and only the spawn call) rules that out.

Reaping:
    ``wait_all`` polls the active jobs and records each one as it
    finishes, so the result is in termination order, not schedule order.
    It returns statuses rather than raising, so a caller can inspect a
    partial failure.  Nothing here retries; ``reschedule`` exists for
    callers who want to.

    A child whose stdout nobody reads would block once the pipe buffer
    fills and never exit.  Before waiting on such a job the controller
    drains its unclaimed stdout on a daemon thread; readers take the pipe
    with ``claim_output`` first.

    Finished jobs stay in the table (so their status can be looked up)
    until ``wait_all`` or ``forget_terminated`` sweeps them.

Lifetime:
    The registry holds controllers weakly.  A controller dropped without
    ``shutdown()`` leaves the registry when collected, and its still
    running jobs are logged as orphans then.
"""

import os
import subprocess
import time
import weakref
from collections.abc import Generator, Iterable
from contextlib import contextmanager, suppress
from itertools import count
from threading import Lock, Thread
from types import TracebackType
from typing import IO

from py_shell.context import ShellContext
from py_shell.errors import SignalError, SpawnFailedError, WaitFailedError
from py_shell.jobs import ExitStatus, Job, JobStatus
from py_shell.logging import Logger
from py_shell.signals import (
    KILL_SIGNAL,
    TERMINATE_SIGNAL,
    SignalLike,
    resolve_signal,
    signal_name,
)

_BLOCK_SIZE = 64 * 1024
_REAP_INTERVAL = 0.01
_SOURCE = "controller"


def _report_orphans(logger: Logger, jobs: Iterable[Job]) -> None:
    orphans = [j for j in jobs if j.status is JobStatus.ACTIVE]
    if orphans:
        names = ", ".join(str(j) for j in orphans)
        logger.warning(f"shutdown with {len(orphans)} orphaned job(s): {names}", source=_SOURCE)


def _discard(stdout: IO[bytes]) -> None:
    with suppress(OSError, ValueError):
        while stdout.read(_BLOCK_SIZE):
            pass
    with suppress(OSError):
        stdout.close()


class ControllerRegistry:
    """Process-wide set of live controllers and the shared spawn lock.

    There is normally exactly one, ``REGISTRY``, living as long as the
    interpreter.  Tests create private registries to observe locking.
    Members are held weakly, so registration never keeps a controller
    alive.
    """

    def __init__(self) -> None:
        """Create an empty registry with an unlocked spawn lock."""
        self._controllers: weakref.WeakSet[ProcessController] = weakref.WeakSet()
        self._members_lock = Lock()
        self._spawn_lock = Lock()

    @property
    def controllers(self) -> list["ProcessController"]:
        """Return a snapshot of the registered controllers."""
        with self._members_lock:
            return list(self._controllers)

    @property
    def spawn_lock(self) -> Lock:
        """Return the lock serializing process creation."""
        return self._spawn_lock

    def register(self, controller: "ProcessController") -> None:
        """Add *controller* to the registry (idempotent)."""
        with self._members_lock:
            self._controllers.add(controller)

    def deregister(self, controller: "ProcessController") -> None:
        """Remove *controller* from the registry if present."""
        with self._members_lock:
            self._controllers.discard(controller)

    @contextmanager
    def serialize_spawn(self) -> Generator[None]:
        """Hold the spawn lock for the duration of the block."""
        with self._spawn_lock:
            yield

    def __len__(self) -> int:
        """Return the number of registered controllers."""
        with self._members_lock:
            return len(self._controllers)


REGISTRY = ControllerRegistry()
"""The interpreter-wide registry every controller joins by default."""


class ProcessController:
    """Own, spawn, signal and reap the jobs of one shell context.

    A controller registers itself with its registry on construction and
    leaves on ``shutdown()``.  Used as a context manager it drains every
    job on exit before shutting down.
    """

    def __init__(
        self,
        context: ShellContext,
        *,
        registry: ControllerRegistry = REGISTRY,
    ) -> None:
        """Create an empty controller and register it.

        Args:
            context: The shell whose cwd, environment and umask children
                inherit, and whose log records job events.
            registry: The registry providing the spawn lock.

        """
        self._context = context
        self._registry = registry
        self._jobs: dict[int, Job] = {}
        self._counter = count(start=1)
        self._table_lock = Lock()
        self._closed = False
        registry.register(self)
        self._finalizer = weakref.finalize(
            self, _report_orphans, context.logger, self._jobs.values()
        )

    @property
    def context(self) -> ShellContext:
        """Return the shell context this controller serves."""
        return self._context

    @property
    def registry(self) -> ControllerRegistry:
        """Return the registry this controller belongs to."""
        return self._registry

    @property
    def closed(self) -> bool:
        """Return True once ``shutdown()`` has run."""
        return self._closed

    # -- Scheduling --------------------------------------------------------------

    def schedule(self, name: str, argv: list[str], *, stdin_piped: bool = False) -> Job:
        """Allocate a WAITING job; nothing is spawned yet.

        Args:
            name: Description shown in job listings.
            argv: Argument vector, executable path first.
            stdin_piped: Give the child a stdin pipe instead of /dev/null.

        Returns:
            The new job.

        Raises:
            RuntimeError: If the controller has been shut down.

        """
        if self._closed:
            msg = "Cannot schedule: controller is shut down"
            raise RuntimeError(msg)
        with self._table_lock:
            job = Job(
                job_id=next(self._counter),
                name=name,
                argv=list(argv),
                cwd=self._context.cwd,
                env=self._context.environment.as_dict(),
                umask=self._context.umask,
                stdin_piped=stdin_piped,
            )
            self._jobs[job.job_id] = job
        self._context.logger.debug(f"scheduled {job}", source=_SOURCE)
        return job

    def reschedule(self, job: Job) -> Job:
        """Replace a job that never ran with a fresh WAITING copy.

        Raises:
            RuntimeError: If *job* is active.

        """
        if job.status is JobStatus.ACTIVE:
            msg = f"Cannot reschedule active job {job.job_id}"
            raise RuntimeError(msg)
        with self._table_lock:
            self._jobs.pop(job.job_id, None)
        fresh = self.schedule(job.name, job.argv, stdin_piped=job.stdin_piped)
        fresh.cwd, fresh.env, fresh.umask = job.cwd, job.env, job.umask
        return fresh

    def start(self, job: Job) -> subprocess.Popen[bytes]:
        """Spawn the job's process under the shared spawn lock.

        The child gets its own process group so a signal reaches
        everything it starts.  Its stdout is always a pipe; its stdin is
        a pipe only when the job was scheduled with ``stdin_piped``.

        Returns:
            The ``Popen`` handle, also stored on the job.

        Raises:
            RuntimeError: If the job is not WAITING.
            SpawnFailedError: If the OS could not create the process; the
                job stays WAITING.

        """
        if job.status is not JobStatus.WAITING:
            msg = f"Cannot start job {job.job_id}: status is {job.status}"
            raise RuntimeError(msg)
        with self._registry.serialize_spawn():
            try:
                process = subprocess.Popen(  # noqa: S603
                    job.argv,
                    stdin=subprocess.PIPE if job.stdin_piped else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    cwd=job.cwd,
                    env=job.env,
                    umask=-1 if job.umask is None else job.umask,
                    process_group=0,
                    close_fds=True,
                )
            except (OSError, ValueError) as e:
                self._context.logger.error(f"spawn failed for {job.name}: {e}", source=_SOURCE)
                msg = f"Cannot spawn {job.name}: {e}"
                raise SpawnFailedError(msg) from e
        with self._table_lock:
            job.process = process
            job.status = JobStatus.ACTIVE
        self._context.logger.info(f"started {job}", source=_SOURCE)
        return process

    # -- Signals -----------------------------------------------------------------

    def signal(self, job: Job, sig: SignalLike) -> None:
        """Deliver *sig* to the job's process group.

        A job that is not running (terminated, or never started) gets a
        warning in the log instead of a signal.

        Raises:
            SignalError: If *sig* is unknown or delivery is not permitted.

        """
        resolved = resolve_signal(sig)
        if job.status is not JobStatus.ACTIVE or job.process is None:
            self._context.logger.warning(
                f"{signal_name(resolved)} not sent: job {job.job_id} is {job.status}",
                source=_SOURCE,
            )
            return
        self._context.logger.info(f"{signal_name(resolved)} → {job}", source=_SOURCE)
        try:
            os.killpg(job.process.pid, resolved)
        except ProcessLookupError:
            self._context.logger.debug(f"job {job.job_id} already gone", source=_SOURCE)
        except PermissionError as e:
            msg = f"Cannot signal job {job.job_id}: {e}"
            raise SignalError(msg) from e

    def terminate(self, job: Job) -> ExitStatus | None:
        """Send the terminate signal, then check status without blocking."""
        self.signal(job, TERMINATE_SIGNAL)
        return self.poll(job)

    def kill(self, job: Job) -> ExitStatus | None:
        """Send SIGKILL, then check status without blocking."""
        self.signal(job, KILL_SIGNAL)
        return self.poll(job)

    # -- Reaping -----------------------------------------------------------------

    def poll(self, job: Job) -> ExitStatus | None:
        """Record the job's exit if it has finished; never blocks.

        Returns:
            The final status, or None while the job is still running.

        """
        if job.exit_status is not None:
            return job.exit_status
        if job.process is None:
            return None
        returncode = job.process.poll()
        if returncode is None:
            return None
        return self._mark_terminated(job, ExitStatus.from_returncode(returncode))

    def reap(self, job: Job) -> ExitStatus:
        """Block until the job's process exits and record its status.

        A job that never started is accounted for as not started.

        Raises:
            WaitFailedError: If the OS wait fails.

        """
        if job.exit_status is not None:
            return job.exit_status
        if job.process is None:
            return self._mark_terminated(job, ExitStatus.not_started())
        self._discard_unclaimed_output(job)
        try:
            returncode = job.process.wait()
        except OSError as e:
            msg = f"Cannot reap job {job.job_id}: {e}"
            raise WaitFailedError(msg) from e
        return self._mark_terminated(job, ExitStatus.from_returncode(returncode))

    def wait_all(self) -> dict[int, ExitStatus]:
        """Block until every job is accounted for, then drop them from the table.

        Jobs that already finished come first, then jobs that never
        started, then running jobs in the order they terminate.

        Returns:
            A mapping of job id to final status, in reap order.

        """
        results: dict[int, ExitStatus] = {}
        pending: list[Job] = []
        for job in self.jobs:
            if job.exit_status is not None:
                results[job.job_id] = job.exit_status
            elif job.process is None:
                results[job.job_id] = self._mark_terminated(job, ExitStatus.not_started())
            else:
                self._discard_unclaimed_output(job)
                pending.append(job)

        while pending:
            still_running: list[Job] = []
            for job in pending:
                status = self.poll(job)
                if status is None:
                    still_running.append(job)
                else:
                    results[job.job_id] = status
            pending = still_running
            if pending:
                time.sleep(_REAP_INTERVAL)

        with self._table_lock:
            for job_id in results:
                self._jobs.pop(job_id, None)
        self._context.logger.debug(f"reaped {len(results)} job(s)", source=_SOURCE)
        return results

    def forget_terminated(self) -> list[Job]:
        """Drop finished jobs from the table without waiting for the rest.

        Returns:
            The jobs removed, in schedule order.

        """
        with self._table_lock:
            done = [j for j in self._jobs.values() if j.status is JobStatus.TERMINATED]
            for job in done:
                del self._jobs[job.job_id]
        return done

    # -- Output ------------------------------------------------------------------

    def claim_output(self, job: Job) -> IO[bytes]:
        """Hand the job's stdout pipe to its reader.

        Raises:
            RuntimeError: If the job has no process yet, or its output
                was already claimed (or is being discarded).

        """
        with self._table_lock:
            if job.process is None or job.process.stdout is None:
                msg = f"Job {job.job_id} has no output pipe"
                raise RuntimeError(msg)
            if job.output_claimed:
                msg = f"Output of job {job.job_id} is already claimed"
                raise RuntimeError(msg)
            job.output_claimed = True
            return job.process.stdout

    def _discard_unclaimed_output(self, job: Job) -> None:
        with self._table_lock:
            if job.output_claimed or job.process is None or job.process.stdout is None:
                return
            job.output_claimed = True
            stdout = job.process.stdout
        Thread(target=_discard, args=(stdout,), name=f"discard-{job.job_id}", daemon=True).start()
        self._context.logger.debug(f"discarding unread output of job {job.job_id}", source=_SOURCE)

    def _mark_terminated(self, job: Job, status: ExitStatus) -> ExitStatus:
        with self._table_lock:
            if job.exit_status is None:
                job.exit_status = status
                job.status = JobStatus.TERMINATED
        self._context.logger.debug(f"job {job.job_id} {job.name}: {job.exit_status}", source=_SOURCE)
        assert job.exit_status is not None  # noqa: S101
        return job.exit_status

    # -- Queries -----------------------------------------------------------------

    @property
    def jobs(self) -> list[Job]:
        """Return every job in the table, in schedule order."""
        with self._table_lock:
            return list(self._jobs.values())

    @property
    def active_jobs(self) -> list[Job]:
        """Return jobs whose process is running (or not yet reaped)."""
        return [j for j in self.jobs if j.status is JobStatus.ACTIVE]

    @property
    def waiting_jobs(self) -> list[Job]:
        """Return jobs scheduled but not started."""
        return [j for j in self.jobs if j.status is JobStatus.WAITING]

    @property
    def terminated_jobs(self) -> list[Job]:
        """Return jobs that finished but have not been swept from the table."""
        return [j for j in self.jobs if j.status is JobStatus.TERMINATED]

    def get(self, job_id: int) -> Job | None:
        """Return a job by its id, or None."""
        with self._table_lock:
            return self._jobs.get(job_id)

    def is_active(self, job: Job) -> bool:
        """Return True if *job* is in this table and active."""
        return self.get(job.job_id) is job and job.status is JobStatus.ACTIVE

    def is_waiting(self, job: Job) -> bool:
        """Return True if *job* is in this table and waiting."""
        return self.get(job.job_id) is job and job.status is JobStatus.WAITING

    def __contains__(self, job: object) -> bool:
        """Return True if *job* is in this controller's table."""
        return isinstance(job, Job) and self.get(job.job_id) is job

    # -- Lifecycle ---------------------------------------------------------------

    def shutdown(self) -> None:
        """Leave the registry, reporting any jobs still running as orphans."""
        if self._closed:
            return
        self._finalizer.detach()
        _report_orphans(self._context.logger, self.jobs)
        self._registry.deregister(self)
        self._closed = True

    def __enter__(self) -> "ProcessController":
        """Return self; the block's jobs are drained on exit."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Terminate active jobs if the block failed, wait for all, shut down."""
        if exc_type is not None:
            for job in self.active_jobs:
                self.terminate(job)
        self.wait_all()
        self.shutdown()
