"""Jobs — the controller's record of one unit of scheduled work.

A job is created the moment a command is *scheduled*, before any
process exists, and it outlives the process until someone reaps it.
That gap is the whole point: a job that failed to spawn is still in the
table, so ``wait_all`` can account for it instead of losing it.

Lifecycle::

    WAITING ──start──▶ ACTIVE ──exit / signal──▶ TERMINATED

Key ideas:
    - **Jobs are not processes** — the job wraps a ``subprocess.Popen``
      handle once there is one, adding an id, a status and a final
      ``ExitStatus``.
    - **Job numbers are small** — ``[1]``, ``[2]``, ... per controller.
    - **ExitStatus tells the three endings apart** — a normal exit code,
      death by signal, or never started at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from signal import Signals
from typing import TYPE_CHECKING

from py_shell.errors import KilledBySignalError
from py_shell.signals import SignalNumber, signal_from_number, signal_name

if TYPE_CHECKING:
    import subprocess


class JobStatus(StrEnum):
    """Status of a job in the controller's table."""

    WAITING = "waiting"
    ACTIVE = "active"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class ExitStatus:
    """How a job ended.

    Attributes:
        code: The exit code for a normal exit, else None.
        signal: The terminating signal, else None.
        started: False when the job never reached a running process.

    """

    code: int | None = None
    signal: SignalNumber | None = None
    started: bool = True

    @classmethod
    def from_returncode(cls, returncode: int) -> ExitStatus:
        """Translate a ``Popen.returncode`` (negative means signal)."""
        if returncode < 0:
            return cls(signal=signal_from_number(-returncode))
        return cls(code=returncode)

    @classmethod
    def not_started(cls) -> ExitStatus:
        """Return the status of a job that never spawned."""
        return cls(started=False)

    @property
    def killed(self) -> bool:
        """Return True if the job was ended by a signal."""
        return self.signal is not None

    @property
    def success(self) -> bool:
        """Return True for a zero exit code."""
        return self.code == 0

    def raise_for_status(self) -> None:
        """Raise ``KilledBySignalError`` if the job died by signal."""
        if self.signal is not None:
            msg = f"Killed by {signal_name(self.signal)}"
            raise KilledBySignalError(msg)

    def __str__(self) -> str:
        """Format as ``exit N``, ``signal NAME`` or ``not started``."""
        if not self.started:
            return "not started"
        if self.signal is not None:
            if isinstance(self.signal, Signals):
                return f"signal {self.signal.name}"
            return f"signal {self.signal}"
        return f"exit {self.code}"


@dataclass
class Job:
    """A scheduled command and, once started, its process.

    Attributes:
        job_id: Small per-controller job number ([1], [2], ...).
        name: Human-readable description of the command.
        argv: Argument vector, executable path first.
        cwd: Working directory for the child.
        env: Environment for the child.
        umask: File-creation mask for the child, or None to inherit.
        stdin_piped: Whether the child's stdin is a pipe (else /dev/null).
        status: Current job status.
        process: The ``Popen`` handle once started.
        exit_status: Final status once reaped.
        output_claimed: Whether a reader has taken the stdout pipe; an
            unclaimed pipe is drained by the controller before reaping.

    """

    job_id: int
    name: str
    argv: list[str]
    cwd: Path | None = None
    env: dict[str, str] | None = None
    umask: int | None = None
    stdin_piped: bool = False
    status: JobStatus = JobStatus.WAITING
    process: subprocess.Popen[bytes] | None = field(default=None, repr=False)
    exit_status: ExitStatus | None = None
    output_claimed: bool = False

    @property
    def pid(self) -> int | None:
        """Return the OS process id, or None before the job starts."""
        return self.process.pid if self.process is not None else None

    def __str__(self) -> str:
        """Format as ``[id] status name (pid=N)``."""
        return f"[{self.job_id}] {self.status} {self.name} (pid={self.pid})"
