"""The shell — one logical shell instance.

A ``Shell`` bundles the three pieces a caller needs: a ``ShellContext``
(where am I, what is on the path, how chatty should the log be), a
``ProcessController`` (the job table) and a ``CommandProcessor`` (the
filter factory).  Two shells in one interpreter share nothing except
the process-wide spawn lock.

Example::

    with Shell() as sh:
        (sh.system("printf", "b\\na\\n") | sh.system("sort")) > "sorted.txt"
        print(sh.cat("sorted.txt").to_list())

Leaving the ``with`` block waits for every job and shuts the controller
down, so nothing is left running behind the caller's back.
"""

import os
from types import TracebackType

from py_shell.builtin import Cat, Concat, Discard, Echo, Glob, Tee
from py_shell.command import SystemCommand
from py_shell.context import ShellContext
from py_shell.controller import REGISTRY, ControllerRegistry, ProcessController
from py_shell.env import Environment
from py_shell.filter import Filter, Source
from py_shell.jobs import ExitStatus, Job
from py_shell.processor import CommandProcessor
from py_shell.registry import CommandRegistry
from py_shell.signals import SignalLike


class Shell:
    """Context, job table and filter factory for one shell."""

    def __init__(
        self,
        *,
        cwd: str | os.PathLike[str] | None = None,
        environment: Environment | None = None,
        umask: int | None = None,
        debug: bool = False,
        verbose: bool = False,
        record_separator: str = os.linesep,
        registry: CommandRegistry | None = None,
        controller_registry: ControllerRegistry = REGISTRY,
    ) -> None:
        """Create a shell.

        Args:
            cwd: Starting working directory (the interpreter's by default).
            environment: Variables for children (a copy of ``os.environ``).
            umask: File-creation mask for children, or None to inherit.
            debug: Record DEBUG-level log entries.
            verbose: Record INFO-level log entries.
            record_separator: Default separator for splitting output.
            registry: Executable cache, possibly shared between shells.
            controller_registry: Registry providing the spawn lock.

        """
        self._context = ShellContext(
            cwd=cwd,
            environment=environment,
            umask=umask,
            debug=debug,
            verbose=verbose,
            record_separator=record_separator,
        )
        self._controller = ProcessController(self._context, registry=controller_registry)
        self._processor = CommandProcessor(self._context, self._controller, registry)

    @property
    def context(self) -> ShellContext:
        """Return the shell's context."""
        return self._context

    @property
    def controller(self) -> ProcessController:
        """Return the shell's job table."""
        return self._controller

    @property
    def processor(self) -> CommandProcessor:
        """Return the shell's filter factory."""
        return self._processor

    # -- Filters ---------------------------------------------------------------

    def system(self, name: str, *args: str) -> SystemCommand:
        """Return an external command."""
        return self._processor.system(name, *args)

    def echo(self, *strings: str) -> Echo:
        """Return a literal source."""
        return self._processor.echo(*strings)

    def cat(self, *sources: Source | Filter) -> Cat:
        """Return the concatenation of paths, streams and filters."""
        return self._processor.cat(*sources)

    def glob(self, pattern: str) -> Glob:
        """Return the path names matching *pattern*."""
        return self._processor.glob(pattern)

    def tee(self, path: str | os.PathLike[str], *, append: bool = False) -> Tee:
        """Return a pass-through that also writes to *path*."""
        return self._processor.tee(path, append=append)

    def concat(self, *filters: Filter) -> Concat:
        """Return *filters* end to end."""
        return self._processor.concat(*filters)

    def devnull(self) -> Discard:
        """Return a sink that discards its input."""
        return self._processor.devnull()

    def command(self, name: str, *args: str) -> Filter:
        """Build a filter by name."""
        return self._processor.command(name, *args)

    # -- Jobs ------------------------------------------------------------------

    @property
    def jobs(self) -> list[Job]:
        """Return the job table."""
        return self._controller.jobs

    def signal(self, job: Job, sig: SignalLike) -> None:
        """Deliver *sig* to *job*."""
        self._controller.signal(job, sig)

    def terminate(self, job: Job) -> ExitStatus | None:
        """Terminate *job*."""
        return self._controller.terminate(job)

    def wait_all(self) -> dict[int, ExitStatus]:
        """Wait for every job and return their statuses."""
        return self._controller.wait_all()

    def forget_terminated(self) -> list[Job]:
        """Drop finished jobs from the table; return them."""
        return self._controller.forget_terminated()

    def dmesg(self) -> list[str]:
        """Return the shell's log entries, formatted."""
        return [str(entry) for entry in self._context.logger.entries]

    # -- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        """Shut the controller down (orphaned jobs are logged)."""
        self._controller.shutdown()

    def __enter__(self) -> "Shell":
        """Return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Drain every job, then shut down."""
        self._controller.__exit__(exc_type, exc, tb)
