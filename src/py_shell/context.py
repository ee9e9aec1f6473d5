"""Shell context — the per-shell state the engine reads.

A context is what makes two shells in one interpreter independent: each
has its own working directory, directory stack, umask, environment (and
therefore search path), debug/verbose flags, record separator and log.

The engine only *reads* most of this.  Navigation (``cd``, ``pushd``,
``popd``) and configuration commands live outside the engine; the
context offers them plain setters and a LIFO stack, nothing more.

Flag semantics:
    - ``debug`` — record DEBUG entries (every spawn, pump and reap).
    - ``verbose`` — record INFO entries (one line per started job).
    - Warnings and errors are always recorded.
"""

import os
from pathlib import Path

from py_shell.env import Environment
from py_shell.logging import Logger, LogLevel

DEFAULT_ENCODING = "utf-8"
DEFAULT_ERRORS = "surrogateescape"


class ShellContext:
    """Working directory, environment, flags and log for one shell."""

    def __init__(
        self,
        *,
        cwd: str | os.PathLike[str] | None = None,
        environment: Environment | None = None,
        umask: int | None = None,
        debug: bool = False,
        verbose: bool = False,
        record_separator: str = os.linesep,
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        """Create a context, defaulting to the interpreter's own state.

        Args:
            cwd: Working directory for relative paths and children.
            environment: Variables passed to children (copied from
                ``os.environ`` when omitted).
            umask: File-creation mask applied to children, or None to
                inherit the interpreter's.
            debug: Record DEBUG-level log entries.
            verbose: Record INFO-level log entries.
            record_separator: Default separator for splitting output.
            encoding: Text encoding used between bytes and records.

        """
        self._cwd = Path(cwd if cwd is not None else os.getcwd()).resolve()
        self._dir_stack: list[Path] = []
        self._environment = environment if environment is not None else Environment.from_process()
        self.umask = umask
        self._debug = debug
        self._verbose = verbose
        self.record_separator = record_separator
        self.encoding = encoding
        self.errors = DEFAULT_ERRORS
        self._logger = Logger(min_level=self._level_for_flags())

    # -- Paths -----------------------------------------------------------------

    @property
    def cwd(self) -> Path:
        """Return the current working directory."""
        return self._cwd

    @cwd.setter
    def cwd(self, path: str | os.PathLike[str]) -> None:
        """Set the working directory (relative paths resolve against the old one)."""
        self._cwd = self.resolve_path(path)

    @property
    def dir_stack(self) -> list[Path]:
        """Return the directory stack, most recently pushed last."""
        return list(self._dir_stack)

    def push_dir(self, path: str | os.PathLike[str]) -> None:
        """Save the current directory on the stack and move to *path*."""
        target = self.resolve_path(path)
        self._dir_stack.append(self._cwd)
        self._cwd = target

    def pop_dir(self) -> Path:
        """Restore the most recently pushed directory and return it.

        Raises:
            IndexError: If the stack is empty.

        """
        if not self._dir_stack:
            msg = "Directory stack is empty"
            raise IndexError(msg)
        self._cwd = self._dir_stack.pop()
        return self._cwd

    def resolve_path(self, path: str | os.PathLike[str]) -> Path:
        """Resolve *path* against the working directory (``~`` expanded)."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self._cwd / candidate
        return candidate

    # -- Environment -----------------------------------------------------------

    @property
    def environment(self) -> Environment:
        """Return the environment handed to children."""
        return self._environment

    @property
    def search_path(self) -> list[str]:
        """Return the ordered executable search path (from ``PATH``)."""
        return self._environment.search_path()

    @search_path.setter
    def search_path(self, directories: list[str]) -> None:
        """Replace the executable search path."""
        self._environment.set_search_path(directories)

    # -- Flags and logging -----------------------------------------------------

    @property
    def debug(self) -> bool:
        """Return whether DEBUG entries are recorded."""
        return self._debug

    @debug.setter
    def debug(self, value: bool) -> None:
        self._debug = value
        self._logger.min_level = self._level_for_flags()

    @property
    def verbose(self) -> bool:
        """Return whether INFO entries are recorded."""
        return self._verbose

    @verbose.setter
    def verbose(self, value: bool) -> None:
        self._verbose = value
        self._logger.min_level = self._level_for_flags()

    @property
    def logger(self) -> Logger:
        """Return this shell's log buffer."""
        return self._logger

    def _level_for_flags(self) -> LogLevel:
        if self._debug:
            return LogLevel.DEBUG
        if self._verbose:
            return LogLevel.INFO
        return LogLevel.WARNING

    # -- Text ------------------------------------------------------------------

    def encode(self, text: str) -> bytes:
        """Encode *text* with the context's encoding."""
        return text.encode(self.encoding, self.errors)

    def decode(self, data: bytes) -> str:
        """Decode *data* with the context's encoding."""
        return data.decode(self.encoding, self.errors)
