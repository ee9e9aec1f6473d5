"""Command registry — logical command names mapped to executables.

Finding ``wc`` means walking the search path, directory by directory,
until an executable file called ``wc`` turns up.  The registry caches
the answer so the walk happens once per name, and can be filled in bulk
by scanning every directory on the path (``scan``).

Resolution rules:
    - A name containing a path separator is a path: it is resolved
      against the working directory and must be an executable file.
    - A bare name is looked up in the registry, then searched for on the
      search path in order; the first hit wins and is cached.
    - ``rehash`` forgets everything, for when ``PATH`` or the file
      system changed under us.
"""

import os
from collections.abc import Iterable
from pathlib import Path
from threading import Lock

from py_shell.errors import CommandNotFoundError


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class CommandRegistry:
    """A mapping from command name to resolved executable path."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self._commands: dict[str, str] = {}
        self._lock = Lock()

    def register(self, name: str, path: str | os.PathLike[str]) -> None:
        """Map *name* to *path*, replacing any previous mapping."""
        with self._lock:
            self._commands[name] = os.fspath(path)

    def lookup(self, name: str) -> str | None:
        """Return the registered path for *name*, or None."""
        with self._lock:
            return self._commands.get(name)

    def names(self) -> list[str]:
        """Return the registered names, sorted."""
        with self._lock:
            return sorted(self._commands)

    def rehash(self) -> None:
        """Forget every mapping."""
        with self._lock:
            self._commands.clear()

    def scan(self, search_path: Iterable[str], *, prefix: str = "") -> int:
        """Register every executable found on *search_path*.

        Earlier directories win, as they would for a lookup.  Names
        already registered are left alone.

        Args:
            search_path: Directories to scan, in priority order.
            prefix: Prepended to each registered name.

        Returns:
            The number of names added.

        """
        added = 0
        for directory in search_path:
            try:
                entries = sorted(Path(directory).iterdir())
            except OSError:
                continue
            for entry in entries:
                name = prefix + entry.name
                if self.lookup(name) is None and _is_executable(entry):
                    self.register(name, entry)
                    added += 1
        return added

    def find(self, name: str, search_path: Iterable[str], cwd: Path) -> str:
        """Resolve *name* to an executable path.

        Args:
            name: A bare command name or a path.
            search_path: Directories searched for bare names, in order.
            cwd: Directory that relative paths are resolved against.

        Returns:
            The executable's path.

        Raises:
            CommandNotFoundError: If nothing executable matches.

        """
        if os.sep in name or (os.altsep is not None and os.altsep in name):
            candidate = Path(name).expanduser()
            if not candidate.is_absolute():
                candidate = cwd / candidate
            if _is_executable(candidate):
                return os.fspath(candidate)
            msg = f"Command not found: {name}"
            raise CommandNotFoundError(msg)

        cached = self.lookup(name)
        if cached is not None:
            if _is_executable(Path(cached)):
                return cached
            with self._lock:
                self._commands.pop(name, None)

        for directory in search_path:
            base = Path(directory)
            candidate = (base if base.is_absolute() else cwd / base) / name
            if _is_executable(candidate):
                self.register(name, candidate)
                return os.fspath(candidate)
        msg = f"Command not found: {name}"
        raise CommandNotFoundError(msg)
