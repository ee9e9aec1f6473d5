"""Environment variables — the key-value block handed to every child.

Each spawned command receives a copy of its shell's environment.  The
one variable the engine itself interprets is ``PATH``: an ordered,
``os.pathsep``-separated list of directories searched for executables.

Key design properties:
    - **Copy semantics** — a shell starts from a *copy* of the process
      environment; changing it never touches ``os.environ``.
    - **Strings only** — both keys and values are strings.
    - **Search path derived, not stored** — ``search_path()`` reads
      ``PATH`` every time so an ``export PATH=...`` takes effect at once.
"""

import os


class Environment:
    """A key-value store for environment variables.

    Each instance is an independent copy — modifying one does not
    affect any other, nor the interpreter's own ``os.environ``.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Create an environment, optionally pre-populated.

        Args:
            initial: Starting variables (copied, not referenced).

        """
        self._vars: dict[str, str] = dict(initial) if initial else {}

    @classmethod
    def from_process(cls) -> "Environment":
        """Return a copy of the running interpreter's environment."""
        return cls(initial=dict(os.environ))

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value for *key*, or *default* if not set."""
        return self._vars.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Set *key* to *value* (creates or overwrites)."""
        self._vars[key] = value

    def delete(self, key: str) -> None:
        """Remove *key* from the environment.

        Raises:
            KeyError: If *key* does not exist.

        """
        del self._vars[key]

    def search_path(self) -> list[str]:
        """Return ``PATH`` split into its directories, empty entries dropped."""
        raw = self._vars.get("PATH", "")
        return [entry for entry in raw.split(os.pathsep) if entry]

    def set_search_path(self, directories: list[str]) -> None:
        """Replace ``PATH`` with *directories* in order."""
        self._vars["PATH"] = os.pathsep.join(directories)

    def as_dict(self) -> dict[str, str]:
        """Return a plain dict copy, suitable for passing to a child process."""
        return dict(self._vars)

    def copy(self) -> "Environment":
        """Return an independent copy of this environment."""
        return Environment(initial=self._vars)

    def __len__(self) -> int:
        """Return the number of variables."""
        return len(self._vars)
