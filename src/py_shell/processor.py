"""Command processor — the factory every filter is built through.

The processor knows how to turn a request ("run ``wc -l``", "echo these
strings", "glob ``*.txt``") into a filter wired to the right shell
context, controller and registry.  Callers never construct filters by
hand unless they want to.

Requests by name (``command``) dispatch through a table: built-in names
map to in-process filters, anything else becomes a ``SystemCommand``.

Design choices:
    - **Command dispatch via a dict.**  Adding a built-in means writing
      a method and adding one entry; no if/elif chains.
    - **No method synthesis.**  Executables found on the search path go
      into the ``CommandRegistry`` and are reached through ``system`` or
      ``command``, not through attributes conjured at runtime.
"""

import os
from collections.abc import Callable
from typing import TypeAlias

from py_shell.builtin import Cat, Concat, Discard, Echo, Glob, Tee
from py_shell.command import SystemCommand
from py_shell.context import ShellContext
from py_shell.controller import ProcessController
from py_shell.filter import Filter, Source
from py_shell.registry import CommandRegistry

_Builder: TypeAlias = Callable[..., Filter]

_SOURCE = "registry"


class CommandProcessor:
    """Build filters for one shell."""

    def __init__(
        self,
        context: ShellContext,
        controller: ProcessController,
        registry: CommandRegistry | None = None,
    ) -> None:
        """Create a processor.

        Args:
            context: The shell the filters belong to.
            controller: Spawns the processes of system commands.
            registry: Executable lookup cache (a fresh one if omitted).

        """
        self._context = context
        self._controller = controller
        self._registry = registry if registry is not None else CommandRegistry()

        # Built-in dispatch table: maps command names to builder methods.
        self._builtins: dict[str, _Builder] = {
            "echo": self.echo,
            "cat": self.cat,
            "glob": self.glob,
            "tee": self.tee,
            "devnull": self.devnull,
        }

    @property
    def registry(self) -> CommandRegistry:
        """Return the executable registry."""
        return self._registry

    @property
    def builtin_names(self) -> list[str]:
        """Return the names handled in-process, sorted."""
        return sorted(self._builtins)

    # -- Constructors ----------------------------------------------------------

    def system(self, name: str, *args: str) -> SystemCommand:
        """Return an external command (resolved when first driven)."""
        return SystemCommand(self._context, self._controller, self._registry, name, *args)

    def echo(self, *strings: str) -> Echo:
        """Return a literal source over *strings*."""
        return Echo(self._context, *strings)

    def cat(self, *sources: Source | Filter) -> Cat:
        """Return the concatenation of paths, streams and filters."""
        return Cat(self._context, *sources)

    def glob(self, pattern: str) -> Glob:
        """Return the path names matching *pattern*, relative to cwd."""
        return Glob(self._context, pattern)

    def tee(self, path: str | os.PathLike[str], *, append: bool = False) -> Tee:
        """Return a pass-through that also writes to *path*."""
        return Tee(self._context, path, append=append)

    def concat(self, *filters: Filter) -> Concat:
        """Return *filters* end to end."""
        return Concat(self._context, *filters)

    def devnull(self) -> Discard:
        """Return a sink that discards its input."""
        return Discard(self._context)

    def command(self, name: str, *args: str) -> Filter:
        """Build a filter by name: a built-in if one matches, else a system command."""
        builder = self._builtins.get(name)
        if builder is not None:
            return builder(*args)
        return self.system(name, *args)

    # -- Registry --------------------------------------------------------------

    def find_system_command(self, name: str) -> str:
        """Return the executable *name* resolves to in this shell.

        Raises:
            CommandNotFoundError: If nothing executable matches.

        """
        return self._registry.find(name, self._context.search_path, self._context.cwd)

    def install_system_commands(self, *, prefix: str = "") -> int:
        """Register every executable on the search path; return how many were added."""
        added = self._registry.scan(self._context.search_path, prefix=prefix)
        self._context.logger.debug(f"installed {added} system command(s)", source=_SOURCE)
        return added

    def rehash(self) -> None:
        """Forget cached executable locations."""
        self._registry.rehash()
        self._context.logger.debug("command cache cleared", source=_SOURCE)
