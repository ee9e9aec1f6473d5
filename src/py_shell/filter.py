"""Filters — lazy, composable producers of records.

Every node in a pipeline is a ``Filter``: external commands, literal
sources, tees, file sources and sinks alike.  A filter may hold a
reference to an upstream *input* filter; driving a filter pulls on its
input, which pulls on its own input, and so on back to a source.

Two views of the same output:
    - ``chunks()`` — the raw byte stream.  Pipes and redirects move
      chunks, so ``a | b`` hands ``b`` exactly the bytes ``a`` produced.
    - ``lines(separator)`` — records cut from that stream at the
      separator (the separator itself is dropped).

Composition operators::

    a | b        pipe: b reads a's output           (pipe)
    a < source   a reads a path or open stream      (redirect_in)
    a > target   drain a into target, truncating    (redirect_out)
    a >> target  drain a into target, appending     (redirect_out, append)
    a + b        all of a, then all of b            (concat)

``|``, ``<`` and ``+`` only build the graph; nothing runs until the
result is iterated.  ``>`` and ``>>`` drive the pipeline immediately,
the way a shell runs a redirected command line.

Python precedence is not shell precedence: ``>>`` and ``+`` bind tighter
than ``|``, and ``a < x > y`` is a *chained comparison*.  Parenthesize::

    (a | b) >> "log.txt"
    (sort < "in.txt") > "out.txt"

Design choices:
    - **The downstream holds the upstream, never the other way round.**
      An upstream may feed several consumers in turn; it is not owned.
    - **The base class is a pass-through**, so subclasses only override
      the view (bytes or records) that is natural for them.
"""

from __future__ import annotations

import io
import os
from collections.abc import Iterator
from typing import IO, TYPE_CHECKING, Any, TypeAlias

from py_shell.errors import WriteError
from py_shell.records import split_records

if TYPE_CHECKING:
    from py_shell.builtin import Concat
    from py_shell.context import ShellContext

Source: TypeAlias = str | os.PathLike[str] | IO[Any]
Target: TypeAlias = str | os.PathLike[str] | IO[Any]

_SOURCE = "filter"


class Filter:
    """A pipeline node producing a lazy sequence of records.

    A bare ``Filter`` passes its input through unchanged; with no input
    it is an empty source.
    """

    def __init__(self, context: ShellContext) -> None:
        """Create an unconnected filter.

        Args:
            context: The shell whose separator, encoding and log apply.

        """
        self._context = context
        self._input: Filter | None = None
        self._record_separator: str | None = None

    @property
    def context(self) -> ShellContext:
        """Return the shell context this filter belongs to."""
        return self._context

    @property
    def input(self) -> Filter | None:
        """Return the upstream filter, or None for a source."""
        return self._input

    def attach_input(self, upstream: Filter) -> None:
        """Make *upstream* this filter's input."""
        self._input = upstream

    @property
    def record_separator(self) -> str:
        """Return the separator used to cut records (the shell's by default)."""
        if self._record_separator is not None:
            return self._record_separator
        return self._context.record_separator

    @record_separator.setter
    def record_separator(self, separator: str | None) -> None:
        """Override the separator for this filter; None restores the default."""
        self._record_separator = separator

    # -- Production ------------------------------------------------------------

    def chunks(self) -> Iterator[bytes]:
        """Yield the raw output bytes."""
        if self._input is not None:
            yield from self._input.chunks()

    def lines(self, separator: str | None = None) -> Iterator[str]:
        """Yield output records split at *separator* (default: this filter's).

        Raises:
            ValueError: If the separator is empty.

        """
        sep = self._context.encode(separator if separator is not None else self.record_separator)
        for record in split_records(self.chunks(), sep):
            yield self._context.decode(record)

    def __iter__(self) -> Iterator[str]:
        """Iterate over the records with the default separator."""
        return self.lines()

    def to_list(self) -> list[str]:
        """Drive the filter and return every record."""
        return list(self.lines())

    def read(self) -> str:
        """Drive the filter and return its whole output as text."""
        return self._context.decode(b"".join(self.chunks()))

    def drain(self) -> None:
        """Drive the filter to exhaustion, discarding the output."""
        for _chunk in self.chunks():
            pass

    # -- Composition -----------------------------------------------------------

    def pipe(self, other: Filter) -> Filter:
        """Feed this filter's output into *other*; return *other*."""
        other.attach_input(self)
        return other

    def redirect_in(self, source: Source) -> Filter:
        """Read input from a path (relative to cwd) or an open stream; return self.

        Raises:
            InvalidSourceError: If the path is missing or unreadable.

        """
        from py_shell.builtin import FileSource, StreamSource  # noqa: PLC0415

        if hasattr(source, "read"):
            upstream: Filter = StreamSource(self._context, source)  # type: ignore[arg-type]
        else:
            upstream = FileSource(self._context, source)  # type: ignore[arg-type]
        self.attach_input(upstream)
        return self

    def redirect_out(self, target: Target, *, append: bool = False) -> Filter:
        """Drive this filter into *target* and return self.

        *target* is a path (relative to cwd; truncated unless *append*)
        or an open writable stream, text or binary.

        Raises:
            WriteError: If the target cannot be opened or written.

        """
        if hasattr(target, "write"):
            self._write_stream(target)  # type: ignore[arg-type]
            return self
        path = self._context.resolve_path(target)  # type: ignore[arg-type]
        try:
            out = path.open("ab" if append else "wb")
        except OSError as e:
            msg = f"Cannot open {path} for writing: {e}"
            raise WriteError(msg) from e
        with out:
            self._write_stream(out)
        self._context.logger.debug(
            f"{'appended' if append else 'wrote'} {self!r} to {path}", source=_SOURCE
        )
        return self

    def concat(self, other: Filter) -> Concat:
        """Return a filter producing all of this filter, then all of *other*."""
        from py_shell.builtin import Concat  # noqa: PLC0415

        return Concat(self._context, self, other)

    def _write_stream(self, out: IO[Any]) -> None:
        text = isinstance(out, io.TextIOBase)
        for chunk in self.chunks():
            try:
                out.write(self._context.decode(chunk) if text else chunk)
            except OSError as e:
                msg = f"Write failed: {e}"
                raise WriteError(msg) from e
        try:
            out.flush()
        except OSError as e:
            msg = f"Flush failed: {e}"
            raise WriteError(msg) from e

    # -- Operators -------------------------------------------------------------

    def __or__(self, other: object) -> Filter:
        """``a | b`` — pipe."""
        if not isinstance(other, Filter):
            return NotImplemented
        return self.pipe(other)

    def __lt__(self, source: Source) -> Filter:  # type: ignore[override]
        """``a < source`` — input redirection."""
        return self.redirect_in(source)

    def __gt__(self, target: Target) -> Filter:  # type: ignore[override]
        """``a > target`` — output redirection, truncating."""
        return self.redirect_out(target)

    def __rshift__(self, target: Target) -> Filter:
        """``a >> target`` — output redirection, appending."""
        return self.redirect_out(target, append=True)

    def __add__(self, other: object) -> Filter:
        """``a + b`` — concatenation."""
        if not isinstance(other, Filter):
            return NotImplemented
        return self.concat(other)

    def __repr__(self) -> str:
        """Return ``<ClassName>``."""
        return f"<{type(self).__name__}>"
