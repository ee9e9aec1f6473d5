"""Built-in filters — pipeline nodes that never fork.

Not every stage of a pipeline needs an external process.  These filters
run inside the interpreter, on the thread that drives them:

    - **Echo** — a literal source: the strings it was given.
    - **Concat** — several filters end to end, in order.
    - **Cat** — a ``Concat`` over paths, streams or filters.
    - **Tee** — pass records through while copying them to a file.
    - **Glob** — path names matching a pattern, relative to cwd.
    - **Discard** — a sink that drains its input and yields nothing.
    - **FileSource / StreamSource** — what ``<`` attaches.

Record-oriented filters (``RecordFilter`` subclasses) produce strings
and derive their byte stream by appending the record separator to each
record.  The byte-oriented sources read files in blocks instead.

Restartability: everything here except ``StreamSource`` can be driven
again from the start; a stream, once read, stays read.
"""

from __future__ import annotations

import glob as globlib
import io
import os
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Any

from py_shell.context import ShellContext
from py_shell.errors import InvalidSourceError
from py_shell.filter import Filter, Source

_BLOCK_SIZE = 64 * 1024
_SOURCE = "filter"


class RecordFilter(Filter):
    """A filter whose natural output is records rather than bytes."""

    def chunks(self) -> Iterator[bytes]:
        """Yield each record encoded and followed by the separator."""
        sep = self._context.encode(self.record_separator)
        for line in self.lines():
            yield self._context.encode(line) + sep

    def lines(self, separator: str | None = None) -> Iterator[str]:
        """Yield records; subclasses override."""
        raise NotImplementedError


class Echo(RecordFilter):
    """A literal source producing the given strings in order."""

    def __init__(self, context: ShellContext, *strings: str) -> None:
        """Create a source over *strings*."""
        super().__init__(context)
        self._strings = [str(s) for s in strings]

    def lines(self, separator: str | None = None) -> Iterator[str]:  # noqa: ARG002
        """Yield the literal strings; the separator plays no part."""
        yield from self._strings

    def __repr__(self) -> str:
        """Return ``<Echo [...]>``."""
        return f"<Echo {self._strings!r}>"


class Concat(RecordFilter):
    """All records of each operand in turn, never interleaved.

    If an input is attached it is the first operand, followed by the
    filters given at construction (``cat - a b`` in shell terms).
    """

    def __init__(self, context: ShellContext, *filters: Filter) -> None:
        """Create a concatenation of *filters*."""
        super().__init__(context)
        self._filters = list(filters)

    @property
    def operands(self) -> list[Filter]:
        """Return the filters concatenated, input first."""
        head = [self._input] if self._input is not None else []
        return head + self._filters

    def lines(self, separator: str | None = None) -> Iterator[str]:
        """Yield every record of each operand in order."""
        for operand in self.operands:
            yield from operand.lines(separator)

    def __repr__(self) -> str:
        """Return ``<Concat a + b + ...>``."""
        return f"<Concat {' + '.join(repr(f) for f in self.operands)}>"


class Cat(Concat):
    """Concatenate paths, open streams and filters."""

    def __init__(self, context: ShellContext, *sources: Source | Filter) -> None:
        """Create a ``Cat`` over *sources*.

        Raises:
            InvalidSourceError: If a path source is missing or unreadable.

        """
        filters: list[Filter] = []
        for source in sources:
            if isinstance(source, Filter):
                filters.append(source)
            elif hasattr(source, "read"):
                filters.append(StreamSource(context, source))  # type: ignore[arg-type]
            else:
                filters.append(FileSource(context, source))  # type: ignore[arg-type]
        super().__init__(context, *filters)


class FileSource(Filter):
    """The contents of a file, read in blocks each time it is driven."""

    def __init__(self, context: ShellContext, path: str | os.PathLike[str]) -> None:
        """Bind to *path* (resolved against cwd) and check it is readable.

        Raises:
            InvalidSourceError: If the path is not a readable file.

        """
        super().__init__(context)
        self._path = context.resolve_path(path)
        if not self._path.is_file() or not os.access(self._path, os.R_OK):
            msg = f"Cannot read {self._path}: not a readable file"
            raise InvalidSourceError(msg)

    @property
    def path(self) -> Path:
        """Return the resolved path."""
        return self._path

    def chunks(self) -> Iterator[bytes]:
        """Yield the file's bytes.

        Raises:
            InvalidSourceError: If the file can no longer be opened.

        """
        try:
            handle = self._path.open("rb")
        except OSError as e:
            msg = f"Cannot read {self._path}: {e}"
            raise InvalidSourceError(msg) from e
        with handle:
            while block := handle.read(_BLOCK_SIZE):
                yield block

    def __repr__(self) -> str:
        """Return ``<FileSource path>``."""
        return f"<FileSource {self._path}>"


class StreamSource(Filter):
    """An already-open readable stream, text or binary."""

    def __init__(self, context: ShellContext, stream: IO[Any]) -> None:
        """Wrap *stream*.

        Raises:
            InvalidSourceError: If the stream reports it is not readable.

        """
        super().__init__(context)
        readable = getattr(stream, "readable", None)
        if readable is not None and not readable():
            msg = f"Stream {stream!r} is not readable"
            raise InvalidSourceError(msg)
        self._stream = stream

    def chunks(self) -> Iterator[bytes]:
        """Yield what remains of the stream, encoding text streams."""
        text = isinstance(self._stream, io.TextIOBase)
        while block := self._stream.read(_BLOCK_SIZE):
            yield self._context.encode(block) if text else block


class Tee(RecordFilter):
    """Pass input records through unchanged while copying them to a file.

    The side file is best-effort: if it cannot be opened or written, the
    failure is logged once and the records keep flowing.
    """

    def __init__(
        self,
        context: ShellContext,
        path: str | os.PathLike[str],
        *,
        append: bool = False,
    ) -> None:
        """Create a tee writing to *path* (relative to cwd)."""
        super().__init__(context)
        self._path = context.resolve_path(path)
        self._append = append

    def lines(self, separator: str | None = None) -> Iterator[str]:
        """Yield input records, writing each one to the side file."""
        if self._input is None:
            return
        sep = self._context.encode(self.record_separator)
        side: IO[bytes] | None = None
        try:
            side = self._path.open("ab" if self._append else "wb")
        except OSError as e:
            self._context.logger.error(f"tee: cannot open {self._path}: {e}", source=_SOURCE)
        try:
            for line in self._input.lines(separator):
                if side is not None:
                    try:
                        side.write(self._context.encode(line) + sep)
                    except OSError as e:
                        self._context.logger.error(
                            f"tee: write to {self._path} failed: {e}", source=_SOURCE
                        )
                        side.close()
                        side = None
                yield line
        finally:
            if side is not None:
                side.close()

    def __repr__(self) -> str:
        """Return ``<Tee path>``."""
        return f"<Tee {self._path}>"


class Glob(RecordFilter):
    """Path names matching a glob pattern, sorted, relative to cwd.

    ``**`` matches recursively.  Absolute patterns yield absolute paths;
    relative patterns yield paths relative to the working directory.
    """

    def __init__(self, context: ShellContext, pattern: str) -> None:
        """Create a source for *pattern*."""
        super().__init__(context)
        self._pattern = pattern

    def lines(self, separator: str | None = None) -> Iterator[str]:  # noqa: ARG002
        """Yield the matches as they stand now."""
        pattern = os.path.expanduser(self._pattern)
        yield from sorted(globlib.glob(pattern, root_dir=self._context.cwd, recursive=True))

    def __repr__(self) -> str:
        """Return ``<Glob pattern>``."""
        return f"<Glob {self._pattern!r}>"


class Discard(Filter):
    """A sink: drains its input and produces nothing (``> /dev/null``)."""

    def chunks(self) -> Iterator[bytes]:
        """Consume the input entirely, yielding nothing."""
        if self._input is not None:
            for _chunk in self._input.chunks():
                pass
        yield from ()
