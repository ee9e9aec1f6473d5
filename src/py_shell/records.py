"""Record splitting — turning a byte stream into separator-delimited records.

Processes write bytes in whatever chunk sizes the kernel hands us; a
single record can straddle two reads and one read can hold many
records.  ``split_records`` buffers just enough to cut the stream at
each separator and yields records *without* the separator.

A trailing fragment with no separator after it is still a record (the
last line of a file without a final newline), but an empty tail is not.
"""

from collections.abc import Iterable, Iterator


def split_records(chunks: Iterable[bytes], separator: bytes) -> Iterator[bytes]:
    """Yield each separator-delimited record of the concatenated *chunks*.

    Args:
        chunks: The byte stream, in arbitrary pieces.
        separator: The record separator (must be non-empty).

    Raises:
        ValueError: If *separator* is empty.

    """
    if not separator:
        msg = "Record separator must not be empty"
        raise ValueError(msg)
    buffer = b""
    for chunk in chunks:
        if not chunk:
            continue
        buffer += chunk
        *complete, buffer = buffer.split(separator)
        yield from complete
    if buffer:
        yield buffer
