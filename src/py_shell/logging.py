"""Shell logging — an in-memory audit trail of engine events.

Every spawn, signal, broken pipe and orphaned job leaves a structured
entry here.  The buffer is the shell's equivalent of ``dmesg``: cheap to
write, easy to inspect from tests, and never printed unless someone asks.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source).
- **Logger** — an append-only log with a minimum level, filtering and
  clearing.

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records should be immutable.
    - **Minimum level on the logger** — the shell's debug/verbose flags
      decide what is worth keeping, so callers log unconditionally.
    - **A lock around appends** — pump threads log concurrently with the
      thread that drives the pipeline.
"""

from dataclasses import dataclass
from enum import IntEnum
from threading import Lock


class LogLevel(IntEnum):
    """Severity levels for log entries.

    Using IntEnum means levels compare with ``<`` / ``>`` naturally,
    which makes minimum-level filtering trivial.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "controller").

    """

    level: LogLevel
    message: str
    source: str

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with a minimum level and filtering.

    Entries below ``min_level`` are dropped at the door, so the buffer
    only ever holds what the shell's flags asked for.
    """

    def __init__(self, *, min_level: LogLevel = LogLevel.WARNING) -> None:
        """Create an empty logger.

        Args:
            min_level: Entries below this level are discarded.

        """
        self._entries: list[LogEntry] = []
        self._min_level = min_level
        self._lock = Lock()

    @property
    def min_level(self) -> LogLevel:
        """Return the lowest level that is recorded."""
        return self._min_level

    @min_level.setter
    def min_level(self, level: LogLevel) -> None:
        """Change the lowest level that is recorded."""
        self._min_level = level

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(self, level: LogLevel, message: str, *, source: str) -> None:
        """Append a new entry to the log if it meets the minimum level.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.

        """
        if level < self._min_level:
            return
        entry = LogEntry(level=level, message=message, source=source)
        with self._lock:
            self._entries.append(entry)

    def debug(self, message: str, *, source: str) -> None:
        """Log at DEBUG level."""
        self.log(LogLevel.DEBUG, message, source=source)

    def info(self, message: str, *, source: str) -> None:
        """Log at INFO level."""
        self.log(LogLevel.INFO, message, source=source)

    def warning(self, message: str, *, source: str) -> None:
        """Log at WARNING level."""
        self.log(LogLevel.WARNING, message, source=source)

    def error(self, message: str, *, source: str) -> None:
        """Log at ERROR level."""
        self.log(LogLevel.ERROR, message, source=source)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        with self._lock:
            self._entries.clear()
