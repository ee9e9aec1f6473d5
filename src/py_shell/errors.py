"""Error taxonomy for the job-control engine.

Every failure the engine reports derives from ``ShellError`` so callers
can catch the whole family in one place, or pick out the specific
condition they care about:

    - **CommandNotFoundError** — the executable is not on the search path
      and is not an existing path either.
    - **SpawnFailedError** — the OS refused to create the process.
    - **InvalidSourceError** — a ``<`` redirect points at something that
      cannot be read.
    - **WriteError** — a ``>`` / ``>>`` redirect failed to open or write.
    - **PipeBrokenError** — a writer kept writing after the reader went
      away.  Reported, rarely fatal.
    - **KilledBySignalError** — a job ended by signal rather than exit.
    - **WaitFailedError** — reaping a job failed.
    - **SignalError** — a signal could not be resolved or delivered.

Invalid state transitions (driving a terminated command again, starting
a job twice) raise ``RuntimeError``, matching how the process objects
themselves guard their state machines.
"""


class ShellError(Exception):
    """Base class for every engine error."""


class CommandNotFoundError(ShellError):
    """Raise when an executable cannot be located."""


class SpawnFailedError(ShellError):
    """Raise when the OS fails to fork/exec a job."""


class InvalidSourceError(ShellError):
    """Raise when an input redirect target cannot be opened for reading."""


class WriteError(ShellError):
    """Raise when an output redirect fails to open or write its target."""


class PipeBrokenError(ShellError):
    """Raise (or record) when a pipe's reader closed before the writer finished."""


class KilledBySignalError(ShellError):
    """Raise when a job was terminated by a signal instead of exiting."""


class WaitFailedError(ShellError):
    """Raise when a job cannot be reaped."""


class SignalError(ShellError):
    """Raise when a signal cannot be resolved or delivered."""
