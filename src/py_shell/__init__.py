"""py-shell — process job control and pipeline composition.

Re-exports public symbols so callers can write::

    from py_shell import Shell, SystemCommand, CommandNotFoundError
"""

from py_shell.builtin import Cat, Concat, Discard, Echo, FileSource, Glob, StreamSource, Tee
from py_shell.command import CommandState, SystemCommand
from py_shell.context import ShellContext
from py_shell.controller import REGISTRY, ControllerRegistry, ProcessController
from py_shell.env import Environment
from py_shell.errors import (
    CommandNotFoundError,
    InvalidSourceError,
    KilledBySignalError,
    PipeBrokenError,
    ShellError,
    SignalError,
    SpawnFailedError,
    WaitFailedError,
    WriteError,
)
from py_shell.filter import Filter
from py_shell.jobs import ExitStatus, Job, JobStatus
from py_shell.processor import CommandProcessor
from py_shell.registry import CommandRegistry
from py_shell.shell import Shell

__all__ = [
    "REGISTRY",
    "Cat",
    "CommandNotFoundError",
    "CommandProcessor",
    "CommandRegistry",
    "CommandState",
    "Concat",
    "ControllerRegistry",
    "Discard",
    "Echo",
    "Environment",
    "ExitStatus",
    "FileSource",
    "Filter",
    "Glob",
    "InvalidSourceError",
    "Job",
    "JobStatus",
    "KilledBySignalError",
    "PipeBrokenError",
    "ProcessController",
    "Shell",
    "ShellContext",
    "ShellError",
    "SignalError",
    "SpawnFailedError",
    "StreamSource",
    "SystemCommand",
    "Tee",
    "WaitFailedError",
    "WriteError",
]
