"""Signal resolution — turning what callers type into real signals.

Callers name signals the way they would at a terminal: ``9``,
``"KILL"``, ``"SIGKILL"``, ``"sigterm"``, or the ``signal.Signals``
member itself.  ``resolve_signal`` accepts all of them and returns the
standard-library enum the OS calls expect (or the bare number for
real-time signals, which the enum does not list).

Design choices:
    - **Reuse ``signal.Signals``** rather than a private IntEnum — the
      values must match the host OS, and the standard library already
      knows them.
    - **Unknown names raise ``SignalError``** instead of ``ValueError``
      so job-control callers catch one family.
"""

import signal
from typing import TypeAlias

from py_shell.errors import SignalError

TERMINATE_SIGNAL = signal.SIGTERM
KILL_SIGNAL = signal.SIGKILL

SignalLike: TypeAlias = int | str | signal.Signals
SignalNumber: TypeAlias = signal.Signals | int


def resolve_signal(value: SignalLike) -> SignalNumber:
    """Return the signal named or numbered by *value*.

    Args:
        value: A number, a name with or without the ``SIG`` prefix
            (case-insensitive), or a ``signal.Signals`` member.

    Raises:
        SignalError: If *value* does not name a signal on this platform.

    """
    if isinstance(value, signal.Signals):
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            return resolve_signal(int(name))
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            return signal.Signals[name]
        except KeyError:
            msg = f"Unknown signal: {value!r}"
            raise SignalError(msg) from None
    return signal_from_number(value)


def signal_from_number(number: int) -> SignalNumber:
    """Return the ``signal.Signals`` member for *number*, or the bare number.

    Real-time signals (``SIGRTMIN+1`` and up on Linux) are valid but have
    no enum member; they come back as plain ints.

    Raises:
        SignalError: If *number* is outside the platform's signal range.

    """
    try:
        return signal.Signals(number)
    except ValueError:
        if 0 < number < signal.NSIG:
            return number
        msg = f"Unknown signal number: {number}"
        raise SignalError(msg) from None


def signal_name(sig: SignalNumber) -> str:
    """Return ``SIGTERM`` for enum members, ``signal 40`` for bare numbers."""
    if isinstance(sig, signal.Signals):
        return sig.name
    return f"signal {sig}"
