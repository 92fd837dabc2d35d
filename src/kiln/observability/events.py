"""Event model for the dev server.

Every rebuild, asset copy, reload broadcast and lifecycle transition is
recorded as a frozen dataclass with a monotonic ``timestamp_ns``.

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass

from kiln._types import SessionState


@dataclass(frozen=True, slots=True)
class RebuildEvent:
    """The build engine ran.

    Attributes:
        ok: False if the build raised.
        duration_ms: Time spent in the build engine.
        error: Error message when ``ok`` is False.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    ok: bool
    duration_ms: float
    error: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CopyEvent:
    """The asset copier ran over every configured pair.

    Attributes:
        ok: False if the copy raised.
        pairs: Number of copy pairs.
        files: Number of files written (0 on failure).
        duration_ms: Time spent copying.
        error: Error message when ``ok`` is False.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    ok: bool
    pairs: int
    files: int
    duration_ms: float
    error: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ReloadEvent:
    """A reload was broadcast to connected browsers.

    Attributes:
        clients_notified: Number of reload clients that received the message.
        trigger: What caused the reload (``"source"`` or ``"assets"``).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    clients_notified: int
    trigger: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """The serve session entered a new state."""

    state: SessionState
    timestamp_ns: int


type StackEvent = RebuildEvent | CopyEvent | ReloadEvent | LifecycleEvent


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
