"""Event collector — records dev-server events and reports them on stderr.

The collector is the single place the server reports what it is doing.
Each ``record_*`` method stores a frozen event in the :class:`EventLog`
and prints a one-line status message, so the terminal shows rebuilds,
copies and errors as they happen while tests can inspect the log.

Thread Safety:
    The collector delegates storage to ``EventLog`` which is internally
    locked.  Printing is line-at-a-time.

"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

from kiln.banner import DIM, GREEN, RED, YELLOW, style
from kiln.observability.events import (
    CopyEvent,
    LifecycleEvent,
    RebuildEvent,
    ReloadEvent,
    now_ns,
)
from kiln.observability.log import EventLog

if TYPE_CHECKING:
    from kiln._types import SessionState


class EventCollector:
    """Records events into an :class:`EventLog` and echoes them to a stream.

    Args:
        log: The EventLog to store events in.
        echo: Print status lines.  Disable for silent (test) use.
        stream: Where to print; ``sys.stderr`` when None.

    """

    __slots__ = ("_echo", "_log", "_stream")

    def __init__(
        self,
        log: EventLog | None = None,
        *,
        echo: bool = True,
        stream: TextIO | None = None,
    ) -> None:
        self._log = log if log is not None else EventLog()
        self._echo = echo
        self._stream = stream

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    def record_rebuild(self, *, ok: bool, duration_ms: float, error: str = "") -> None:
        """Record one run of the build engine."""
        self._log.append(RebuildEvent(
            ok=ok, duration_ms=duration_ms, error=error, timestamp_ns=now_ns(),
        ))
        if ok:
            self._print(f"  {style('✓', GREEN)} Rebuilt source {style(f'{duration_ms:.0f}ms', DIM)}")
        else:
            self._print(f"  {style('✗ Build error:', RED)} {error}")

    def record_copy(
        self,
        *,
        ok: bool,
        pairs: int,
        files: int = 0,
        duration_ms: float = 0.0,
        error: str = "",
    ) -> None:
        """Record one run of the asset copier."""
        self._log.append(CopyEvent(
            ok=ok,
            pairs=pairs,
            files=files,
            duration_ms=duration_ms,
            error=error,
            timestamp_ns=now_ns(),
        ))
        if ok:
            label = "file" if files == 1 else "files"
            self._print(
                f"  {style('✓', GREEN)} Assets copied "
                f"{style(f'{files} {label} in {duration_ms:.0f}ms', DIM)}"
            )
        else:
            self._print(f"  {style('✗ Copy error:', RED)} {error}")

    def record_reload(self, clients_notified: int, trigger: str) -> None:
        """Record a reload broadcast."""
        self._log.append(ReloadEvent(
            clients_notified=clients_notified, trigger=trigger, timestamp_ns=now_ns(),
        ))

    def record_state(self, state: SessionState) -> None:
        """Record a serve-session state transition."""
        self._log.append(LifecycleEvent(state=state, timestamp_ns=now_ns()))
        if state == "shutting_down":
            self._print("\n  Shutting down...")

    def record_warning(self, message: str) -> None:
        """Report a non-fatal problem.  Warnings are printed, not logged."""
        self._print(f"  {style('!', YELLOW)} {message}")

    def _print(self, line: str) -> None:
        if self._echo:
            print(line, file=self._stream or sys.stderr)
