"""File watchers — rebuild or recopy, then reload, on filesystem changes.

Two watchers run while serving with live reload:

- the **source watcher** observes the source tree and asks the build
  engine to rebuild;
- the **asset watcher** observes the ``from`` side of every copy pair and
  re-copies *all* pairs.

Both broadcast a reload when their action succeeds.  A failed rebuild or
copy is reported and the broadcast skipped; the watcher keeps running.

Each watcher runs ``watchfiles.awatch`` in an asyncio task.  ``awatch``
only reports changes made after it starts, so files that already exist
never trigger a cycle, and it yields changes in batches (its debounce
window); each batch starts one cycle as its own task.  Cycles are not
queued behind each other: a batch arriving during a long rebuild starts a
second rebuild, and the build engine decides how to order them.

Stopping a watcher ends the ``awatch`` loop only.  Cycles already running
are left to finish; ``drain()`` waits for them.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from kiln._types import AssetCopier, ChangeHandler, ChangeSet
    from kiln.assets import CopyPair
    from kiln.engine import BuildEngine
    from kiln.observability.collector import EventCollector
    from kiln.server.hub import ReloadHub


@dataclass(frozen=True, slots=True)
class WatchSpec:
    """Paths to observe and the coroutine to run when they change.

    Attributes:
        name: Short label used for the task name and reload trigger.
        paths: Files or directories to watch (recursively).
        handler: Called with each batch of changes.

    """

    name: str
    paths: tuple[Path, ...]
    handler: ChangeHandler


class Watcher:
    """Runs ``watchfiles.awatch`` for one :class:`WatchSpec` in a task.

    Args:
        spec: What to watch and what to do about it.
        debounce: Milliseconds ``awatch`` waits to group changes into a batch.

    """

    def __init__(self, spec: WatchSpec, *, debounce: int = 300) -> None:
        self._spec = spec
        self._debounce = debounce
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[None]] = set()
        self._batches = 0

    @property
    def spec(self) -> WatchSpec:
        return self._spec

    @property
    def is_running(self) -> bool:
        """Whether the watch task is active."""
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Number of cycles still running."""
        return len(self._cycles)

    def start(self) -> None:
        """Start watching on the running event loop."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=f"kiln-{self._spec.name}-watcher")

    async def stop(self) -> None:
        """Stop watching and wait for the ``awatch`` loop to end.

        Cycles already running are not cancelled; see :meth:`drain`.
        """
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def drain(self) -> None:
        """Wait for every running cycle to finish."""
        while self._cycles:
            await asyncio.gather(*self._cycles, return_exceptions=True)

    async def _run(self) -> None:
        from watchfiles import awatch

        async for changes in awatch(
            *self._spec.paths,
            stop_event=self._stop_event,
            debounce=self._debounce,
        ):
            self._batches += 1
            cycle = asyncio.create_task(
                self._spec.handler(changes),
                name=f"kiln-{self._spec.name}-cycle-{self._batches}",
            )
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycles.discard)


def source_watcher(
    source_dir: Path,
    engine: BuildEngine,
    hub: ReloadHub,
    collector: EventCollector,
) -> Watcher:
    """Watch *source_dir*; rebuild and reload on every change batch."""

    async def on_source_change(changes: ChangeSet) -> None:  # noqa: ARG001
        t0 = time.perf_counter()
        try:
            await engine.rebuild()
        except Exception as exc:
            collector.record_rebuild(
                ok=False,
                duration_ms=(time.perf_counter() - t0) * 1000,
                error=str(exc),
            )
            return
        collector.record_rebuild(ok=True, duration_ms=(time.perf_counter() - t0) * 1000)
        collector.record_reload(hub.broadcast(), trigger="source")

    return Watcher(WatchSpec(name="source", paths=(source_dir,), handler=on_source_change))


def asset_watcher(
    pairs: Sequence[CopyPair],
    copier: AssetCopier,
    hub: ReloadHub,
    collector: EventCollector,
) -> Watcher:
    """Watch every pair's source; re-copy all pairs and reload on each batch."""
    pairs = tuple(pairs)

    async def on_asset_change(changes: ChangeSet) -> None:  # noqa: ARG001
        t0 = time.perf_counter()
        try:
            files = await copier(pairs)
        except Exception as exc:
            collector.record_copy(
                ok=False,
                pairs=len(pairs),
                duration_ms=(time.perf_counter() - t0) * 1000,
                error=str(exc),
            )
            return
        collector.record_copy(
            ok=True,
            pairs=len(pairs),
            files=files,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )
        collector.record_reload(hub.broadcast(), trigger="assets")

    paths = tuple(pair.source for pair in pairs)
    return Watcher(WatchSpec(name="assets", paths=paths, handler=on_asset_change))
