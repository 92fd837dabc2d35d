"""Serve session — the dev server lifecycle.

A :class:`ServeSession` wires the reload hub, the static file server and the
two watchers together and moves through four states::

    initializing ──> serving ──> shutting_down ──> stopped

*initializing*
    Copy every asset pair once, build once, create the app.  Any failure
    here propagates and the session never serves.
*serving*
    The listener is up.  With live reload on, both watchers are running.
*shutting_down*
    The listener has stopped accepting connections; watchers are stopped
    and the hub closes every reload stream.  A rebuild or copy in flight
    runs to completion; its reload goes nowhere.
*stopped*
    Terminal.  A new session needs a new ``ServeSession``.

The listener is pounce (via ``App.run``), which owns signal handling.  The
session hooks into Chirp's ``on_startup`` / ``on_shutdown`` so watchers are
started and stopped inside the server's event loop.  ``start_watching()``
and ``shutdown()`` can also be awaited directly.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from kiln._errors import ServeError
from kiln.assets import copy_all_assets
from kiln.observability import EventCollector
from kiln.server.hub import ReloadHub
from kiln.server.static import create_app
from kiln.server.watcher import Watcher, asset_watcher, source_watcher

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chirp import App

    from kiln._types import AssetCopier, SessionState
    from kiln.assets import CopyPair
    from kiln.config import KilnConfig
    from kiln.engine import BuildEngine


class ServeSession:
    """One run of the live-reload dev server.

    Args:
        config: Supplies the served root (``dist_path``), host, port, the
            watched source directory and the watch flag.
        engine: Build engine, created once and reused for every rebuild.
        pairs: Resolved asset copy pairs, fixed for the session.
        copier: Copies every pair; defaults to :func:`copy_all_assets`.
        collector: Event collector for status reporting.

    """

    def __init__(
        self,
        config: KilnConfig,
        engine: BuildEngine,
        pairs: Sequence[CopyPair] = (),
        *,
        copier: AssetCopier = copy_all_assets,
        collector: EventCollector | None = None,
    ) -> None:
        self._config = config
        self._engine = engine
        self._pairs = tuple(pairs)
        self._copier = copier
        self._collector = collector if collector is not None else EventCollector()
        self._hub = ReloadHub()
        self._watchers: list[Watcher] = []
        self._app: App | None = None
        self._state: SessionState = "initializing"
        self._prepared = False
        self._collector.record_state("initializing")

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def hub(self) -> ReloadHub:
        return self._hub

    @property
    def collector(self) -> EventCollector:
        return self._collector

    @property
    def watchers(self) -> tuple[Watcher, ...]:
        """Watchers created by ``start_watching()``."""
        return tuple(self._watchers)

    @property
    def app(self) -> App:
        """The Chirp app.  Available after ``prepare()``."""
        if self._app is None:
            msg = "ServeSession.app accessed before prepare()"
            raise ServeError(msg)
        return self._app

    # ----- initializing -----

    async def prepare(self) -> App:
        """Initial copy, initial build, and app creation.

        Raises:
            CopyError: If the initial asset copy fails.
            BuildError: If the initial build fails.
            ServeError: If the session was already prepared.

        """
        if self._prepared or self._state != "initializing":
            msg = f"Cannot prepare a session in state {self._state!r}"
            raise ServeError(msg)
        self._prepared = True

        t0 = time.perf_counter()
        files = await self._copier(self._pairs)
        self._collector.record_copy(
            ok=True,
            pairs=len(self._pairs),
            files=files,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )

        t0 = time.perf_counter()
        await self._engine.rebuild()
        self._collector.record_rebuild(ok=True, duration_ms=(time.perf_counter() - t0) * 1000)

        self._app = self._create_app()
        return self._app

    def _create_app(self) -> App:
        app = create_app(self._config.dist_path, self._hub if self._config.watch else None)

        @app.on_startup
        async def _start_session() -> None:
            await self.start_watching()

        @app.on_shutdown
        async def _stop_session() -> None:
            await self.shutdown()

        return app

    # ----- serving -----

    async def start_watching(self) -> None:
        """Enter *serving*; start both watchers when live reload is on.

        Must be called on the event loop that serves requests.
        """
        if self._state != "initializing" or self._app is None:
            msg = f"Cannot start serving from state {self._state!r}"
            raise ServeError(msg)

        if self._config.watch:
            self._watchers = self._create_watchers()
            for watcher in self._watchers:
                watcher.start()

        self._transition("serving")

    def _create_watchers(self) -> list[Watcher]:
        watchers: list[Watcher] = []
        if self._config.source_path.exists():
            watchers.append(source_watcher(
                self._config.source_path, self._engine, self._hub, self._collector,
            ))
        else:
            self._collector.record_warning(
                f"source directory {self._config.source_path} not found; not watching it"
            )

        if self._pairs:
            watchers.append(asset_watcher(
                self._pairs, self._copier, self._hub, self._collector,
            ))
        return watchers

    # ----- shutting down -----

    async def shutdown(self) -> None:
        """Stop watchers and close the hub, ending in *stopped*.

        Safe to call more than once.  A rebuild or copy already in flight
        is not aborted: the hub is closed first, then the session waits for
        the cycle to finish, so its broadcast reaches nobody.
        """
        if self._state in ("shutting_down", "stopped"):
            return
        self._transition("shutting_down")
        watchers, self._watchers = self._watchers, []
        try:
            await asyncio.gather(*(w.stop() for w in watchers))
        finally:
            self._hub.close_all()
            try:
                await asyncio.gather(*(w.drain() for w in watchers))
            finally:
                self._transition("stopped")

    # ----- whole lifecycle -----

    def run(self) -> None:
        """Prepare, serve until interrupted, shut down.

        Blocks until the server stops.

        Raises:
            CopyError: If the initial asset copy fails.
            BuildError: If the initial build fails.
            ServeError: If the listener cannot bind.

        """
        asyncio.run(self.prepare())
        self.serve_forever()

    def serve_forever(self) -> None:
        """Run the listener until a termination signal.  Requires ``prepare()``.

        Raises:
            ServeError: If the listener cannot bind.

        """
        app = self.app
        try:
            app.run(host=self._config.host, port=self._config.port)
        except OSError as exc:
            msg = f"Could not listen on {self._config.host}:{self._config.port}: {exc}"
            raise ServeError(msg) from exc
        finally:
            if self._state != "stopped":
                if self._state != "shutting_down":
                    self._transition("shutting_down")
                self._hub.close_all()
                self._transition("stopped")

    def _transition(self, state: SessionState) -> None:
        self._state = state
        self._collector.record_state(state)
