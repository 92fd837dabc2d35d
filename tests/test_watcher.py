"""Tests for kiln.server.watcher — rebuild / recopy cycles and the watch task."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from watchfiles import Change

from kiln._errors import CopyError
from kiln.assets import CopyPair, copy_all_assets
from kiln.observability import CopyEvent, EventCollector, RebuildEvent, ReloadEvent
from kiln.server.hub import ReloadHub
from kiln.server.watcher import Watcher, WatchSpec, asset_watcher, source_watcher

from tests.conftest import FakeEngine, GatedEngine, wait_until


def _changes(path: Path, kind: Change = Change.modified) -> set[tuple[Change, str]]:
    return {(kind, str(path))}


@pytest.fixture
def two_pairs(tmp_path: Path) -> tuple[CopyPair, CopyPair]:
    """Two copy pairs, each source holding one file."""
    images = tmp_path / "images"
    fonts = tmp_path / "fonts"
    images.mkdir()
    fonts.mkdir()
    (images / "logo.svg").write_text("<svg>v1</svg>")
    (fonts / "mono.woff2").write_bytes(b"wOF2v1")
    dist = tmp_path / "dist"
    return (
        CopyPair(source=images, destination=dist / "images"),
        CopyPair(source=fonts, destination=dist / "fonts"),
    )


# ---------------------------------------------------------------------------
# Source watcher cycle
# ---------------------------------------------------------------------------


class TestSourceWatcher:
    """source_watcher — rebuild then reload."""

    def test_watches_source_dir(self, tmp_path: Path, collector: EventCollector) -> None:
        watcher = source_watcher(tmp_path / "src", FakeEngine(), ReloadHub(), collector)
        assert watcher.spec.paths == (tmp_path / "src",)
        assert watcher.spec.name == "source"

    @pytest.mark.asyncio
    async def test_success_rebuilds_and_broadcasts(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = FakeEngine()
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)

        await watcher.spec.handler(_changes(tmp_path / "main.ts"))

        assert engine.calls == 1
        assert client.queue.qsize() == 1
        (reload,) = collector.log.of_type(ReloadEvent)
        assert reload.clients_notified == 1
        assert reload.trigger == "source"

    @pytest.mark.asyncio
    async def test_failure_suppresses_broadcast(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = FakeEngine(fail_after=0)
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)

        await watcher.spec.handler(_changes(tmp_path / "main.ts"))

        assert client.queue.empty()
        assert collector.log.of_type(ReloadEvent) == []
        (rebuild,) = collector.log.of_type(RebuildEvent)
        assert rebuild.ok is False
        assert "Expected ';'" in rebuild.error

    @pytest.mark.asyncio
    async def test_recovers_after_failure(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = AsyncMock()
        engine.rebuild.side_effect = [RuntimeError("syntax"), None]
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)

        await watcher.spec.handler(_changes(tmp_path / "main.ts"))
        await watcher.spec.handler(_changes(tmp_path / "main.ts"))

        assert client.queue.qsize() == 1
        assert [e.ok for e in collector.log.of_type(RebuildEvent)] == [False, True]

    @pytest.mark.asyncio
    async def test_each_batch_is_a_cycle(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = FakeEngine()
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)

        for kind in (Change.added, Change.modified, Change.deleted):
            await watcher.spec.handler(_changes(tmp_path / "a.ts", kind))

        assert engine.calls == 3
        assert client.queue.qsize() == 3

    @pytest.mark.asyncio
    async def test_rebuild_after_hub_closed(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        """A cycle finishing after shutdown broadcasts to nobody, without error."""
        hub = ReloadHub()
        hub.connect()
        hub.close_all()
        watcher = source_watcher(tmp_path, FakeEngine(), hub, collector)

        await watcher.spec.handler(_changes(tmp_path / "main.ts"))

        (reload,) = collector.log.of_type(ReloadEvent)
        assert reload.clients_notified == 0


# ---------------------------------------------------------------------------
# Asset watcher cycle
# ---------------------------------------------------------------------------


class TestAssetWatcher:
    """asset_watcher — re-copy every pair then reload."""

    def test_watches_every_source(
        self, two_pairs: tuple[CopyPair, CopyPair], collector: EventCollector,
    ) -> None:
        watcher = asset_watcher(two_pairs, copy_all_assets, ReloadHub(), collector)
        assert watcher.spec.paths == (two_pairs[0].source, two_pairs[1].source)

    @pytest.mark.asyncio
    async def test_change_recopies_both_pairs_and_broadcasts_once(
        self, two_pairs: tuple[CopyPair, CopyPair], collector: EventCollector,
    ) -> None:
        images, fonts = two_pairs
        hub = ReloadHub()
        client = hub.connect()
        watcher = asset_watcher(two_pairs, copy_all_assets, hub, collector)

        # Both sources change on disk; only one change is reported.
        (images.source / "logo.svg").write_text("<svg>v2</svg>")
        (fonts.source / "mono.woff2").write_bytes(b"wOF2v2")
        await watcher.spec.handler(_changes(images.source / "logo.svg"))

        assert (images.destination / "logo.svg").read_text() == "<svg>v2</svg>"
        assert (fonts.destination / "mono.woff2").read_bytes() == b"wOF2v2"
        assert client.queue.qsize() == 1
        (copy,) = collector.log.of_type(CopyEvent)
        assert copy.ok and copy.pairs == 2 and copy.files == 2

    @pytest.mark.asyncio
    async def test_copier_receives_all_pairs(
        self, two_pairs: tuple[CopyPair, CopyPair], collector: EventCollector,
    ) -> None:
        copier = AsyncMock(return_value=2)
        watcher = asset_watcher(two_pairs, copier, ReloadHub(), collector)

        await watcher.spec.handler(_changes(two_pairs[1].source / "mono.woff2"))

        copier.assert_awaited_once_with(two_pairs)

    @pytest.mark.asyncio
    async def test_copy_failure_suppresses_broadcast(
        self, two_pairs: tuple[CopyPair, CopyPair], collector: EventCollector,
    ) -> None:
        copier = AsyncMock(side_effect=CopyError("disk full"))
        hub = ReloadHub()
        client = hub.connect()
        watcher = asset_watcher(two_pairs, copier, hub, collector)

        await watcher.spec.handler(_changes(two_pairs[0].source / "logo.svg"))

        assert client.queue.empty()
        (copy,) = collector.log.of_type(CopyEvent)
        assert copy.ok is False
        assert copy.error == "disk full"


# ---------------------------------------------------------------------------
# Watch task
# ---------------------------------------------------------------------------


class TestWatcherTask:
    """Watcher — awatch in a task, start/stop."""

    @pytest.mark.asyncio
    async def test_batches_reach_handler(self, tmp_path: Path) -> None:
        seen: list[set[tuple[Change, str]]] = []

        async def handler(changes: set[tuple[Change, str]]) -> None:
            seen.append(changes)

        batches = [_changes(tmp_path / "a.ts"), _changes(tmp_path / "b.ts", Change.added)]

        async def _fake_awatch(*_args: object, **_kwargs: object):  # noqa: ANN202
            for batch in batches:
                yield batch

        with patch("watchfiles.awatch", _fake_awatch):
            watcher = Watcher(WatchSpec(name="test", paths=(tmp_path,), handler=handler))
            watcher.start()
            await asyncio.sleep(0.05)
            await watcher.stop()

        assert seen == batches

    @pytest.mark.asyncio
    async def test_passes_paths_and_stop_event(self, tmp_path: Path) -> None:
        calls: list[tuple[tuple[object, ...], dict[str, object]]] = []

        async def _fake_awatch(*args: object, **kwargs: object):  # noqa: ANN202
            calls.append((args, kwargs))
            return
            yield

        spec = WatchSpec(name="test", paths=(tmp_path / "a", tmp_path / "b"), handler=AsyncMock())
        with patch("watchfiles.awatch", _fake_awatch):
            watcher = Watcher(spec, debounce=50)
            watcher.start()
            await asyncio.sleep(0.01)
            await watcher.stop()

        (args, kwargs) = calls[0]
        assert args == (tmp_path / "a", tmp_path / "b")
        assert isinstance(kwargs["stop_event"], asyncio.Event)
        assert kwargs["debounce"] == 50

    @pytest.mark.asyncio
    async def test_stop_ends_idle_watcher(self, tmp_path: Path) -> None:
        async def _idle_awatch(*_args: object, stop_event: asyncio.Event, **_kwargs: object):  # noqa: ANN202
            await stop_event.wait()
            return
            yield

        with patch("watchfiles.awatch", _idle_awatch):
            watcher = Watcher(WatchSpec(name="idle", paths=(tmp_path,), handler=AsyncMock()))
            watcher.start()
            await asyncio.sleep(0)
            assert watcher.is_running

            await watcher.stop()

        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_stop_before_start_is_safe(self, tmp_path: Path) -> None:
        watcher = Watcher(WatchSpec(name="never", paths=(tmp_path,), handler=AsyncMock()))
        await watcher.stop()
        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_real_file_change(self, tmp_path: Path) -> None:
        """Pre-existing files do not fire; a later write does."""
        (tmp_path / "existing.ts").write_text("export {}")
        fired = asyncio.Event()

        async def handler(_changes: object) -> None:
            fired.set()

        watcher = Watcher(WatchSpec(name="real", paths=(tmp_path,), handler=handler), debounce=50)
        watcher.start()
        try:
            await asyncio.sleep(0.5)
            assert not fired.is_set()

            (tmp_path / "existing.ts").write_text("export const x = 1")
            await asyncio.wait_for(fired.wait(), timeout=10)
        finally:
            await watcher.stop()


# ---------------------------------------------------------------------------
# Cycles in flight
# ---------------------------------------------------------------------------


def _batches_then_idle(*batches: set[tuple[Change, str]]):  # noqa: ANN202
    """An awatch stand-in: yield *batches*, then wait for the stop event."""

    async def _fake_awatch(*_args: object, stop_event: asyncio.Event, **_kwargs: object):  # noqa: ANN202
        for batch in batches:
            yield batch
        await stop_event.wait()

    return _fake_awatch


class TestCyclesInFlight:
    """Cycles run as their own tasks; stop() leaves them running."""

    @pytest.mark.asyncio
    async def test_stop_lets_running_rebuild_finish(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = GatedEngine()
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)

        with patch("watchfiles.awatch", _batches_then_idle(_changes(tmp_path / "main.ts"))):
            watcher.start()
            await asyncio.wait_for(engine.started.wait(), timeout=5)

            await watcher.stop()
            hub.close_all()

        assert not watcher.is_running
        assert watcher.pending == 1
        assert engine.finished == 0

        engine.release.set()
        await watcher.drain()

        assert engine.finished == 1
        assert watcher.pending == 0
        (reload,) = collector.log.of_type(ReloadEvent)
        assert reload.clients_notified == 0
        assert [event async for event in hub.stream(client)] == []

    @pytest.mark.asyncio
    async def test_batch_during_rebuild_starts_another(
        self, tmp_path: Path, collector: EventCollector,
    ) -> None:
        engine = GatedEngine()
        hub = ReloadHub()
        client = hub.connect()
        watcher = source_watcher(tmp_path, engine, hub, collector)
        batches = (_changes(tmp_path / "a.ts"), _changes(tmp_path / "b.ts"))

        with patch("watchfiles.awatch", _batches_then_idle(*batches)):
            watcher.start()
            await wait_until(lambda: engine.active == 2)
            assert watcher.pending == 2

            engine.release.set()
            await wait_until(lambda: watcher.pending == 0)
            await watcher.stop()

        assert engine.max_active == 2
        assert engine.finished == 2
        assert client.queue.qsize() == 2

    @pytest.mark.asyncio
    async def test_drain_without_cycles(self, tmp_path: Path) -> None:
        watcher = Watcher(WatchSpec(name="idle", paths=(tmp_path,), handler=AsyncMock()))
        await watcher.drain()
        assert watcher.pending == 0
