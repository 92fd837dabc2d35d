"""Shared test fixtures for kiln."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from kiln._errors import BuildError
from kiln.config import KilnConfig
from kiln.observability import EventCollector, EventLog


class FakeEngine:
    """Build engine double that counts rebuilds.

    Fails every call after the first *fail_after* calls when set.
    """

    def __init__(self, *, fail_after: int | None = None) -> None:
        self.calls = 0
        self.fail_after = fail_after

    async def rebuild(self) -> None:
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            msg = "Expected ';' but found '}'"
            raise BuildError(msg)


class GatedEngine:
    """Build engine double whose rebuilds wait until *release* is set.

    Tracks how many rebuilds are running at once and how many finished.
    """

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.finished = 0

    async def rebuild(self) -> None:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            await self.release.wait()
        finally:
            self.active -= 1
        self.finished += 1


async def wait_until(predicate, timeout: float = 5.0) -> None:  # noqa: ANN001
    """Yield to the loop until *predicate()* holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture
def collector() -> EventCollector:
    """A silent collector with its own log."""
    return EventCollector(EventLog(), echo=False)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a minimal project for testing.

    Returns the project root with src/, public/ and a dist/ output directory
    that already holds a built index.html, bundle and stylesheet.
    """
    src = tmp_path / "src"
    src.mkdir()
    (src / "main.ts").write_text("console.log('hello');\n")

    public = tmp_path / "public"
    public.mkdir()
    (public / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")

    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(
        "<!DOCTYPE html>\n<html>\n<body><h1>App</h1></body>\n</html>\n"
    )
    (dist / "main.js").write_text("console.log('hello');\n")
    (dist / "style.css").write_text("body { margin: 0; }\n")

    return tmp_path


@pytest.fixture
def config(project: Path) -> KilnConfig:
    """A watch-mode KilnConfig rooted at the test project."""
    return KilnConfig(root=project)
