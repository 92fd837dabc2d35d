"""Live-reload dev server — static files, reload hub, watchers, lifecycle."""

from kiln.server.hub import ReloadClient, ReloadHub
from kiln.server.session import ServeSession
from kiln.server.static import RELOAD_PATH, DevFiles, create_app
from kiln.server.watcher import Watcher, WatchSpec, asset_watcher, source_watcher

__all__ = [
    "RELOAD_PATH",
    "DevFiles",
    "ReloadClient",
    "ReloadHub",
    "ServeSession",
    "WatchSpec",
    "Watcher",
    "asset_watcher",
    "create_app",
    "source_watcher",
]
