"""Observability — what the dev server did, and when.

Records rebuilds, asset copies, reload broadcasts and lifecycle
transitions as frozen events in a bounded log, and reports them on stderr.

Quick Start:
    >>> from kiln.observability import EventCollector, EventLog
    >>> collector = EventCollector(EventLog(), echo=False)
    >>> collector.record_reload(2, trigger="source")

"""

from kiln.observability.collector import EventCollector
from kiln.observability.events import (
    CopyEvent,
    LifecycleEvent,
    RebuildEvent,
    ReloadEvent,
    StackEvent,
    now_ns,
)
from kiln.observability.log import EventLog

__all__ = [
    "CopyEvent",
    "EventCollector",
    "EventLog",
    "LifecycleEvent",
    "RebuildEvent",
    "ReloadEvent",
    "StackEvent",
    "now_ns",
]
