"""Reload hub — pushes reload messages to connected browsers over SSE.

Each browser tab holding an ``EventSource`` on ``/__reload`` is one
:class:`ReloadClient`.  The hub owns the list of connected clients.  A
broadcast puts one ``data: reload`` event on every client's queue; the
client's ``EventStream`` generator writes it to the socket.

A client is removed from the list in the ``finally`` block of its
generator, which runs when the connection closes, so a closed client never
receives a later broadcast.  Everything runs on the server's event loop;
no locking is needed.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from chirp import EventStream

    from kiln._types import ClientID

# Reloads are idempotent; a client this far behind only needs one of them
_QUEUE_SIZE = 16

# Queued to end a client's stream
_CLOSE = object()


@dataclass(frozen=True, slots=True)
class ReloadClient:
    """A connected reload subscriber.

    Attributes:
        client_id: Unique identifier for this connection.
        queue: Pending events for the client's stream generator.

    """

    client_id: ClientID
    queue: asyncio.Queue[Any] = field(
        default_factory=lambda: asyncio.Queue(maxsize=_QUEUE_SIZE),
        compare=False,
        hash=False,
    )


class ReloadHub:
    """Owns the connected reload clients.

    ``register`` adds a client, ``broadcast`` sends every client one
    reload, ``close_all`` ends every stream.  Once closed the hub stays
    closed: broadcasts become no-ops and newly registered clients are
    ended immediately.

    """

    def __init__(self) -> None:
        self._clients: list[ReloadClient] = []
        self._closed = False

    @property
    def client_count(self) -> int:
        """Number of connected clients."""
        return len(self._clients)

    @property
    def closed(self) -> bool:
        """Whether ``close_all()`` has been called."""
        return self._closed

    def connect(self) -> ReloadClient:
        """Create and register a new client."""
        client = ReloadClient(client_id=str(uuid.uuid4()))
        self.register(client)
        return client

    def register(self, client: ReloadClient) -> None:
        """Add *client* to the broadcast list.  Registering twice is a no-op."""
        if self._closed:
            _offer(client, _CLOSE)
            return
        if client not in self._clients:
            self._clients.append(client)

    def unregister(self, client: ReloadClient) -> None:
        """Remove *client*.  Safe to call for clients that are not registered."""
        if client in self._clients:
            self._clients.remove(client)

    def broadcast(self) -> int:
        """Send one reload message to every registered client.

        Returns:
            Number of clients the message was queued for.

        """
        if self._closed:
            return 0

        from chirp import SSEEvent

        event = SSEEvent(data="reload")
        count = 0
        for client in tuple(self._clients):
            try:
                client.queue.put_nowait(event)
            except asyncio.QueueFull:
                continue  # already has reloads pending
            count += 1
        return count

    def close_all(self) -> None:
        """End every open stream and clear the list.  Idempotent."""
        self._closed = True
        clients, self._clients = self._clients, []
        for client in clients:
            _offer(client, _CLOSE)

    async def stream(self, client: ReloadClient) -> AsyncIterator[Any]:
        """Yield events queued for *client* until it is closed.

        Used as the generator for Chirp's ``EventStream``.  The client is
        unregistered when the generator finishes for any reason: hub
        shutdown, client disconnect, or task cancellation.

        Catches ``CancelledError`` and ``GeneratorExit`` so disconnects do
        not leak ``StopAsyncIteration`` noise into the event loop.

        """
        try:
            while True:
                event = await client.queue.get()
                if event is _CLOSE:
                    return
                yield event
        except (asyncio.CancelledError, GeneratorExit):
            return
        finally:
            self.unregister(client)

    def response(self) -> EventStream:
        """Register a new client and return its ``text/event-stream`` response."""
        from chirp import EventStream

        return EventStream(self.stream(self.connect()))


def _offer(client: ReloadClient, item: object) -> None:
    """Queue *item*, dropping the oldest pending event if the queue is full."""
    try:
        client.queue.put_nowait(item)
    except asyncio.QueueFull:
        client.queue.get_nowait()
        client.queue.put_nowait(item)
