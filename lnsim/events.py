"""In-process change notifications keyed by network id.

Subscribers get their own bounded queue. Publishing never blocks the
lifecycle operation that emits the event: when a subscriber falls behind,
its oldest event is dropped.

Usage:
    bus = NetworkEventBus()

    async for event in bus.subscribe(network_id):
        ...
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from typing import AsyncGenerator, Iterator

from lnsim.config import settings
from lnsim.schemas import NetworkEvent
from lnsim.state import NetworkEventType

logger = logging.getLogger(__name__)


class NetworkEventBus:
    """Fan-out of NetworkEvent objects to per-network subscribers."""

    def __init__(self, queue_size: int | None = None):
        self._queue_size = queue_size or settings.event_queue_size
        self._subscribers: dict[int, set[asyncio.Queue[NetworkEvent]]] = {}
        self._lock = threading.Lock()

    def subscriber_count(self, network_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(network_id, ()))

    @contextmanager
    def subscription(self, network_id: int) -> Iterator[asyncio.Queue[NetworkEvent]]:
        """Register a queue for ``network_id`` for the duration of the block."""
        queue: asyncio.Queue[NetworkEvent] = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.setdefault(network_id, set()).add(queue)
        try:
            yield queue
        finally:
            with self._lock:
                queues = self._subscribers.get(network_id)
                if queues is not None:
                    queues.discard(queue)
                    if not queues:
                        del self._subscribers[network_id]

    async def subscribe(self, network_id: int) -> AsyncGenerator[NetworkEvent, None]:
        """Yield events for a network until the network is removed."""
        with self.subscription(network_id) as queue:
            while True:
                event = await queue.get()
                yield event
                if event.type == NetworkEventType.NETWORK_REMOVED:
                    return

    def publish(self, event: NetworkEvent) -> int:
        """Deliver ``event`` to every subscriber of its network.

        Returns:
            Number of subscribers the event was queued for
        """
        with self._lock:
            queues = list(self._subscribers.get(event.network_id, ()))

        for queue in queues:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning(
                    f"Event queue full for network {event.network_id}, dropped oldest event"
                )
            queue.put_nowait(event)
        return len(queues)
