"""Single-flight locking for per-network lifecycle operations.

At most one of start/stop/rename/remove runs per network at a time. A second
request fails immediately with OperationInProgressError instead of queuing;
callers wait for the first operation to settle and retry.

The internal mutex only guards the in-flight table itself, so status readers
never wait on an operation that is blocked in a driver call.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from lnsim.errors import OperationInProgressError

logger = logging.getLogger(__name__)


class SingleFlight:
    """Tracks which network ids have an operation in flight."""

    def __init__(self):
        self._in_flight: dict[int, str] = {}
        self._mutex = threading.Lock()

    def acquire(self, network_id: int, operation: str) -> None:
        """Mark ``operation`` as in flight for ``network_id``.

        Raises:
            OperationInProgressError: another operation holds the network
        """
        with self._mutex:
            current = self._in_flight.get(network_id)
            if current is not None:
                logger.debug(
                    f"Rejected {operation} on network {network_id}: {current} in progress"
                )
                raise OperationInProgressError(network_id, current)
            self._in_flight[network_id] = operation
        logger.debug(f"Acquired {operation} lock for network {network_id}")

    def release(self, network_id: int) -> None:
        """Clear the in-flight marker. Safe to call when not held."""
        with self._mutex:
            operation = self._in_flight.pop(network_id, None)
        if operation is not None:
            logger.debug(f"Released {operation} lock for network {network_id}")

    def current(self, network_id: int) -> str | None:
        """Name of the operation in flight for ``network_id``, if any."""
        with self._mutex:
            return self._in_flight.get(network_id)

    @contextmanager
    def hold(self, network_id: int, operation: str) -> Iterator[None]:
        """Context manager form of acquire/release.

        Usage:
            with flights.hold(network_id, "start"):
                await ...
        """
        self.acquire(network_id, operation)
        try:
            yield
        finally:
            self.release(network_id)
