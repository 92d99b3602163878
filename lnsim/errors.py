"""Errors raised by the lifecycle core.

Validation errors are raised before any node is touched. DriverError is
raised after the fact and carries the network as it was left.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lnsim.models import Network


class LifecycleError(Exception):
    """Base class for all lifecycle errors."""


class NotFoundError(LifecycleError):
    """Unknown network (or node) id."""

    def __init__(self, network_id: int, node_id: int | None = None):
        self.network_id = network_id
        self.node_id = node_id
        if node_id is None:
            message = f"Network {network_id} not found"
        else:
            message = f"Node {node_id} not found in network {network_id}"
        super().__init__(message)


class InvalidNameError(LifecycleError):
    """Network name is empty or whitespace-only."""

    def __init__(self, name: str):
        self.name = name
        super().__init__("Network name must not be empty")


class InvalidTopologyError(LifecycleError):
    """Topology cannot form a network."""


class NetworkStateError(LifecycleError):
    """Operation not allowed in the network's current status."""

    def __init__(self, network_id: int, status: str, message: str | None = None):
        self.network_id = network_id
        self.status = status
        super().__init__(message or f"Network {network_id} is {status}")


class AlreadyRunningError(NetworkStateError):
    """Start requested for a network that is started or starting."""

    def __init__(self, network_id: int, status: str):
        super().__init__(network_id, status, f"Network {network_id} is already {status}")


class NetworkRunningError(NetworkStateError):
    """Remove requested for a network that is not stopped."""

    def __init__(self, network_id: int, status: str):
        super().__init__(
            network_id,
            status,
            f"Network {network_id} must be stopped before it can be removed (currently {status})",
        )


class OperationInProgressError(LifecycleError):
    """Another lifecycle operation is already running for this network."""

    def __init__(self, network_id: int, operation: str):
        self.network_id = network_id
        self.operation = operation
        super().__init__(f"Network {network_id} is busy: {operation} in progress")


class MissingImagesError(LifecycleError):
    """Images required by the network are not available."""

    def __init__(self, network_id: int, images: set[str]):
        self.network_id = network_id
        self.images = images
        super().__init__(
            f"Network {network_id} is missing images: {', '.join(sorted(images))}"
        )


class ImageInventoryError(LifecycleError):
    """The image inventory could not be read (e.g. Docker daemon unreachable)."""


class InvalidTransitionError(LifecycleError):
    """Node status change not permitted by the state machine."""

    def __init__(self, node_id: int, current: str, target: str):
        self.node_id = node_id
        self.current = current
        self.target = target
        super().__init__(f"Node {node_id} cannot go from {current} to {target}")


@dataclass
class NodeFailure:
    """A single node that failed during a driver batch."""

    node_id: int
    node_name: str
    message: str


class DriverError(LifecycleError):
    """One or more driver calls failed.

    node_id is the first failing node. The affected nodes are left in error
    and nothing is rolled back; ``network`` is the network in that state.
    """

    def __init__(
        self,
        failures: list[NodeFailure],
        network: "Network | None" = None,
        operation: str = "",
    ):
        if not failures:
            raise ValueError("DriverError requires at least one failure")
        self.failures = failures
        self.network = network
        self.operation = operation
        self.node_id = failures[0].node_id
        detail = "; ".join(f"{f.node_name}: {f.message}" for f in failures)
        prefix = f"{operation} failed" if operation else "Driver failure"
        super().__init__(f"{prefix} for {len(failures)} node(s): {detail}")
