"""Network lifecycle orchestration.

The controller is the only component that calls the node driver and the
only one that changes node statuses. Every operation follows the same
order: look the network up, take the single-flight lock, validate, then
touch nodes. Validation failures therefore never leave partial state.

Start runs in two phases: all bitcoind nodes concurrently, then (once each
of them is ready or has failed) all lightning nodes concurrently. Stop runs
the phases in reverse. Driver failures leave the node in error and are
reported together in one DriverError at the end; nothing is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
import time

from lnsim.config import Settings, settings as default_settings
from lnsim.drivers.base import NodeDriver
from lnsim.errors import (
    AlreadyRunningError,
    DriverError,
    MissingImagesError,
    NetworkRunningError,
    NetworkStateError,
    NodeFailure,
    NotFoundError,
)
from lnsim.events import NetworkEventBus
from lnsim.images import ImageProvider, missing_images
from lnsim.locks import SingleFlight
from lnsim.metrics import network_operations, node_operation_duration, node_operation_errors
from lnsim.models import Network, Node
from lnsim.registry import NetworkRegistry
from lnsim.schemas import NetworkEvent
from lnsim.state import NetworkEventType, NetworkStatus, NodeStatus
from lnsim.state_machine import NetworkStateMachine

logger = logging.getLogger(__name__)


class LifecycleController:
    """Start, stop, rename and remove networks held by a registry."""

    def __init__(
        self,
        registry: NetworkRegistry,
        driver: NodeDriver,
        *,
        events: NetworkEventBus | None = None,
        config: Settings | None = None,
    ):
        self._registry = registry
        self._driver = driver
        self._events = events
        self._config = config or default_settings
        self._flights = SingleFlight()

    @property
    def registry(self) -> NetworkRegistry:
        return self._registry

    @property
    def driver(self) -> NodeDriver:
        return self._driver

    @property
    def flights(self) -> SingleFlight:
        return self._flights

    # ------------------------------------------------------------------
    # Status changes and notifications
    # ------------------------------------------------------------------

    def _publish(self, event: NetworkEvent) -> None:
        if self._events is not None:
            self._events.publish(event)

    def _transition(self, network: Network, node: Node, target: NodeStatus) -> None:
        """Change one node's status and announce the result."""
        previous = network.transition_node(node.id, target)
        logger.debug(f"Network {network.id} node {node.name} -> {target.value}")
        self._publish(NetworkEvent(
            type=NetworkEventType.NODE_STATUS,
            network_id=network.id,
            network_status=network.status,
            node_id=node.id,
            node_name=node.name,
            node_status=node.status,
        ))

        current = network.status
        if current != previous:
            logger.info(f"Network {network.id} '{network.name}' is now {current.value}")
            self._publish(NetworkEvent(
                type=NetworkEventType.NETWORK_STATUS,
                network_id=network.id,
                network_status=current,
            ))

    def _locate(self, network_id: int) -> Network:
        """Re-read the network after taking the lock; it may have been removed."""
        network = self._registry.find(network_id)
        if network is None:
            raise NotFoundError(network_id)
        return network

    def _finish(self, operation: str, network: Network, failures: list[NodeFailure]) -> Network:
        if failures:
            network_operations.labels(operation=operation, outcome="error").inc()
            logger.warning(
                f"{operation.capitalize()} of network {network.id} finished with "
                f"{len(failures)} failed node(s); status {network.status.value}"
            )
            raise DriverError(failures, network=network, operation=operation)
        network_operations.labels(operation=operation, outcome="ok").inc()
        logger.info(f"{operation.capitalize()} of network {network.id} complete")
        return network

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def check_images(self, network_id: int, image_provider: ImageProvider) -> set[str]:
        """Images the network needs that the provider does not have right now."""
        network = self._registry.get(network_id)
        available = await image_provider.available_images()
        return missing_images(network, available)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start(self, network_id: int, image_provider: ImageProvider | None = None) -> Network:
        """Start every node of a stopped network.

        Raises:
            NotFoundError: unknown network
            OperationInProgressError: another operation is running
            AlreadyRunningError: network is started or starting
            NetworkStateError: network is in error (stop it first)
            MissingImagesError: required images unavailable and require_images is set
            ImageInventoryError: the image provider could not be read
            DriverError: one or more nodes failed to start
        """
        self._registry.get(network_id)
        with self._flights.hold(network_id, "start"):
            network = self._locate(network_id)
            status = network.status
            if NetworkStateMachine.is_running(status):
                raise AlreadyRunningError(network_id, status.value)
            if status != NetworkStatus.STOPPED:
                raise NetworkStateError(
                    network_id,
                    status.value,
                    f"Network {network_id} is {status.value}; stop it before starting again",
                )

            if image_provider is not None:
                missing = missing_images(network, await image_provider.available_images())
                if missing and self._config.require_images:
                    raise MissingImagesError(network_id, missing)
                if missing:
                    logger.warning(
                        f"Starting network {network_id} with missing images: "
                        f"{', '.join(sorted(missing))}"
                    )

            logger.info(f"Starting network {network.id} '{network.name}' ({network.summary})")
            for node in network.nodes:
                self._transition(network, node, NodeStatus.STARTING)

            failures = await self._start_batch(network, network.bitcoin_nodes)

            failed_backends = {f.node_name for f in failures}
            lightning: list[Node] = []
            for node in network.lightning_nodes:
                if node.backend in failed_backends:
                    self._transition(network, node, NodeStatus.ERROR)
                    failures.append(NodeFailure(
                        node_id=node.id,
                        node_name=node.name,
                        message=f"Backend {node.backend} unavailable",
                    ))
                else:
                    lightning.append(node)

            failures += await self._start_batch(network, lightning)
            return self._finish("start", network, failures)

    async def _start_batch(self, network: Network, nodes: list[Node]) -> list[NodeFailure]:
        if not nodes:
            return []
        results = await asyncio.gather(*(self._start_node(network, node) for node in nodes))
        return [failure for failure in results if failure is not None]

    async def _start_node(self, network: Network, node: Node) -> NodeFailure | None:
        started_at = time.monotonic()
        error: str | None = None
        try:
            result = await self._driver.start_node(node)
            if not result.success:
                error = result.error or "Driver reported start failure"
            elif not result.ready and not await self._wait_ready(node):
                error = f"Not ready after {self._config.node_ready_timeout:g}s"
        except Exception as e:
            logger.error(f"Driver raised while starting {node.name} in network {network.id}: {e}")
            error = str(e) or type(e).__name__

        elapsed = time.monotonic() - started_at
        if error is None:
            node_operation_duration.labels(operation="start", status="success").observe(elapsed)
            self._transition(network, node, NodeStatus.STARTED)
            logger.info(f"Node {node.name} in network {network.id} started in {elapsed:.1f}s")
            return None

        node_operation_duration.labels(operation="start", status="error").observe(elapsed)
        node_operation_errors.labels(operation="start").inc()
        self._transition(network, node, NodeStatus.ERROR)
        logger.warning(f"Node {node.name} in network {network.id} failed to start: {error}")
        return NodeFailure(node_id=node.id, node_name=node.name, message=error)

    async def _wait_ready(self, node: Node) -> bool:
        """Poll the driver until the node reports ready or the timeout passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.node_ready_timeout
        interval = self._config.node_ready_poll_interval
        while True:
            if await self._driver.is_ready(node):
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(interval, remaining))

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    async def stop(self, network_id: int) -> Network:
        """Converge every node to stopped, whatever the current status.

        Lightning nodes stop first, then bitcoind nodes. A failure in the
        first phase does not prevent the second.

        Raises:
            NotFoundError: unknown network
            OperationInProgressError: another operation is running
            DriverError: one or more nodes failed to stop
        """
        self._registry.get(network_id)
        with self._flights.hold(network_id, "stop"):
            network = self._locate(network_id)
            logger.info(f"Stopping network {network.id} '{network.name}'")
            failures = await self._stop_batch(network, network.lightning_nodes)
            failures += await self._stop_batch(network, network.bitcoin_nodes)
            return self._finish("stop", network, failures)

    async def _stop_batch(self, network: Network, nodes: list[Node]) -> list[NodeFailure]:
        pending = [node for node in nodes if node.status != NodeStatus.STOPPED]
        if not pending:
            return []
        for node in pending:
            self._transition(network, node, NodeStatus.STOPPING)
        results = await asyncio.gather(*(self._stop_node(network, node) for node in pending))
        return [failure for failure in results if failure is not None]

    async def _stop_node(self, network: Network, node: Node) -> NodeFailure | None:
        started_at = time.monotonic()
        error: str | None = None
        try:
            result = await self._driver.stop_node(node)
            if not result.success:
                error = result.error or "Driver reported stop failure"
        except Exception as e:
            logger.error(f"Driver raised while stopping {node.name} in network {network.id}: {e}")
            error = str(e) or type(e).__name__

        elapsed = time.monotonic() - started_at
        if error is None:
            node_operation_duration.labels(operation="stop", status="success").observe(elapsed)
            self._transition(network, node, NodeStatus.STOPPED)
            return None

        node_operation_duration.labels(operation="stop", status="error").observe(elapsed)
        node_operation_errors.labels(operation="stop").inc()
        self._transition(network, node, NodeStatus.ERROR)
        logger.warning(f"Node {node.name} in network {network.id} failed to stop: {error}")
        return NodeFailure(node_id=node.id, node_name=node.name, message=error)

    # ------------------------------------------------------------------
    # Rename / remove
    # ------------------------------------------------------------------

    async def rename(self, network_id: int, new_name: str) -> Network:
        """Rename a network in any status.

        Raises:
            NotFoundError, OperationInProgressError, InvalidNameError
        """
        self._registry.get(network_id)
        with self._flights.hold(network_id, "rename"):
            network = self._locate(network_id)
            old_name = network.name
            network.rename(new_name)
            logger.info(f"Renamed network {network_id} '{old_name}' -> '{network.name}'")
            self._publish(NetworkEvent(
                type=NetworkEventType.NETWORK_RENAMED,
                network_id=network_id,
                network_status=network.status,
                name=network.name,
            ))
            return network

    async def remove(self, network_id: int) -> Network:
        """Release every node and delete a stopped network. Irreversible.

        The caller must stop the network first and is responsible for
        having confirmed the deletion with the user.

        Raises:
            NotFoundError: unknown network
            OperationInProgressError: another operation is running
            NetworkRunningError: network is not stopped
            DriverError: a node could not be released; the network is kept
        """
        self._registry.get(network_id)
        with self._flights.hold(network_id, "remove"):
            network = self._locate(network_id)
            status = network.status
            if status != NetworkStatus.STOPPED:
                raise NetworkRunningError(network_id, status.value)

            logger.info(f"Removing network {network.id} '{network.name}'")
            results = await asyncio.gather(
                *(self._release_node(network, node) for node in network.nodes)
            )
            failures = [failure for failure in results if failure is not None]
            if failures:
                network_operations.labels(operation="remove", outcome="error").inc()
                raise DriverError(failures, network=network, operation="remove")

            self._registry.remove(network_id)
            network_operations.labels(operation="remove", outcome="ok").inc()
            self._publish(NetworkEvent(
                type=NetworkEventType.NETWORK_REMOVED,
                network_id=network_id,
                name=network.name,
            ))
            return network

    async def _release_node(self, network: Network, node: Node) -> NodeFailure | None:
        try:
            result = await self._driver.release_node(node)
        except Exception as e:
            logger.error(f"Driver raised while releasing {node.name} in network {network.id}: {e}")
            return NodeFailure(node_id=node.id, node_name=node.name, message=str(e) or type(e).__name__)
        if not result.success:
            node_operation_errors.labels(operation="release").inc()
            return NodeFailure(
                node_id=node.id,
                node_name=node.name,
                message=result.error or "Driver reported release failure",
            )
        return None
