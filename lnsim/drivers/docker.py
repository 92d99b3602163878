"""Docker implementation of the node process driver.

Each simulated network gets its own bridge network; containers join it with
their node name as alias, so lnd reaches its backend as ``backend1:18443``.

All Docker SDK calls are blocking and run in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from lnsim.config import settings
from lnsim.drivers.base import NodeActionResult, NodeDriver
from lnsim.drivers.kinds import get_kind_config
from lnsim.drivers.naming import (
    LABEL_NETWORK_ID,
    LABEL_NODE_ID,
    LABEL_NODE_KIND,
    LABEL_NODE_NAME,
    docker_container_name,
    docker_network_name,
)
from lnsim.models import Node

logger = logging.getLogger(__name__)


class DockerNodeDriver(NodeDriver):
    """Runs each node as a Docker container."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._docker = client
        self._network_locks: dict[int, asyncio.Lock] = {}

    @property
    def name(self) -> str:
        return "docker"

    @property
    def docker(self) -> docker.DockerClient:
        """Docker client, created on first use."""
        if self._docker is None:
            self._docker = docker.from_env()
        return self._docker

    def _labels(self, node: Node) -> dict[str, str]:
        return {
            LABEL_NETWORK_ID: str(node.network_id),
            LABEL_NODE_ID: str(node.id),
            LABEL_NODE_NAME: node.name,
            LABEL_NODE_KIND: node.kind.value,
        }

    def _container_config(self, node: Node) -> dict[str, Any]:
        config = get_kind_config(node.kind)
        return {
            "image": node.image,
            "name": docker_container_name(node.network_id, node.name),
            "hostname": node.name,
            "command": config.command(node),
            "labels": self._labels(node),
        }

    async def _get_container(self, container_name: str):
        try:
            return await asyncio.to_thread(self.docker.containers.get, container_name)
        except NotFound:
            return None

    async def _ensure_network(self, network_id: int) -> str:
        """Create the bridge network for a simulated network if needed."""
        network_name = docker_network_name(network_id)
        try:
            await asyncio.to_thread(self.docker.networks.get, network_name)
        except NotFound:
            await asyncio.to_thread(
                self.docker.networks.create,
                network_name,
                driver="bridge",
                labels={LABEL_NETWORK_ID: str(network_id)},
            )
            logger.info(f"Created Docker network {network_name}")
        return network_name

    async def _create_container(self, node: Node):
        network_name = await self._ensure_network(node.network_id)
        container = await asyncio.to_thread(
            self.docker.containers.create, **self._container_config(node)
        )
        # Attach with the node name as alias so peers resolve it by name
        docker_network = await asyncio.to_thread(self.docker.networks.get, network_name)
        await asyncio.to_thread(docker_network.connect, container, aliases=[node.name])
        logger.info(f"Created container {container.name} ({node.image})")
        return container

    async def start_node(self, node: Node) -> NodeActionResult:
        container_name = docker_container_name(node.network_id, node.name)
        try:
            container = await self._get_container(container_name)
            if container is None:
                container = await self._create_container(node)

            if container.status != "running":
                await asyncio.to_thread(container.start)
                logger.info(f"Started container {container_name}")

            ready = await self.is_ready(node)
            return NodeActionResult(
                success=True,
                node_id=node.id,
                ready=ready,
                stdout=f"Container {container.short_id} running",
            )
        except ImageNotFound:
            return NodeActionResult(
                success=False,
                node_id=node.id,
                error=f"Image not found: {node.image}",
            )
        except (APIError, DockerException) as e:
            logger.error(f"Failed to start {container_name}: {e}")
            return NodeActionResult(success=False, node_id=node.id, error=str(e))

    async def is_ready(self, node: Node) -> bool:
        container_name = docker_container_name(node.network_id, node.name)
        try:
            container = await self._get_container(container_name)
            if container is None:
                return False
            await asyncio.to_thread(container.reload)
            if container.status != "running":
                return False
            config = get_kind_config(node.kind)
            result = await asyncio.to_thread(container.exec_run, config.ready_command)
            return result.exit_code == 0
        except DockerException as e:
            logger.debug(f"Readiness check failed for {container_name}: {e}")
            return False

    async def stop_node(self, node: Node) -> NodeActionResult:
        container_name = docker_container_name(node.network_id, node.name)
        try:
            container = await self._get_container(container_name)
            if container is None:
                return NodeActionResult(
                    success=True, node_id=node.id, stdout="Container not found"
                )
            if container.status == "running":
                await asyncio.to_thread(
                    container.stop, timeout=settings.container_stop_timeout
                )
                logger.info(f"Stopped container {container_name}")
            return NodeActionResult(success=True, node_id=node.id)
        except DockerException as e:
            logger.error(f"Failed to stop {container_name}: {e}")
            return NodeActionResult(success=False, node_id=node.id, error=str(e))

    async def release_node(self, node: Node) -> NodeActionResult:
        container_name = docker_container_name(node.network_id, node.name)
        try:
            container = await self._get_container(container_name)
            if container is not None:
                try:
                    await asyncio.to_thread(container.remove, force=True, v=True)
                    logger.info(f"Removed container {container_name}")
                except NotFound:
                    logger.debug(f"Container {container_name} already removed")
            await self._remove_network_if_unused(node.network_id)
            return NodeActionResult(success=True, node_id=node.id)
        except DockerException as e:
            logger.error(f"Failed to release {container_name}: {e}")
            return NodeActionResult(success=False, node_id=node.id, error=str(e))

    async def _remove_network_if_unused(self, network_id: int) -> None:
        """Drop the bridge network once no container of the network is left.

        Nodes of one network are released concurrently; the per-network lock
        makes the list-then-remove check run for one of them at a time.
        """
        lock = self._network_locks.setdefault(network_id, asyncio.Lock())
        async with lock:
            remaining = await asyncio.to_thread(
                self.docker.containers.list,
                all=True,
                filters={"label": f"{LABEL_NETWORK_ID}={network_id}"},
            )
            if remaining:
                return
            network_name = docker_network_name(network_id)
            try:
                docker_network = await asyncio.to_thread(self.docker.networks.get, network_name)
                await asyncio.to_thread(docker_network.remove)
            except NotFound:
                logger.debug(f"Docker network {network_name} already removed")
                return
            logger.info(f"Removed Docker network {network_name}")
