"""Image inventory: which images a network needs that are not available.

missing_images() is a pure function. Callers refresh the available set from
an ImageProvider right before asking; nothing here caches it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Iterable

import docker
from docker.errors import DockerException

from lnsim.errors import ImageInventoryError
from lnsim.models import Network

logger = logging.getLogger(__name__)


def missing_images(network: Network, available_images: Iterable[str]) -> set[str]:
    """Return the distinct images of ``network`` absent from ``available_images``.

    An empty result means the network can be started.
    """
    return network.images - set(available_images)


class ImageProvider(ABC):
    """Source of the image references available to run nodes."""

    @abstractmethod
    async def available_images(self) -> set[str]:
        ...


class StaticImageProvider(ImageProvider):
    """Fixed inventory, mainly for tests and offline use."""

    def __init__(self, images: Iterable[str] = ()):
        self._images = set(images)

    def add(self, image: str) -> None:
        self._images.add(image)

    def discard(self, image: str) -> None:
        self._images.discard(image)

    async def available_images(self) -> set[str]:
        return set(self._images)


class DockerImageProvider(ImageProvider):
    """Local Docker image inventory, read on every call."""

    def __init__(self, client: docker.DockerClient | None = None):
        self._docker = client

    @property
    def docker(self) -> docker.DockerClient:
        if self._docker is None:
            self._docker = docker.from_env()
        return self._docker

    def _list_tags(self) -> set[str]:
        tags: set[str] = set()
        for img in self.docker.images.list():
            tags.update(img.tags or [])
        return tags

    async def available_images(self) -> set[str]:
        """Tags of every local image.

        Raises:
            ImageInventoryError: the Docker daemon could not be queried
        """
        try:
            return await asyncio.to_thread(self._list_tags)
        except DockerException as e:
            logger.error(f"Error listing Docker images: {e}")
            raise ImageInventoryError(f"Cannot list Docker images: {e}") from e
