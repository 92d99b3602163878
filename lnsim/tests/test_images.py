from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from docker.errors import DockerException

from lnsim.errors import ImageInventoryError
from lnsim.images import DockerImageProvider, StaticImageProvider, missing_images
from lnsim.schemas import NodeSpec
from lnsim.state import NodeKind

from lnsim.tests.conftest import BITCOIND_IMAGE, LND_IMAGE


def test_missing_images_reports_absent_image(alpha) -> None:
    assert missing_images(alpha, {BITCOIND_IMAGE}) == {LND_IMAGE}


def test_missing_images_empty_when_all_present(alpha) -> None:
    assert missing_images(alpha, [BITCOIND_IMAGE, LND_IMAGE, "other:1"]) == set()


def test_missing_images_distinct(registry) -> None:
    network = registry.create("many", [
        NodeSpec(kind=NodeKind.BITCOIND, image=BITCOIND_IMAGE),
        NodeSpec(kind=NodeKind.LND, image=LND_IMAGE),
        NodeSpec(kind=NodeKind.LND, image=LND_IMAGE),
        NodeSpec(kind=NodeKind.LND, image="lnd:0.18"),
    ])
    assert missing_images(network, []) == {BITCOIND_IMAGE, LND_IMAGE, "lnd:0.18"}


@pytest.mark.asyncio
async def test_static_provider_tracks_changes() -> None:
    provider = StaticImageProvider([BITCOIND_IMAGE])
    provider.add(LND_IMAGE)
    provider.discard(BITCOIND_IMAGE)
    assert await provider.available_images() == {LND_IMAGE}


@pytest.mark.asyncio
async def test_static_provider_returns_copy() -> None:
    provider = StaticImageProvider([BITCOIND_IMAGE])
    images = await provider.available_images()
    images.add("mutated")
    assert await provider.available_images() == {BITCOIND_IMAGE}


@pytest.mark.asyncio
async def test_docker_provider_collects_tags() -> None:
    client = MagicMock()
    client.images.list.return_value = [
        MagicMock(tags=[BITCOIND_IMAGE, "bitcoind:latest"]),
        MagicMock(tags=[]),
        MagicMock(tags=None),
        MagicMock(tags=[LND_IMAGE]),
    ]
    provider = DockerImageProvider(client=client)

    assert await provider.available_images() == {BITCOIND_IMAGE, "bitcoind:latest", LND_IMAGE}
    client.images.list.assert_called_once()


@pytest.mark.asyncio
async def test_docker_provider_is_read_every_time() -> None:
    client = MagicMock()
    client.images.list.side_effect = [[], [MagicMock(tags=[LND_IMAGE])]]
    provider = DockerImageProvider(client=client)

    assert await provider.available_images() == set()
    assert await provider.available_images() == {LND_IMAGE}


@pytest.mark.asyncio
async def test_docker_provider_error_is_reported() -> None:
    client = MagicMock()
    client.images.list.side_effect = DockerException("daemon unreachable")
    provider = DockerImageProvider(client=client)

    with pytest.raises(ImageInventoryError, match="daemon unreachable"):
        await provider.available_images()
