from __future__ import annotations

import asyncio
import os
from collections import Counter

import pytest

from lnsim.config import Settings, settings
from lnsim.drivers.base import NodeActionResult, NodeDriver
from lnsim.events import NetworkEventBus
from lnsim.lifecycle import LifecycleController
from lnsim.registry import NetworkRegistry
from lnsim.schemas import NodeSpec
from lnsim.state import NodeKind

BITCOIND_IMAGE = "bitcoind:24"
LND_IMAGE = "lnd:0.17"


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    """Keep tests away from /var/lib/lnsim and make readiness polling fast."""
    monkeypatch.setattr(settings, "workspace_path", str(tmp_path / "workspace"))
    monkeypatch.setattr(settings, "node_ready_poll_interval", 0.0)
    monkeypatch.setattr(settings, "node_ready_timeout", 1.0)
    yield


class FakeDriver(NodeDriver):
    """Scripted in-memory driver.

    Records every call in order. Nodes listed in fail_* fail that operation;
    nodes in raise_* make the driver raise instead. ready_after[name] is the
    number of is_ready() polls before the node reports ready. A gate blocks
    start_node for that node until the event is set.
    """

    name = "fake"

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.fail_start: set[str] = set()
        self.fail_stop: set[str] = set()
        self.fail_release: set[str] = set()
        self.raise_start: set[str] = set()
        self.ready_after: dict[str, int] = {}
        self.polls: Counter[str] = Counter()
        self.gates: dict[str, asyncio.Event] = {}
        self.running: set[str] = set()

    def ops(self, op: str) -> list[str]:
        return [name for kind, name in self.calls if kind == op]

    async def start_node(self, node) -> NodeActionResult:
        self.calls.append(("start", node.name))
        gate = self.gates.get(node.name)
        if gate is not None:
            await gate.wait()
        if node.name in self.raise_start:
            raise RuntimeError(f"daemon for {node.name} crashed")
        if node.name in self.fail_start:
            return NodeActionResult(success=False, node_id=node.id, error="container exited")
        self.running.add(node.name)
        return NodeActionResult(
            success=True,
            node_id=node.id,
            ready=self.ready_after.get(node.name, 0) == 0,
        )

    async def is_ready(self, node) -> bool:
        self.polls[node.name] += 1
        return self.polls[node.name] >= self.ready_after.get(node.name, 0)

    async def stop_node(self, node) -> NodeActionResult:
        self.calls.append(("stop", node.name))
        if node.name in self.fail_stop:
            return NodeActionResult(success=False, node_id=node.id, error="stop timed out")
        self.running.discard(node.name)
        return NodeActionResult(success=True, node_id=node.id)

    async def release_node(self, node) -> NodeActionResult:
        self.calls.append(("release", node.name))
        if node.name in self.fail_release:
            return NodeActionResult(success=False, node_id=node.id, error="volume busy")
        return NodeActionResult(success=True, node_id=node.id)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        workspace_path=str(tmp_path / "workspace"),
        persist_networks=False,
        node_ready_timeout=1.0,
        node_ready_poll_interval=0.0,
        bitcoind_image=BITCOIND_IMAGE,
        lnd_image=LND_IMAGE,
    )


@pytest.fixture
def registry(test_settings) -> NetworkRegistry:
    return NetworkRegistry(test_settings)


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def events() -> NetworkEventBus:
    return NetworkEventBus(queue_size=1000)


@pytest.fixture
def controller(registry, driver, events, test_settings) -> LifecycleController:
    return LifecycleController(registry, driver, events=events, config=test_settings)


@pytest.fixture
def alpha_topology() -> list[NodeSpec]:
    """1 bitcoind + 2 lnd, the default network."""
    return [
        NodeSpec(kind=NodeKind.BITCOIND, image=BITCOIND_IMAGE),
        NodeSpec(kind=NodeKind.LND, image=LND_IMAGE),
        NodeSpec(kind=NodeKind.LND, image=LND_IMAGE),
    ]


@pytest.fixture
def alpha(registry, alpha_topology):
    return registry.create("alpha", alpha_topology)


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if os.getenv("LNSIM_RUN_INTEGRATION") in {"1", "true", "TRUE", "yes", "YES"}:
        return

    skip_integration = pytest.mark.skip(
        reason="Integration tests require Docker. Set LNSIM_RUN_INTEGRATION=1 to run."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
