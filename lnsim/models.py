"""Domain model: nodes and the networks that own them."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from lnsim.errors import InvalidNameError, InvalidTopologyError, InvalidTransitionError, NotFoundError
from lnsim.state import NetworkStatus, NodeKind, NodeStatus
from lnsim.state_machine import NetworkStateMachine, NodeStateMachine


def normalize_name(name: str) -> str:
    """Trim a network name, rejecting empty results."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidNameError(name)
    return trimmed


@dataclass
class Node:
    """One simulated daemon belonging to exactly one network."""

    id: int
    name: str
    kind: NodeKind
    image: str
    network_id: int
    backend: str | None = None  # bitcoind node name, lightning nodes only
    _status: NodeStatus = field(default=NodeStatus.STOPPED, init=False, repr=False, compare=False)

    @property
    def status(self) -> NodeStatus:
        return self._status

    @property
    def is_bitcoin(self) -> bool:
        return self.kind == NodeKind.BITCOIND

    @property
    def is_lightning(self) -> bool:
        return self.kind == NodeKind.LND


def validate_nodes(nodes: list[Node]) -> None:
    """Check the structural invariants of a node list.

    Raises:
        InvalidTopologyError: no bitcoin node, duplicate ids or names, or a
            lightning node whose backend is not a bitcoin node of the list
    """
    bitcoin_names = {n.name for n in nodes if n.is_bitcoin}
    if not bitcoin_names:
        raise InvalidTopologyError("A network needs at least one bitcoind node")

    for label, values in (("id", [n.id for n in nodes]), ("name", [n.name for n in nodes])):
        dupes = sorted(str(v) for v, c in Counter(values).items() if c > 1)
        if dupes:
            raise InvalidTopologyError(f"Duplicate node {label}: {', '.join(dupes)}")

    for node in nodes:
        if not node.image:
            raise InvalidTopologyError(f"Node {node.name} has no image")
        if node.is_lightning and node.backend not in bitcoin_names:
            raise InvalidTopologyError(
                f"Node {node.name} uses unknown bitcoind backend {node.backend!r}"
            )


@dataclass
class Network:
    """A named set of nodes forming one simulated topology.

    ``status`` is computed from the nodes on every read and cannot be set.
    Node statuses change only through transition_node().
    """

    id: int
    name: str
    nodes: list[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.name = normalize_name(self.name)
        validate_nodes(self.nodes)

    @property
    def status(self) -> NetworkStatus:
        return NetworkStateMachine.aggregate_status(n.status for n in self.nodes)

    @property
    def bitcoin_nodes(self) -> list[Node]:
        return [n for n in self.nodes if n.is_bitcoin]

    @property
    def lightning_nodes(self) -> list[Node]:
        return [n for n in self.nodes if n.is_lightning]

    @property
    def images(self) -> set[str]:
        """Distinct images required to run this network."""
        return {n.image for n in self.nodes}

    @property
    def summary(self) -> str:
        """Short topology description, e.g. "1 bitcoind, 2 LND"."""
        return f"{len(self.bitcoin_nodes)} bitcoind, {len(self.lightning_nodes)} LND"

    def get_node(self, node_id: int) -> Node:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise NotFoundError(self.id, node_id)

    def rename(self, new_name: str) -> None:
        """Change the name; allowed in any status."""
        self.name = normalize_name(new_name)

    def transition_node(self, node_id: int, target: NodeStatus) -> NetworkStatus:
        """Move a node to ``target`` and return the network status before the change.

        Raises:
            InvalidTransitionError: the state machine forbids the move
        """
        node = self.get_node(node_id)
        if not NodeStateMachine.can_transition(node.status, target):
            raise InvalidTransitionError(node.id, node.status.value, target.value)
        previous = self.status
        node._status = target
        return previous
