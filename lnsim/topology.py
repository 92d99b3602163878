"""Build node lists from topology specs.

Node names are generated the way users expect to see them in a simulated
network: bitcoind backends are backend1, backend2, ... and lightning nodes
get people names (alice, bob, ...), falling back to lnd<N>.
"""

from __future__ import annotations

from lnsim.config import Settings, settings as default_settings
from lnsim.models import Node, validate_nodes
from lnsim.schemas import NodeSpec
from lnsim.state import NodeKind

LIGHTNING_NAMES = (
    "alice",
    "bob",
    "carol",
    "dave",
    "erin",
    "frank",
    "grace",
    "heidi",
    "ivan",
    "judy",
)


def _default_name(kind: NodeKind, index: int) -> str:
    """Name for the index-th (1-based) node of a kind."""
    if kind == NodeKind.BITCOIND:
        return f"backend{index}"
    if index <= len(LIGHTNING_NAMES):
        return LIGHTNING_NAMES[index - 1]
    return f"lnd{index}"


def default_image(kind: NodeKind, config: Settings | None = None) -> str:
    config = config or default_settings
    if kind == NodeKind.BITCOIND:
        return config.bitcoind_image
    return config.lnd_image


def default_topology(
    bitcoin_nodes: int | None = None,
    lightning_nodes: int | None = None,
    config: Settings | None = None,
) -> list[NodeSpec]:
    """Specs for N bitcoind and M lnd nodes using the configured images."""
    config = config or default_settings
    if bitcoin_nodes is None:
        bitcoin_nodes = config.default_bitcoin_nodes
    if lightning_nodes is None:
        lightning_nodes = config.default_lightning_nodes
    specs = [NodeSpec(kind=NodeKind.BITCOIND) for _ in range(bitcoin_nodes)]
    specs += [NodeSpec(kind=NodeKind.LND) for _ in range(lightning_nodes)]
    return specs


def build_nodes(
    network_id: int,
    specs: list[NodeSpec],
    config: Settings | None = None,
) -> list[Node]:
    """Turn specs into stopped nodes, in the order given.

    Raises:
        InvalidTopologyError: see models.validate_nodes
    """
    config = config or default_settings
    counters = {kind: 0 for kind in NodeKind}
    taken = {spec.name for spec in specs if spec.name}
    nodes: list[Node] = []

    def next_name(kind: NodeKind) -> str:
        while True:
            counters[kind] += 1
            candidate = _default_name(kind, counters[kind])
            if candidate not in taken:
                return candidate

    for node_id, spec in enumerate(specs, start=1):
        name = spec.name or next_name(spec.kind)
        taken.add(name)
        nodes.append(
            Node(
                id=node_id,
                name=name,
                kind=spec.kind,
                image=spec.image or default_image(spec.kind, config),
                network_id=network_id,
                backend=spec.backend,
            )
        )

    # Lightning nodes without an explicit backend use the first bitcoind
    first_backend = next((n.name for n in nodes if n.is_bitcoin), None)
    for node in nodes:
        if node.is_lightning and not node.backend:
            node.backend = first_backend
        elif node.is_bitcoin:
            node.backend = None

    validate_nodes(nodes)
    return nodes
