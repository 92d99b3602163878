"""Per-kind container settings for bitcoind and lnd nodes.

Each kind defines the daemon command line, the CLI probe that tells when the
daemon is ready, and the ports it listens on inside the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from lnsim.models import Node
from lnsim.state import NodeKind

RPC_USER = "lnsim"
RPC_PASSWORD = "lnsim"

BITCOIND_RPC_PORT = 18443
ZMQ_RAWBLOCK_PORT = 28334
ZMQ_RAWTX_PORT = 28335


def _bitcoind_command(node: Node) -> list[str]:
    return [
        "bitcoind",
        "-server=1",
        "-regtest=1",
        f"-rpcuser={RPC_USER}",
        f"-rpcpassword={RPC_PASSWORD}",
        "-rpcbind=0.0.0.0",
        "-rpcallowip=0.0.0.0/0",
        f"-rpcport={BITCOIND_RPC_PORT}",
        f"-zmqpubrawblock=tcp://0.0.0.0:{ZMQ_RAWBLOCK_PORT}",
        f"-zmqpubrawtx=tcp://0.0.0.0:{ZMQ_RAWTX_PORT}",
        "-txindex=1",
        "-dnsseed=0",
        "-upnp=0",
        "-listen=1",
        "-listenonion=0",
        "-fallbackfee=0.0002",
    ]


def _lnd_command(node: Node) -> list[str]:
    backend = node.backend
    return [
        "lnd",
        "--noseedbackup",
        "--trickledelay=5000",
        f"--alias={node.name}",
        f"--externalip={node.name}",
        f"--tlsextradomain={node.name}",
        "--listen=0.0.0.0:9735",
        "--rpclisten=0.0.0.0:10009",
        "--restlisten=0.0.0.0:8080",
        "--bitcoin.active",
        "--bitcoin.regtest",
        "--bitcoin.node=bitcoind",
        f"--bitcoind.rpchost={backend}:{BITCOIND_RPC_PORT}",
        f"--bitcoind.rpcuser={RPC_USER}",
        f"--bitcoind.rpcpass={RPC_PASSWORD}",
        f"--bitcoind.zmqpubrawblock=tcp://{backend}:{ZMQ_RAWBLOCK_PORT}",
        f"--bitcoind.zmqpubrawtx=tcp://{backend}:{ZMQ_RAWTX_PORT}",
    ]


@dataclass(frozen=True)
class KindConfig:
    """Container settings for one node kind.

    Fields:
        kind: Node kind this config applies to
        label: Display name
        command: Builds the daemon command line for a node
        ready_command: CLI probe run inside the container; exit 0 means ready
        ports: Ports the daemon listens on inside the network
    """

    kind: NodeKind
    label: str
    command: Callable[[Node], list[str]]
    ready_command: list[str]
    ports: list[int] = field(default_factory=list)


KIND_CONFIGS: dict[NodeKind, KindConfig] = {
    NodeKind.BITCOIND: KindConfig(
        kind=NodeKind.BITCOIND,
        label="Bitcoin Core",
        command=_bitcoind_command,
        ready_command=[
            "bitcoin-cli",
            "-regtest",
            f"-rpcuser={RPC_USER}",
            f"-rpcpassword={RPC_PASSWORD}",
            f"-rpcport={BITCOIND_RPC_PORT}",
            "getblockchaininfo",
        ],
        ports=[BITCOIND_RPC_PORT, 18444, ZMQ_RAWBLOCK_PORT, ZMQ_RAWTX_PORT],
    ),
    NodeKind.LND: KindConfig(
        kind=NodeKind.LND,
        label="LND",
        command=_lnd_command,
        ready_command=["lncli", "--network=regtest", "getinfo"],
        ports=[8080, 9735, 10009],
    ),
}


def get_kind_config(kind: NodeKind) -> KindConfig:
    return KIND_CONFIGS[NodeKind(kind)]
