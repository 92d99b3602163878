"""State enums shared by nodes, networks and the HTTP surface.

Valid transitions are defined in state_machine.py.
"""

from enum import Enum


class NodeKind(str, Enum):
    """Daemon implemented by a node."""

    BITCOIND = "bitcoind"  # Bitcoin chain backend
    LND = "lnd"  # Lightning daemon, needs a reachable bitcoind


class NodeStatus(str, Enum):
    """Lifecycle state of a single node."""

    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    ERROR = "error"


class NetworkStatus(str, Enum):
    """Network-level status, always derived from the node statuses."""

    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    ERROR = "error"


class NetworkEventType(str, Enum):
    """Kinds of change notifications published per network."""

    NODE_STATUS = "node_status"
    NETWORK_STATUS = "network_status"
    NETWORK_RENAMED = "network_renamed"
    NETWORK_REMOVED = "network_removed"
