"""Naming conventions for containers and networks.

Everything that builds a Docker resource name MUST go through these
functions so lookups and cleanup agree on the names.
"""

import re

DOCKER_PREFIX = "lnsim"

LABEL_NETWORK_ID = "lnsim.network_id"
LABEL_NODE_ID = "lnsim.node_id"
LABEL_NODE_NAME = "lnsim.node_name"
LABEL_NODE_KIND = "lnsim.node_kind"


def sanitize_id(value: str, max_len: int = 0) -> str:
    """Strip all characters except alphanumeric, underscore and dash.

    Optionally truncates to max_len if > 0.
    """
    safe = re.sub(r"[^a-zA-Z0-9_-]", "", value)
    if max_len > 0:
        safe = safe[:max_len]
    return safe


def docker_network_name(network_id: int) -> str:
    """Bridge network shared by all nodes of one simulated network.

    Format: lnsim-{network_id}
    """
    return f"{DOCKER_PREFIX}-{network_id}"


def docker_container_name(network_id: int, node_name: str) -> str:
    """Container name for a node.

    Format: lnsim-{network_id}-{safe_node_name}
    """
    return f"{DOCKER_PREFIX}-{network_id}-{sanitize_id(node_name, max_len=40)}"
