"""Node process drivers."""

from lnsim.drivers.base import NodeActionResult, NodeDriver
from lnsim.drivers.docker import DockerNodeDriver

__all__ = [
    "NodeActionResult",
    "NodeDriver",
    "DockerNodeDriver",
]
