"""Node process driver interface.

The lifecycle controller is the only caller. Drivers report failures either
through NodeActionResult(success=False) or by raising; the controller turns
both into node errors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lnsim.models import Node


@dataclass
class NodeActionResult:
    """Result of a node start/stop/release action."""
    success: bool
    node_id: int
    ready: bool = False  # start only: node already accepts requests
    stdout: str = ""
    error: str | None = None


class NodeDriver(ABC):
    """Starts, stops and releases the process backing a node."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Driver name (e.g., 'docker')."""
        ...

    @abstractmethod
    async def start_node(self, node: "Node") -> NodeActionResult:
        """Start the node's process.

        A successful result with ready=False means the process is up but
        still booting; the caller polls is_ready() afterwards.
        """
        ...

    @abstractmethod
    async def is_ready(self, node: "Node") -> bool:
        """Check whether a started node accepts requests yet."""
        ...

    @abstractmethod
    async def stop_node(self, node: "Node") -> NodeActionResult:
        """Stop the node's process. Must be idempotent."""
        ...

    @abstractmethod
    async def release_node(self, node: "Node") -> NodeActionResult:
        """Free every resource held for the node. Must be idempotent."""
        ...
