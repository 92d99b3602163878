"""Pydantic models for the HTTP surface, persistence and events."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from lnsim.state import NetworkEventType, NetworkStatus, NodeKind, NodeStatus
from lnsim.version import __version__, get_commit

if TYPE_CHECKING:
    from lnsim.models import Network, Node


# --- Topology input ---

class NodeSpec(BaseModel):
    """One node requested for a new network."""
    kind: NodeKind
    image: str | None = None  # default image for the kind when omitted
    name: str | None = None  # generated when omitted
    backend: str | None = None  # lightning only; first bitcoind when omitted


class NetworkCreate(BaseModel):
    """Create a network from explicit nodes or from node counts."""
    name: str
    nodes: list[NodeSpec] | None = None
    bitcoin_nodes: int | None = Field(default=None, ge=1)
    lightning_nodes: int | None = Field(default=None, ge=0)


class RenameRequest(BaseModel):
    name: str


# --- Presentation ---

class NodeOut(BaseModel):
    id: int
    name: str
    kind: NodeKind
    image: str
    backend: str | None = None
    status: NodeStatus

    @classmethod
    def from_node(cls, node: "Node") -> "NodeOut":
        return cls(
            id=node.id,
            name=node.name,
            kind=node.kind,
            image=node.image,
            backend=node.backend,
            status=node.status,
        )


class NetworkOut(BaseModel):
    id: int
    name: str
    status: NetworkStatus
    summary: str
    nodes: list[NodeOut] = Field(default_factory=list)

    @classmethod
    def from_network(cls, network: "Network") -> "NetworkOut":
        return cls(
            id=network.id,
            name=network.name,
            status=network.status,
            summary=network.summary,
            nodes=[NodeOut.from_node(n) for n in network.nodes],
        )


class NetworkListResponse(BaseModel):
    networks: list[NetworkOut] = Field(default_factory=list)


class MissingImagesResponse(BaseModel):
    network_id: int
    missing: list[str] = Field(default_factory=list)
    can_start: bool


class NodeFailureOut(BaseModel):
    node_id: int
    node_name: str
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__


class SystemInfo(BaseModel):
    version: str = __version__
    commit: str = Field(default_factory=get_commit)
    platform: str


# --- Persistence ---

class NodeRecord(BaseModel):
    """Stored shape of a node; status is never persisted."""
    id: int
    name: str
    kind: NodeKind
    image: str
    backend: str | None = None


class NetworkRecord(BaseModel):
    id: int
    name: str
    nodes: list[NodeRecord] = Field(default_factory=list)


class StoreDocument(BaseModel):
    version: int = 1
    next_id: int = 1
    networks: list[NetworkRecord] = Field(default_factory=list)


# --- Change notifications ---

class NetworkEvent(BaseModel):
    """A change to one network, delivered to its subscribers."""
    type: NetworkEventType
    network_id: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    network_status: NetworkStatus | None = None
    node_id: int | None = None
    node_name: str | None = None
    node_status: NodeStatus | None = None
    name: str | None = None
