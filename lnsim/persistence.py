"""Save/load hooks for network definitions.

serialize()/deserialize() define the stored shape of one network (id, name
and the ordered node list); NetworkStore keeps every network plus the id
counter in a single JSON document on disk.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from lnsim.errors import InvalidTopologyError
from lnsim.models import Network, Node
from lnsim.schemas import NetworkRecord, NodeRecord, StoreDocument

logger = logging.getLogger(__name__)

STORE_FILENAME = "networks.json"


def to_record(network: Network) -> NetworkRecord:
    return NetworkRecord(
        id=network.id,
        name=network.name,
        nodes=[
            NodeRecord(id=n.id, name=n.name, kind=n.kind, image=n.image, backend=n.backend)
            for n in network.nodes
        ],
    )


def from_record(record: NetworkRecord) -> Network:
    """Rebuild a network; every node comes back stopped."""
    nodes = [
        Node(
            id=n.id,
            name=n.name,
            kind=n.kind,
            image=n.image,
            network_id=record.id,
            backend=n.backend,
        )
        for n in record.nodes
    ]
    return Network(id=record.id, name=record.name, nodes=nodes)


def serialize(network: Network) -> bytes:
    """Encode a network definition as UTF-8 JSON."""
    return to_record(network).model_dump_json().encode("utf-8")


def deserialize(blob: bytes | str) -> Network:
    """Decode a blob produced by serialize().

    Raises:
        InvalidTopologyError: malformed blob or invalid topology
        InvalidNameError: stored name is empty
    """
    try:
        record = NetworkRecord.model_validate_json(blob)
    except ValidationError as e:
        raise InvalidTopologyError(f"Invalid network definition: {e}") from e
    return from_record(record)


class NetworkStore:
    """JSON file holding all saved networks and the next id to assign."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @classmethod
    def in_workspace(cls, workspace: str | Path) -> "NetworkStore":
        return cls(Path(workspace) / STORE_FILENAME)

    def read(self) -> StoreDocument:
        """Load the document, or an empty one if the file does not exist."""
        if not self.path.exists():
            return StoreDocument()
        try:
            return StoreDocument.model_validate_json(self.path.read_bytes())
        except ValidationError as e:
            raise InvalidTopologyError(f"Corrupt network store {self.path}: {e}") from e

    def write(self, document: StoreDocument) -> None:
        """Replace the file atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".networks-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(document.model_dump_json(indent=2).encode("utf-8"))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(document.networks)} network(s) to {self.path}")
