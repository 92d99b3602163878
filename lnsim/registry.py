"""Registry of all networks known to this process.

Ids come from a counter that only moves forward, so a removed network's id
is never handed out again. The mutex is held for mapping updates and
snapshots only, never across driver calls.
"""

from __future__ import annotations

import logging
import threading

from lnsim.config import Settings, settings as default_settings
from lnsim.errors import NotFoundError
from lnsim.models import Network, normalize_name
from lnsim.persistence import NetworkStore, from_record, to_record
from lnsim.schemas import NodeSpec, StoreDocument
from lnsim.topology import build_nodes

logger = logging.getLogger(__name__)


class NetworkRegistry:
    """Owns every Network; lookup by id, listing in creation order."""

    def __init__(self, config: Settings | None = None):
        self._config = config or default_settings
        self._networks: dict[int, Network] = {}
        self._next_id = 1
        self._mutex = threading.Lock()

    @property
    def next_id(self) -> int:
        return self._next_id

    def create(self, name: str, topology: list[NodeSpec]) -> Network:
        """Create a stopped network from a list of node specs.

        Raises:
            InvalidNameError: name is empty after trimming
            InvalidTopologyError: see models.validate_nodes
        """
        name = normalize_name(name)
        with self._mutex:
            network_id = self._next_id
            network = Network(
                id=network_id,
                name=name,
                nodes=build_nodes(network_id, topology, self._config),
            )
            self._networks[network_id] = network
            self._next_id += 1
        logger.info(f"Created network {network.id} '{network.name}' ({network.summary})")
        return network

    def find(self, network_id: int) -> Network | None:
        with self._mutex:
            return self._networks.get(network_id)

    def get(self, network_id: int) -> Network:
        """Like find() but raises NotFoundError."""
        network = self.find(network_id)
        if network is None:
            raise NotFoundError(network_id)
        return network

    def list(self) -> list[Network]:
        """Snapshot of all networks in creation order."""
        with self._mutex:
            return list(self._networks.values())

    def remove(self, network_id: int) -> Network:
        """Drop a network from the registry and return it.

        Raises:
            NotFoundError: unknown id
        """
        with self._mutex:
            network = self._networks.pop(network_id, None)
        if network is None:
            raise NotFoundError(network_id)
        logger.info(f"Removed network {network_id} '{network.name}'")
        return network

    def __len__(self) -> int:
        with self._mutex:
            return len(self._networks)

    def __contains__(self, network_id: object) -> bool:
        with self._mutex:
            return network_id in self._networks

    # --- persistence hooks ---

    def save(self, store: NetworkStore) -> None:
        with self._mutex:
            document = StoreDocument(
                next_id=self._next_id,
                networks=[to_record(n) for n in self._networks.values()],
            )
        store.write(document)

    def load(self, store: NetworkStore) -> int:
        """Replace the registry contents with the stored networks.

        Every loaded node is stopped. The id counter never moves backwards.

        Returns:
            Number of networks loaded
        """
        document = store.read()
        networks = [from_record(record) for record in document.networks]
        highest = max((n.id for n in networks), default=0)
        with self._mutex:
            self._networks = {n.id: n for n in networks}
            self._next_id = max(self._next_id, document.next_id, highest + 1)
        logger.info(f"Loaded {len(networks)} network(s) from {store.path}")
        return len(networks)
