"""State transition and aggregation rules for nodes and networks.

Node lifecycle:
    stopped -> starting -> started -> stopping -> stopped
    any -> error (driver failure)
    error -> stopping (the only way out of error)
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from lnsim.state import NetworkStatus, NodeStatus


class NodeStateMachine:
    """Centralized transition logic for nodes."""

    VALID_TRANSITIONS: dict[NodeStatus, set[NodeStatus]] = {
        NodeStatus.STOPPED: {NodeStatus.STARTING, NodeStatus.ERROR},
        NodeStatus.STARTING: {NodeStatus.STARTED, NodeStatus.STOPPING, NodeStatus.ERROR},
        NodeStatus.STARTED: {NodeStatus.STOPPING, NodeStatus.ERROR},
        NodeStatus.STOPPING: {NodeStatus.STOPPED, NodeStatus.ERROR},
        NodeStatus.ERROR: {NodeStatus.STOPPING},
    }

    TRANSITIONAL_STATES: set[NodeStatus] = {
        NodeStatus.STARTING,
        NodeStatus.STOPPING,
    }

    @classmethod
    def can_transition(cls, current: NodeStatus, target: NodeStatus) -> bool:
        """Check if a state transition is valid."""
        if current == target:
            return True
        return target in cls.VALID_TRANSITIONS.get(current, set())

    @classmethod
    def is_transitional(cls, status: NodeStatus) -> bool:
        return status in cls.TRANSITIONAL_STATES


class NetworkStateMachine:
    """Network status is derived from the statuses of its nodes."""

    @classmethod
    def aggregate_status(cls, statuses: Iterable[NodeStatus]) -> NetworkStatus:
        """Reduce node statuses to a network status.

        Priority (first match wins):
        1. Any error -> error
        2. Any starting -> starting
        3. Any stopping -> stopping
        4. All started -> started
        5. All stopped (or no nodes) -> stopped
        6. Mixed started/stopped -> started
        """
        counts = Counter(NodeStatus(s) for s in statuses)
        total = sum(counts.values())

        if counts[NodeStatus.ERROR]:
            return NetworkStatus.ERROR
        if counts[NodeStatus.STARTING]:
            return NetworkStatus.STARTING
        if counts[NodeStatus.STOPPING]:
            return NetworkStatus.STOPPING
        if counts[NodeStatus.STARTED] == total and total > 0:
            return NetworkStatus.STARTED
        if counts[NodeStatus.STOPPED] == total:
            return NetworkStatus.STOPPED
        # Partially running networks count as started until they converge
        return NetworkStatus.STARTED

    @classmethod
    def is_transitional(cls, status: NetworkStatus) -> bool:
        """Check if the network is in a transitional state."""
        return status in (NetworkStatus.STARTING, NetworkStatus.STOPPING)

    @classmethod
    def is_running(cls, status: NetworkStatus) -> bool:
        return status in (NetworkStatus.STARTED, NetworkStatus.STARTING)


aggregate_status = NetworkStateMachine.aggregate_status
