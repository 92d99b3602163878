"""Prometheus metrics for network lifecycle operations.

The /metrics endpoint serves these in Prometheus exposition format.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

node_operation_duration = Histogram(
    "lnsim_node_operation_seconds",
    "Duration of node driver operations",
    ["operation", "status"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, float("inf")),
)

node_operation_errors = Counter(
    "lnsim_node_operation_errors_total",
    "Total node driver operation errors",
    ["operation"],
)

network_operations = Counter(
    "lnsim_network_operations_total",
    "Network lifecycle operations by outcome",
    ["operation", "outcome"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
