"""
Metrics module for observability.

Provides counters and histograms for tracking conformance runs.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    ack_wait_blocks,
    balance_mismatches,
    generate_metrics,
    scenarios_total,
    transfers_submitted,
)

__all__ = [
    "REGISTRY",
    "ack_wait_blocks",
    "balance_mismatches",
    "generate_metrics",
    "scenarios_total",
    "transfers_submitted",
]
