"""
Metric registry using prometheus_client.

Provides pre-defined metrics for conformance runs.
Exposes metrics in Prometheus text format for CI scraping or dumping after a run.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for harness metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Scenarios
# -----------------------------------------------------------------------------

scenarios_total = Counter(
    "ibc_conformance_scenarios_total",
    "Conformance scenarios run, by outcome",
    labelnames=("scenario", "outcome"),
    registry=REGISTRY,
)

balance_mismatches = Counter(
    "ibc_conformance_balance_mismatches_total",
    "Balance assertions that did not hold",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Transfers
# -----------------------------------------------------------------------------

transfers_submitted = Counter(
    "ibc_conformance_transfers_submitted_total",
    "Transfers submitted, by source chain",
    labelnames=("chain_id",),
    registry=REGISTRY,
)

ack_wait_blocks = Histogram(
    "ibc_conformance_ack_wait_blocks",
    "Blocks between transfer submission and its acknowledgment",
    buckets=(1, 2, 3, 5, 8, 13, 21, 34, 55),
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
