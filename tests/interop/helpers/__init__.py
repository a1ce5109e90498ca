"""Helper utilities for interop tests."""

from .assertions import (
    assert_balance,
    assert_escrow_holds,
    assert_round_trip_restored,
)
from .topology import GENESIS, chain_spec, gaia, osmosis, seda, topology

__all__ = [
    # Assertions
    "assert_balance",
    "assert_escrow_holds",
    "assert_round_trip_restored",
    # Topology patterns
    "GENESIS",
    "chain_spec",
    "gaia",
    "osmosis",
    "seda",
    "topology",
]
