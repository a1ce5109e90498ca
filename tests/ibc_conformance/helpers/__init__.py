"""Test helpers for ibc_conformance unit tests."""

from .builders import (
    GAIA_USER,
    SEDA_USER,
    make_chain_spec,
    make_gaia_spec,
    make_packet,
    make_topology_spec,
    make_tx_json,
)
from .mocks import NodeRouter, ScriptedChain

__all__ = [
    # Builders
    "GAIA_USER",
    "SEDA_USER",
    "make_chain_spec",
    "make_gaia_spec",
    "make_packet",
    "make_topology_spec",
    "make_tx_json",
    # Mocks
    "NodeRouter",
    "ScriptedChain",
]
