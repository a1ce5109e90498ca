"""
Shared pytest fixtures for ibc_conformance tests.

Provides local chains, a local network, and a linked local topology.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from ibc_conformance.chain.handle import ChainConfig
from ibc_conformance.interchain import LinkedTopology, NetworkOrchestrator
from ibc_conformance.localnet import LocalChain, LocalNetwork
from tests.ibc_conformance.helpers import GAIA_USER, SEDA_USER, make_topology_spec


@pytest.fixture
def seda_config() -> ChainConfig:
    """Identity of the seda chain."""
    return ChainConfig(name="seda", chain_id="seda-local-1", denom="aseda", bech32_prefix="seda")


@pytest.fixture
def gaia_config() -> ChainConfig:
    """Identity of the gaia chain."""
    return ChainConfig(name="gaia", chain_id="gaia-local-1", denom="uatom")


@pytest.fixture
def linked_chains(
    seda_config: ChainConfig, gaia_config: ChainConfig
) -> tuple[LocalChain, LocalChain]:
    """
    Two funded local chains with channel-0 open between them.

    Block production is not started; tests advance heights by hand.
    """
    seda = LocalChain(seda_config)
    gaia = LocalChain(gaia_config)
    seda.fund(SEDA_USER.address, "aseda", 1_000_000)
    gaia.fund(GAIA_USER.address, "uatom", 1_000_000)

    seda_end = seda.open_channel(gaia_config.chain_id)
    gaia_end = gaia.open_channel(seda_config.chain_id)
    seda.connect_channel(seda_end.channel_id, gaia_end.channel_id)
    gaia.connect_channel(gaia_end.channel_id, seda_end.channel_id)
    return seda, gaia


@pytest.fixture
async def local_topology() -> AsyncGenerator[LinkedTopology, None]:
    """A linked seda <-> gaia local topology, torn down after the test."""
    network = LocalNetwork()
    orchestrator = NetworkOrchestrator(network, network)
    async with orchestrator.session(make_topology_spec()) as topology:
        yield topology
