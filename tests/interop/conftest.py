"""
Shared pytest fixtures for interop tests.

Provides a topology launcher with automatic teardown.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest

from ibc_conformance.interchain import LinkedTopology, NetworkOrchestrator, TopologySpec
from ibc_conformance.localnet import LocalNetwork

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

Launcher = Callable[[TopologySpec], Awaitable[LinkedTopology]]


@pytest.fixture
def local_network() -> LocalNetwork:
    """A fresh local network per test."""
    return LocalNetwork()


@pytest.fixture
async def launch(local_network: LocalNetwork) -> AsyncGenerator[Launcher, None]:
    """
    Provide a function that builds linked topologies.

    Every topology it built is torn down after the test, even when the
    test failed half-way through a scenario.
    """
    orchestrator = NetworkOrchestrator(local_network, local_network)
    built: list[LinkedTopology] = []

    async def _launch(spec: TopologySpec) -> LinkedTopology:
        topology = await orchestrator.build(spec)
        built.append(topology)
        return topology

    try:
        yield _launch
    finally:
        for topology in built:
            try:
                await asyncio.wait_for(orchestrator.teardown(topology), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Teardown of path %s timed out", topology.path)
