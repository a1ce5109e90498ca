"""
Multi-chain topologies.

Provides:
- TopologySpec and friends: what to bring up, loadable from YAML
- NetworkOrchestrator: build, link, and tear down a topology
- Factory protocols and the external-node factories
"""

from .bootstrap import (
    ExternalNetworkFactory,
    NetworkFactory,
    RelayerFactory,
    RlyRelayerFactory,
)
from .channel import find_transfer_channel, get_transfer_channel
from .orchestrator import LinkedTopology, NetworkOrchestrator
from .spec import ChainSpec, RelayerSpec, TopologySpec, TransferScenario

__all__ = [
    # Specs
    "ChainSpec",
    "RelayerSpec",
    "TopologySpec",
    "TransferScenario",
    # Orchestration
    "LinkedTopology",
    "NetworkOrchestrator",
    "find_transfer_channel",
    "get_transfer_channel",
    # Factories
    "ExternalNetworkFactory",
    "NetworkFactory",
    "RelayerFactory",
    "RlyRelayerFactory",
]
