"""
In-process local network.

Provides:
- LocalChain: a chain with a bank ledger and the ICS-20 transfer module
- LocalRelayer: a background relaying task with fault injection
- LocalNetwork: network and relayer factory for the orchestrator
- LocalChainApi: aiohttp REST facade over a local chain
"""

from .api import LocalApiConfig, LocalChainApi, create_app
from .chain import Acknowledgement, LocalChain, escrow_address
from .network import LocalNetwork
from .relayer import LocalRelayer
from .wasm import CounterContract, LocalContract

__all__ = [
    "Acknowledgement",
    "CounterContract",
    "LocalApiConfig",
    "LocalChain",
    "LocalChainApi",
    "LocalContract",
    "LocalNetwork",
    "LocalRelayer",
    "create_app",
    "escrow_address",
]
