"""
Chain handles.

Provides:
- ChainHandle / NetworkHandle: the capability protocols the harness consumes
- RestChain: a handle over a running node (REST reads, CLI writes)
"""

from .cli import ChainCli
from .handle import ChainConfig, ChainHandle, NetworkHandle, Wallet
from .rest import RestChain

__all__ = [
    "ChainCli",
    "ChainConfig",
    "ChainHandle",
    "NetworkHandle",
    "RestChain",
    "Wallet",
]
