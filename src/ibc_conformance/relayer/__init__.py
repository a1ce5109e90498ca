"""
Relayer handles.

The ``RelayerHandle`` protocol lives here; implementations live in
``relayer.rly`` (the Go relayer) and ``localnet.relayer`` (in-process).
"""

from .handle import ChannelCounterparty, ChannelOutput, RelayerHandle

__all__ = [
    "ChannelCounterparty",
    "ChannelOutput",
    "RelayerHandle",
]
