"""
ICS-20 transfer semantics and the round-trip scenario.

Provides:
- Denom trace derivation (``derive_ibc_denom`` and helpers)
- Packet and transfer records
- TransferConformanceRunner: the round-trip scenario
"""

from .denom import (
    DenomTrace,
    derive_ibc_denom,
    get_prefixed_denom,
    parse_denom_trace,
    receiver_chain_is_source,
)
from .packet import (
    FungibleTokenPacketData,
    Packet,
    PacketAcknowledgement,
    TransferOptions,
    TransferTx,
    WalletAmount,
)
from .runner import LegReport, RoundTripReport, TransferConformanceRunner

__all__ = [
    # Denoms
    "DenomTrace",
    "derive_ibc_denom",
    "get_prefixed_denom",
    "parse_denom_trace",
    "receiver_chain_is_source",
    # Packets
    "FungibleTokenPacketData",
    "Packet",
    "PacketAcknowledgement",
    "TransferOptions",
    "TransferTx",
    "WalletAmount",
    # Scenario
    "LegReport",
    "RoundTripReport",
    "TransferConformanceRunner",
]
