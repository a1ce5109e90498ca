"""
Transfer scenario constants.

Height windows, settlement buffers, and the amounts used by the round-trip scenario.
"""

from __future__ import annotations

from typing import Final

TRANSFER_PORT: Final[str] = "transfer"
"""Port bound by the ICS-20 fungible token transfer module."""

DEFAULT_PATH: Final[str] = "ibc-path"
"""Relayer path name linking the two chains."""

OUTBOUND_ACK_WINDOW: Final[int] = 50
"""Blocks after submission in which the outbound (A -> B) ack must be observed."""

RETURN_ACK_WINDOW: Final[int] = 25
"""
Blocks after submission in which the return (B -> A) ack must be observed.

Shorter than the outbound window: by the return leg the relayer is
already running and has caught up with both chains.
"""

SETTLEMENT_BLOCKS: Final[int] = 10
"""
Blocks to wait after an ack before reading balances.

An ack proves the destination processed the packet, but some node
builds serve the balance index a few blocks behind. The magnitude is
empirical; anything comfortably larger than the indexing lag works.
"""

STARTUP_BLOCKS: Final[int] = 5
"""Blocks to wait after the link for user accounts to be created and the relayer to settle."""

GENESIS_WALLET_AMOUNT: Final[int] = 2_000_000_000_000
"""Balance each test user holds in the chain's native denom at scenario start."""

DEFAULT_TRANSFER_AMOUNT: Final[int] = 1_000
"""Amount moved in each direction of the round trip."""
