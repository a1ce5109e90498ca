"""
Capability surface over one running network.

The harness never talks to a chain binary or container directly. It
consumes the structural interface below, so the same scenario runs
against real nodes (`RestChain`) and the in-process local network.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import Field

from ibc_conformance.types import StrictBaseModel

if TYPE_CHECKING:
    from ibc_conformance.transfer.packet import (
        Packet,
        PacketAcknowledgement,
        TransferOptions,
        TransferTx,
        WalletAmount,
    )


class ChainConfig(StrictBaseModel):
    """Static identity of a network."""

    name: str
    """Short name used by the relayer and in logs (e.g. 'seda')."""

    chain_id: str
    """Chain identifier (e.g. 'seda-local-1')."""

    denom: str
    """Native staking/fee denomination (e.g. 'aseda')."""

    bech32_prefix: str = "cosmos"
    """Address prefix."""

    gas_prices: str = ""
    """Minimum gas prices string passed with transactions (e.g. '0.0aseda')."""

    gas_adjustment: float = Field(default=1.5, gt=0)
    """Multiplier applied to simulated gas."""


class Wallet(StrictBaseModel):
    """A funded account the harness may sign with."""

    key_name: str
    """Name of the key in the node's keyring."""

    address: str
    """Bech32 address of the key."""


@runtime_checkable
class ChainHandle(Protocol):
    """
    Protocol for one running network.

    All methods are coroutines; heights are block numbers on this chain
    only and carry no ordering relation to any other chain.
    """

    @property
    def config(self) -> ChainConfig:
        """Static identity of the network."""
        ...

    async def get_balance(self, address: str, denom: str) -> int:
        """
        Return the balance of ``address`` in ``denom``.

        Unknown denoms have a balance of zero.

        Raises:
            QueryError: If the node cannot be queried.
        """
        ...

    async def height(self) -> int:
        """
        Return the latest committed height.

        Raises:
            QueryError: If the node cannot be queried.
        """
        ...

    async def send_ibc_transfer(
        self,
        channel_id: str,
        sender: Wallet,
        amount: WalletAmount,
        options: TransferOptions,
    ) -> TransferTx:
        """
        Submit an ICS-20 transfer and wait for its inclusion.

        Args:
            channel_id: Source-side channel to send over.
            sender: Signing wallet.
            amount: Receiver, denom, and amount.
            options: Timeouts and memo.

        Returns:
            The included transaction and the packet it created.

        Raises:
            TransferSubmitError: If the transfer is rejected or fails on chain.
        """
        ...

    async def find_acknowledgement(
        self,
        packet: Packet,
        min_height: int,
        max_height: int,
    ) -> PacketAcknowledgement | None:
        """
        Look for the ack of ``packet`` processed within ``[min_height, max_height]``.

        Returns:
            The acknowledgment, or None when none was processed in the range.
        """
        ...


@runtime_checkable
class NetworkHandle(ChainHandle, Protocol):
    """A chain handle whose lifecycle the harness owns."""

    async def stop(self) -> None:
        """Tear the network down (or detach from it) and release resources."""
        ...
