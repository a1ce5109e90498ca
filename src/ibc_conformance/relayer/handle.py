"""
Capability surface over the relaying process.

The relayer watches both chains and forwards packets and acks between
them. Its scheduling is opaque: the harness starts and stops it and
otherwise only observes its effects through chain state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import Field

from ibc_conformance.types import ResponseModel

if TYPE_CHECKING:
    from ibc_conformance.chain.handle import ChainConfig


class ChannelCounterparty(ResponseModel):
    """The far end of a channel."""

    port_id: str
    """Port on the counterparty chain."""

    channel_id: str
    """Channel on the counterparty chain."""


class ChannelOutput(ResponseModel):
    """One end of a channel, as reported by the relayer."""

    state: str = "STATE_OPEN"
    """Channel state."""

    ordering: str = "ORDER_UNORDERED"
    """Packet ordering."""

    version: str = "ics20-1"
    """Negotiated application version."""

    port_id: str
    """Port on this chain."""

    channel_id: str
    """Channel on this chain."""

    counterparty: ChannelCounterparty
    """Port and channel on the other chain."""

    connection_hops: list[str] = Field(default_factory=list)
    """Connections the channel is built on."""

    def is_open(self) -> bool:
        """Whether the handshake has completed."""
        return self.state in ("STATE_OPEN", "OPEN")


@runtime_checkable
class RelayerHandle(Protocol):
    """
    Protocol for a relayer.

    Implementations may be an external process or an in-process task.
    """

    @property
    def is_running(self) -> bool:
        """Whether continuous relaying is active."""
        ...

    async def add_chain(self, chain: ChainConfig, **settings: str) -> None:
        """
        Register a chain with the relayer.

        Args:
            chain: Chain identity.
            settings: Implementation-specific connection settings (RPC address, key).

        Raises:
            RelayerError: If the relayer rejects the chain.
        """
        ...

    async def generate_path(self, src_chain_id: str, dst_chain_id: str, path: str) -> None:
        """
        Declare a named path between two registered chains.

        Raises:
            RelayerError: If the path cannot be created.
        """
        ...

    async def link_path(self, path: str) -> None:
        """
        Create clients, a connection, and a transfer channel on ``path``.

        Returns only when the channel handshake has completed.

        Raises:
            RelayerError: If any handshake step fails.
        """
        ...

    async def get_channels(self, chain_id: str) -> list[ChannelOutput]:
        """
        List channel ends on a chain.

        Raises:
            RelayerError: If the channels cannot be queried.
        """
        ...

    async def start(self, path: str) -> None:
        """
        Begin continuous relaying on ``path`` in the background.

        Raises:
            RelayerError: If relaying cannot be started.
        """
        ...

    async def stop(self) -> None:
        """Stop continuous relaying. Safe to call when not running."""
        ...

    async def flush(self, path: str, channel_id: str) -> None:
        """
        Relay every pending packet and ack on a channel once.

        Manual flushing belongs to the relayer; the transfer runner never calls it.
        """
        ...

    async def close(self) -> None:
        """Release everything the relayer holds (processes, temp dirs)."""
        ...
