"""Transfer channel resolution between two linked chains."""

from __future__ import annotations

import logging

from ibc_conformance.relayer.handle import ChannelOutput, RelayerHandle
from ibc_conformance.transfer.config import TRANSFER_PORT
from ibc_conformance.types import InfrastructureError

logger = logging.getLogger(__name__)


def find_transfer_channel(
    src_channels: list[ChannelOutput],
    dst_channels: list[ChannelOutput],
) -> ChannelOutput | None:
    """
    Find an open transfer channel end whose counterparty is listed on the other chain.

    Both ends must point at each other. A chain can have several transfer
    channels to different counterparties, so matching on the port alone
    is not enough.

    Returns:
        The source-side channel end, or None when no pair lines up.
    """
    for src in src_channels:
        if src.port_id != TRANSFER_PORT or not src.is_open():
            continue
        for dst in dst_channels:
            if (
                dst.port_id == src.counterparty.port_id
                and dst.channel_id == src.counterparty.channel_id
                and dst.counterparty.channel_id == src.channel_id
                and dst.is_open()
            ):
                return src
    return None


async def get_transfer_channel(
    relayer: RelayerHandle,
    src_chain_id: str,
    dst_chain_id: str,
) -> ChannelOutput:
    """
    Resolve the open transfer channel from ``src_chain_id`` to ``dst_chain_id``.

    Returns:
        The channel end on the source chain; its counterparty is the destination end.

    Raises:
        InfrastructureError: If no matching open channel pair exists.
    """
    src_channels = await relayer.get_channels(src_chain_id)
    dst_channels = await relayer.get_channels(dst_chain_id)

    channel = find_transfer_channel(src_channels, dst_channels)
    if channel is None:
        raise InfrastructureError(
            f"No open transfer channel between {src_chain_id} and {dst_chain_id} "
            f"({len(src_channels)} and {len(dst_channels)} channel ends listed)"
        )

    logger.info(
        "Transfer channel %s/%s on %s <-> %s/%s on %s",
        channel.port_id,
        channel.channel_id,
        src_chain_id,
        channel.counterparty.port_id,
        channel.counterparty.channel_id,
        dst_chain_id,
    )
    return channel
