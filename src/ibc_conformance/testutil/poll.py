"""
Height-bounded polling.

Polling is the only way the harness waits for the relayer. The relayer
runs on its own schedule; the harness sleeps a fixed interval between
height checks and gives up once a chain passes the end of a height
window. That turns an open-ended asynchronous completion into a bounded
wait whose limit is expressed in blocks, not seconds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from ibc_conformance import config
from ibc_conformance.metrics import registry as metrics
from ibc_conformance.types import AckTimeoutError

if TYPE_CHECKING:
    from ibc_conformance.chain.handle import ChainHandle
    from ibc_conformance.transfer.packet import Packet, PacketAcknowledgement

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PollOutcome(Generic[T]):
    """Result of a height-bounded poll."""

    value: T | None
    """What the predicate returned on success, None on timeout."""

    last_height: int
    """The last height observed."""

    polls: int
    """How many times the predicate ran."""

    @property
    def satisfied(self) -> bool:
        """Whether the predicate succeeded within the window."""
        return self.value is not None


async def poll_until(
    predicate: Callable[[], Awaitable[T | None]],
    *,
    height: Callable[[], Awaitable[int]],
    max_height: int,
    interval: float | None = None,
) -> PollOutcome[T]:
    """
    Run ``predicate`` until it returns a value or ``height`` passes ``max_height``.

    Each step reads the height first, then runs the predicate. A value
    found in the same step that observed ``max_height`` still counts;
    the poll fails only once a step observes a height above the window.

    Args:
        predicate: Returns a value on success, None to keep waiting.
        height: Reads the current height of the chain being watched.
        max_height: Last height (inclusive) at which success is accepted.
        interval: Seconds to sleep between steps. Defaults to the configured cadence.

    Returns:
        The outcome. Query errors raised by either callable propagate unchanged.
    """
    interval = config.POLL_INTERVAL if interval is None else interval
    polls = 0

    while True:
        current = await height()
        value = await predicate()
        polls += 1

        if value is not None:
            return PollOutcome(value=value, last_height=current, polls=polls)

        if current > max_height:
            return PollOutcome(value=None, last_height=current, polls=polls)

        logger.debug("Poll %d: height=%d max=%d", polls, current, max_height)
        await asyncio.sleep(interval)


async def poll_for_ack(
    chain: ChainHandle,
    start_height: int,
    max_height: int,
    packet: Packet,
    interval: float | None = None,
) -> PacketAcknowledgement:
    """
    Wait for ``packet`` to be acknowledged on its source chain.

    Args:
        chain: The source chain of the packet.
        start_height: First height (inclusive) the ack may land at.
        max_height: Last height (inclusive) the ack may land at.
        packet: The packet to watch.
        interval: Seconds between polls.

    Returns:
        The observed acknowledgment.

    Raises:
        AckTimeoutError: If no ack lands within ``[start_height, max_height]``.
    """

    async def find() -> PacketAcknowledgement | None:
        return await chain.find_acknowledgement(packet, start_height, max_height)

    outcome = await poll_until(find, height=chain.height, max_height=max_height, interval=interval)

    if outcome.value is None:
        raise AckTimeoutError(
            chain.config.chain_id,
            packet.sequence,
            start_height=start_height,
            end_height=max_height,
            last_height=outcome.last_height,
        )

    ack = outcome.value
    metrics.ack_wait_blocks.observe(max(ack.height - start_height, 0))
    logger.info(
        "Packet %d on %s/%s acknowledged at height %d (%d polls)",
        packet.sequence,
        packet.source_port,
        packet.source_channel,
        ack.height,
        outcome.polls,
    )
    return ack


async def wait_for_blocks(
    delta: int,
    *chains: ChainHandle,
    interval: float | None = None,
) -> None:
    """
    Wait until every chain has produced ``delta`` more blocks.

    Chains advance independently, so each is watched on its own; the
    call returns when the slowest one has caught up.
    """
    interval = config.POLL_INTERVAL if interval is None else interval

    async def wait_one(chain: ChainHandle) -> None:
        target = await chain.height() + delta
        while await chain.height() < target:
            await asyncio.sleep(interval)

    await asyncio.gather(*(wait_one(chain) for chain in chains))
