"""
In-process relayer for local chains.

Relaying is a background task that, on every pass, delivers each
pending packet to its destination and carries the written
acknowledgment back to the source. Two knobs inject faults:

- ``deliver_acks=False``: packets are received but acks never return,
  so the source never sees its packet acknowledged.
- ``ack_delay_blocks``: an ack is only carried back once the
  destination has produced that many blocks since writing it.

A relay pass that raises ends relaying. The error is kept and raised
as a ``RelayerError`` by the next ``start`` or ``stop``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from ibc_conformance.chain.handle import ChainConfig
from ibc_conformance.relayer.handle import ChannelOutput
from ibc_conformance.types import RelayerError

if TYPE_CHECKING:
    from .chain import LocalChain
    from .network import LocalNetwork

logger = logging.getLogger(__name__)


class LocalRelayer:
    """
    ``RelayerHandle`` over chains of one ``LocalNetwork``.

    Args:
        network: Registry of the chains this relayer may register.
        relay_interval: Seconds between relay passes.
        deliver_acks: Whether acknowledgments are carried back to the source.
        ack_delay_blocks: Destination blocks an ack waits before it is relayed.
    """

    def __init__(
        self,
        network: LocalNetwork,
        relay_interval: float = 0.05,
        deliver_acks: bool = True,
        ack_delay_blocks: int = 0,
    ) -> None:
        self.network = network
        self.relay_interval = relay_interval
        self.deliver_acks = deliver_acks
        self.ack_delay_blocks = ack_delay_blocks

        self._chains: dict[str, LocalChain] = {}
        self._paths: dict[str, tuple[str, str]] = {}
        self._links: dict[str, tuple[str, str]] = {}
        self._task: asyncio.Task[None] | None = None
        # Error that ended the relaying task, until reported by start or stop.
        self.failure: Exception | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    async def add_chain(self, chain: ChainConfig, **settings: str) -> None:
        local = self.network.chains.get(chain.chain_id)
        if local is None:
            raise RelayerError(f"chains add {chain.name}", output="no such local chain")
        self._chains[chain.chain_id] = local

    async def generate_path(self, src_chain_id: str, dst_chain_id: str, path: str) -> None:
        for chain_id in (src_chain_id, dst_chain_id):
            if chain_id not in self._chains:
                raise RelayerError(f"paths new {path}", output=f"chain {chain_id} not added")
        self._paths[path] = (src_chain_id, dst_chain_id)

    async def link_path(self, path: str) -> None:
        if path not in self._paths:
            raise RelayerError(f"tx link {path}", output="no such path")
        if path in self._links:
            return

        src_id, dst_id = self._paths[path]
        src, dst = self._chains[src_id], self._chains[dst_id]

        src_end = src.open_channel(dst_id)
        dst_end = dst.open_channel(src_id)
        src.connect_channel(src_end.channel_id, dst_end.channel_id)
        dst.connect_channel(dst_end.channel_id, src_end.channel_id)

        self._links[path] = (src_end.channel_id, dst_end.channel_id)
        logger.info(
            "Linked path %s: %s/%s <-> %s/%s",
            path,
            src_id,
            src_end.channel_id,
            dst_id,
            dst_end.channel_id,
        )

    async def get_channels(self, chain_id: str) -> list[ChannelOutput]:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise RelayerError(f"q channels {chain_id}", output="chain not added")
        return chain.channels()

    # -------------------------------------------------------------------------
    # Relaying
    # -------------------------------------------------------------------------

    def relay_once(self, path: str) -> int:
        """
        Run one relay pass over both directions of ``path``.

        Returns:
            The number of acknowledgments delivered.

        Raises:
            RelayerError: If the path is not linked.
        """
        if path not in self._links:
            raise RelayerError(f"relay {path}", output="path not linked")

        src_id, dst_id = self._paths[path]
        src_channel, dst_channel = self._links[path]
        src, dst = self._chains[src_id], self._chains[dst_id]

        delivered = self._relay_direction(src, src_channel, dst)
        delivered += self._relay_direction(dst, dst_channel, src)
        return delivered

    def _relay_direction(self, source: LocalChain, channel_id: str, destination: LocalChain) -> int:
        delivered = 0
        for packet in source.pending_packets(channel_id):
            written = destination.written_acknowledgement(
                packet.destination_channel, packet.sequence
            )
            if written is None:
                destination.recv_packet(packet)
                written = destination.written_acknowledgement(
                    packet.destination_channel, packet.sequence
                )
                assert written is not None

            ack, written_at = written
            if not self.deliver_acks:
                continue
            if destination.current_height < written_at + self.ack_delay_blocks:
                continue

            if source.acknowledge_packet(packet, ack) is not None:
                delivered += 1
        return delivered

    async def _relay_loop(self, path: str) -> None:
        while True:
            try:
                self.relay_once(path)
            except Exception as exc:
                logger.exception("Relay pass on %s failed, relaying stopped", path)
                self.failure = exc
                return
            await asyncio.sleep(self.relay_interval)

    def _raise_failure(self, command: str) -> None:
        failure, self.failure = self.failure, None
        if failure is not None:
            raise RelayerError(command, output=f"relay pass failed: {failure!r}") from failure

    async def start(self, path: str) -> None:
        if path not in self._links:
            raise RelayerError(f"start {path}", output="path not linked")
        self._raise_failure(f"start {path}")
        if self.is_running:
            return
        self._task = asyncio.create_task(self._relay_loop(path))
        logger.info("Local relayer started on path %s", path)

    async def stop(self) -> None:
        """
        Stop relaying.

        Raises:
            RelayerError: If a relay pass had failed and ended relaying early.
        """
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.info("Local relayer stopped")
        self._raise_failure("stop")

    async def flush(self, path: str, channel_id: str) -> None:
        if path not in self._links or channel_id not in self._links[path]:
            raise RelayerError(f"tx flush {path} {channel_id}", output="channel not on path")
        self.relay_once(path)

    async def close(self) -> None:
        await self.stop()
