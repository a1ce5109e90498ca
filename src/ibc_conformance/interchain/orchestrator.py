"""
Topology construction and teardown.

``NetworkOrchestrator.build`` brings every network up, creates the
relayer, registers the chains with it, and links the named path. It
returns only once a transfer channel pair is resolvable. A failure at
any stage tears down whatever was already created and raises
``TopologyBuildError`` naming the stage.

``session`` wraps build and teardown in an async context manager, so
the relayer and networks are stopped on every exit path. Teardown
failures are logged and swallowed; they never replace the error that
ended the scenario.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from ibc_conformance.chain.handle import NetworkHandle, Wallet
from ibc_conformance.relayer.handle import ChannelCounterparty, ChannelOutput, RelayerHandle
from ibc_conformance.types import ConformanceError, InfrastructureError, TopologyBuildError

from .bootstrap import NetworkFactory, RelayerFactory
from .channel import get_transfer_channel
from .spec import TopologySpec

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LinkedTopology:
    """Running networks joined by a relayer path."""

    spec: TopologySpec
    """The spec the topology was built from."""

    chains: dict[str, NetworkHandle]
    """Handles by chain id, in spec order."""

    users: dict[str, Wallet]
    """Scenario account on each chain, by chain id."""

    relayer: RelayerHandle
    """The relayer linking the first two chains."""

    path: str
    """Name of the linked path."""

    channel: ChannelOutput
    """Transfer channel end on the first chain; its counterparty is on the second."""

    @property
    def pair(self) -> tuple[NetworkHandle, NetworkHandle]:
        """The two chains the path links (A, B)."""
        a, b = self.spec.pair
        return self.chains[a.chain_id], self.chains[b.chain_id]

    def transfer_channel(self, src_chain_id: str, dst_chain_id: str) -> ChannelOutput:
        """
        The channel end to send on from ``src_chain_id`` to ``dst_chain_id``.

        Raises:
            InfrastructureError: If the two chains are not the linked pair.
        """
        a, b = self.spec.pair
        if (src_chain_id, dst_chain_id) == (a.chain_id, b.chain_id):
            return self.channel
        if (src_chain_id, dst_chain_id) == (b.chain_id, a.chain_id):
            return ChannelOutput(
                state=self.channel.state,
                ordering=self.channel.ordering,
                version=self.channel.version,
                port_id=self.channel.counterparty.port_id,
                channel_id=self.channel.counterparty.channel_id,
                counterparty=ChannelCounterparty(
                    port_id=self.channel.port_id, channel_id=self.channel.channel_id
                ),
            )
        raise InfrastructureError(
            f"No linked channel from {src_chain_id} to {dst_chain_id} on path {self.path}"
        )


class NetworkOrchestrator:
    """
    Builds and tears down topologies.

    Args:
        network_factory: Creates each network.
        relayer_factory: Creates the relayer.
    """

    def __init__(self, network_factory: NetworkFactory, relayer_factory: RelayerFactory) -> None:
        self.network_factory = network_factory
        self.relayer_factory = relayer_factory

    async def build(self, spec: TopologySpec) -> LinkedTopology:
        """
        Bring a topology up and link its path.

        No stage is retried.

        Raises:
            TopologyBuildError: If a network or the relayer fails to start, or
                the path cannot be linked. Everything created so far is torn
                down first, also when the build is cancelled or interrupted.
        """
        chains: dict[str, NetworkHandle] = {}
        relayer: RelayerHandle | None = None
        stage = "create-network"

        try:
            for chain_spec in spec.chains:
                chains[chain_spec.chain_id] = await self.network_factory.create_network(chain_spec)
                logger.info("Network %s is up", chain_spec.chain_id)

            stage = "create-relayer"
            relayer = await self.relayer_factory.create_relayer(spec.relayer)

            stage = "add-chain"
            for chain_spec in spec.chains:
                await relayer.add_chain(chain_spec.to_config(), **chain_spec.relayer_settings())

            a, b = spec.pair
            stage = "generate-path"
            await relayer.generate_path(a.chain_id, b.chain_id, spec.path)

            stage = "link-path"
            await relayer.link_path(spec.path)

            stage = "confirm-link"
            channel = await get_transfer_channel(relayer, a.chain_id, b.chain_id)
        except BaseException as exc:
            # Cancellation and interrupts still tear down what is already up.
            logger.error("Topology build failed during %s: %r", stage, exc)
            await self._teardown(relayer, chains)
            if isinstance(exc, (ConformanceError, OSError)):
                raise TopologyBuildError(stage, str(exc)) from exc
            raise

        logger.info("Topology linked on path %s", spec.path)
        return LinkedTopology(
            spec=spec,
            chains=chains,
            users={chain_spec.chain_id: chain_spec.wallet() for chain_spec in spec.chains},
            relayer=relayer,
            path=spec.path,
            channel=channel,
        )

    async def teardown(self, topology: LinkedTopology) -> None:
        """Stop the relayer, then every network. Never raises."""
        await self._teardown(topology.relayer, topology.chains)

    async def _teardown(
        self,
        relayer: RelayerHandle | None,
        chains: dict[str, NetworkHandle],
    ) -> None:
        if relayer is not None:
            try:
                await relayer.stop()
            except Exception:
                logger.exception("Stopping the relayer failed")
            try:
                await relayer.close()
            except Exception:
                logger.exception("Closing the relayer failed")

        for chain_id, chain in reversed(chains.items()):
            try:
                await chain.stop()
            except Exception:
                logger.exception("Teardown of network %s failed", chain_id)

    @asynccontextmanager
    async def session(self, spec: TopologySpec) -> AsyncIterator[LinkedTopology]:
        """Build a topology and guarantee its teardown."""
        topology = await self.build(spec)
        try:
            yield topology
        finally:
            await self.teardown(topology)
