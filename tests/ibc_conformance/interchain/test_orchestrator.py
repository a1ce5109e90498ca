"""Tests for topology build and teardown."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ibc_conformance.chain.handle import ChainConfig
from ibc_conformance.interchain import ChainSpec, NetworkOrchestrator, RelayerSpec
from ibc_conformance.localnet import LocalNetwork
from ibc_conformance.relayer import ChannelCounterparty, ChannelOutput
from ibc_conformance.types import InfrastructureError, RelayerError, TopologyBuildError
from tests.ibc_conformance.helpers import GAIA_USER, SEDA_USER, make_topology_spec


def channel(channel_id: str, counterparty_channel_id: str) -> ChannelOutput:
    return ChannelOutput(
        port_id="transfer",
        channel_id=channel_id,
        counterparty=ChannelCounterparty(port_id="transfer", channel_id=counterparty_channel_id),
    )


class FakeNetworks:
    """Network factory producing mock handles, optionally failing on one chain."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.created: list[MagicMock] = []
        self.stopped: list[str] = []

    async def create_network(self, spec: ChainSpec) -> MagicMock:
        if spec.chain_id == self.fail_on:
            raise InfrastructureError(f"{spec.chain_id} did not start")
        chain = MagicMock()
        chain.config = ChainConfig(name=spec.name, chain_id=spec.chain_id, denom=spec.denom)

        async def stop() -> None:
            self.stopped.append(spec.chain_id)

        chain.stop = AsyncMock(side_effect=stop)
        self.created.append(chain)
        return chain


class FakeRelayers:
    """Relayer factory handing out one mock relayer."""

    def __init__(self) -> None:
        self.relayer = MagicMock()
        for name in ("add_chain", "generate_path", "link_path", "start", "stop", "flush", "close"):
            setattr(self.relayer, name, AsyncMock())
        self.relayer.get_channels = AsyncMock(
            side_effect=lambda chain_id: (
                [channel("channel-0", "channel-1")]
                if chain_id == "seda-local-1"
                else [channel("channel-1", "channel-0")]
            )
        )
        self.specs: list[RelayerSpec] = []

    async def create_relayer(self, spec: RelayerSpec) -> MagicMock:
        self.specs.append(spec)
        return self.relayer


class TestBuild:
    """Tests for bringing a topology up."""

    @pytest.mark.asyncio
    async def test_build_registers_and_links(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        spec = make_topology_spec()

        topology = await NetworkOrchestrator(networks, relayers).build(spec)

        relayer = relayers.relayer
        assert relayer.add_chain.await_count == 2
        first_call = relayer.add_chain.await_args_list[0]
        assert first_call.args[0].chain_id == "seda-local-1"
        assert first_call.kwargs["key"] == "relayer"
        relayer.generate_path.assert_awaited_once_with("seda-local-1", "gaia-local-1", "ibc-path")
        relayer.link_path.assert_awaited_once_with("ibc-path")
        relayer.start.assert_not_awaited()

        assert list(topology.chains) == ["seda-local-1", "gaia-local-1"]
        assert topology.users == {"seda-local-1": SEDA_USER, "gaia-local-1": GAIA_USER}
        assert topology.channel.channel_id == "channel-0"
        assert relayers.specs == [spec.relayer]

    @pytest.mark.asyncio
    async def test_transfer_channel_views(self) -> None:
        topology = await NetworkOrchestrator(FakeNetworks(), FakeRelayers()).build(
            make_topology_spec()
        )

        ab = topology.transfer_channel("seda-local-1", "gaia-local-1")
        ba = topology.transfer_channel("gaia-local-1", "seda-local-1")

        assert (ab.channel_id, ab.counterparty.channel_id) == ("channel-0", "channel-1")
        assert (ba.channel_id, ba.counterparty.channel_id) == ("channel-1", "channel-0")
        with pytest.raises(InfrastructureError):
            topology.transfer_channel("seda-local-1", "osmo-local-1")

    @pytest.mark.asyncio
    async def test_network_failure_tears_down_created_chains(self) -> None:
        networks = FakeNetworks(fail_on="gaia-local-1")
        relayers = FakeRelayers()

        with pytest.raises(TopologyBuildError) as exc_info:
            await NetworkOrchestrator(networks, relayers).build(make_topology_spec())

        assert exc_info.value.stage == "create-network"
        assert networks.stopped == ["seda-local-1"]
        assert relayers.specs == []

    @pytest.mark.asyncio
    async def test_link_failure_tears_everything_down(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        relayers.relayer.link_path.side_effect = RelayerError("rly tx link", exit_code=1)

        with pytest.raises(TopologyBuildError) as exc_info:
            await NetworkOrchestrator(networks, relayers).build(make_topology_spec())

        assert exc_info.value.stage == "link-path"
        assert isinstance(exc_info.value.__cause__, RelayerError)
        relayers.relayer.stop.assert_awaited_once()
        relayers.relayer.close.assert_awaited_once()
        assert networks.stopped == ["gaia-local-1", "seda-local-1"]

    @pytest.mark.asyncio
    async def test_unmatched_channels_fail_confirmation(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        relayers.relayer.get_channels = AsyncMock(return_value=[channel("channel-0", "channel-9")])

        with pytest.raises(TopologyBuildError) as exc_info:
            await NetworkOrchestrator(networks, relayers).build(make_topology_spec())

        assert exc_info.value.stage == "confirm-link"
        assert len(networks.stopped) == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_not_wrapped(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        relayers.relayer.generate_path.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError, match="bug"):
            await NetworkOrchestrator(networks, relayers).build(make_topology_spec())

        assert len(networks.stopped) == 2

    @pytest.mark.asyncio
    async def test_cancelled_build_tears_down_created_chains(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        linking = asyncio.Event()

        async def hang(path: str) -> None:
            linking.set()
            await asyncio.sleep(60)

        relayers.relayer.link_path = AsyncMock(side_effect=hang)
        build = asyncio.create_task(
            NetworkOrchestrator(networks, relayers).build(make_topology_spec())
        )
        await asyncio.wait_for(linking.wait(), timeout=5.0)

        build.cancel()
        with pytest.raises(asyncio.CancelledError):
            await build

        relayers.relayer.stop.assert_awaited_once()
        relayers.relayer.close.assert_awaited_once()
        assert networks.stopped == ["gaia-local-1", "seda-local-1"]


class TestTeardown:
    """Tests for tearing topologies down."""

    @pytest.mark.asyncio
    async def test_teardown_failures_are_swallowed(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        orchestrator = NetworkOrchestrator(networks, relayers)
        topology = await orchestrator.build(make_topology_spec())
        relayers.relayer.stop.side_effect = RelayerError("rly stop")
        networks.created[1].stop.side_effect = RuntimeError("stuck")

        await orchestrator.teardown(topology)

        relayers.relayer.close.assert_awaited_once()
        assert networks.stopped == ["seda-local-1"]

    @pytest.mark.asyncio
    async def test_session_tears_down_on_error(self) -> None:
        networks, relayers = FakeNetworks(), FakeRelayers()
        orchestrator = NetworkOrchestrator(networks, relayers)

        with pytest.raises(ValueError, match="scenario failed"):
            async with orchestrator.session(make_topology_spec()):
                raise ValueError("scenario failed")

        relayers.relayer.close.assert_awaited_once()
        assert networks.stopped == ["gaia-local-1", "seda-local-1"]


class TestLocalTopology:
    """Tests for building over the local network."""

    @pytest.mark.asyncio
    async def test_local_session(self) -> None:
        network = LocalNetwork()

        async with NetworkOrchestrator(network, network).session(make_topology_spec()) as topology:
            chain_a, chain_b = topology.pair
            assert chain_a.config.chain_id == "seda-local-1"
            assert chain_b.config.chain_id == "gaia-local-1"
            assert topology.channel.is_open()
            assert network.chains["seda-local-1"].is_running

        assert not network.chains["seda-local-1"].is_running
        assert not network.chains["gaia-local-1"].is_running
