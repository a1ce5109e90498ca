"""Tests for the local network factories."""

from __future__ import annotations

import pytest

from ibc_conformance.interchain import RelayerSpec
from ibc_conformance.localnet import LocalNetwork
from ibc_conformance.transfer.config import GENESIS_WALLET_AMOUNT
from ibc_conformance.types import InfrastructureError
from tests.ibc_conformance.helpers import SEDA_USER, make_chain_spec


class TestCreateNetwork:
    """Tests for bringing local chains up."""

    @pytest.mark.asyncio
    async def test_funds_scenario_account(self) -> None:
        network = LocalNetwork()

        chain = await network.create_network(make_chain_spec())
        try:
            assert chain.is_running
            assert chain.balance(SEDA_USER.address, "aseda") == GENESIS_WALLET_AMOUNT
            assert network.chains["seda-local-1"] is chain
        finally:
            await chain.stop()

    @pytest.mark.asyncio
    async def test_default_wallet(self) -> None:
        network = LocalNetwork()

        chain = await network.create_network(make_chain_spec(user=None, user_balance=5))
        try:
            assert chain.balance("seda1sedauser", "aseda") == 5
        finally:
            await chain.stop()

    @pytest.mark.asyncio
    async def test_running_chain_id_is_rejected(self) -> None:
        network = LocalNetwork()
        chain = await network.create_network(make_chain_spec())
        try:
            with pytest.raises(InfrastructureError, match="already running"):
                await network.create_network(make_chain_spec())
        finally:
            await chain.stop()

    @pytest.mark.asyncio
    async def test_stopped_chain_can_be_recreated(self) -> None:
        network = LocalNetwork()
        first = await network.create_network(make_chain_spec())
        await first.stop()

        second = await network.create_network(make_chain_spec())
        await second.stop()

        assert second is not first


class TestCreateRelayer:
    """Tests for the local relayer factory."""

    @pytest.mark.asyncio
    async def test_passes_fault_knobs(self) -> None:
        network = LocalNetwork()

        relayer = await network.create_relayer(
            RelayerSpec(kind="local", relay_interval=0.5, deliver_acks=False, ack_delay_blocks=3)
        )

        assert relayer.network is network
        assert relayer.relay_interval == 0.5
        assert relayer.deliver_acks is False
        assert relayer.ack_delay_blocks == 3
