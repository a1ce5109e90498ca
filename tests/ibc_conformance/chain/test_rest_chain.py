"""Tests for the REST/CLI backed chain handle."""

from __future__ import annotations

from itertools import count
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ibc_conformance.chain import ChainConfig, RestChain
from ibc_conformance.query import NodeQueryClient
from ibc_conformance.transfer.packet import TransferOptions, WalletAmount
from ibc_conformance.types import CommandError, TransferSubmitError, TxFailedError
from tests.ibc_conformance.helpers import (
    GAIA_USER,
    SEDA_USER,
    NodeRouter,
    make_packet,
    make_tx_json,
)

LATEST_BLOCK = "/cosmos/base/tendermint/v1beta1/blocks/latest"


@pytest.fixture
def router() -> NodeRouter:
    router = NodeRouter()
    heights = count(100)

    def latest(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"block": {"header": {"height": str(next(heights))}}})

    router.add(LATEST_BLOCK, latest)
    return router


@pytest.fixture
def cli() -> MagicMock:
    cli = MagicMock()
    cli.tx = AsyncMock(return_value={"txhash": "ABCD", "code": 0, "raw_log": ""})
    return cli


@pytest.fixture
def chain(router: NodeRouter, cli: MagicMock) -> RestChain:
    config = ChainConfig(name="seda", chain_id="seda-local-1", denom="aseda")
    query = NodeQueryClient("http://node:1317", router.client(), chain_id=config.chain_id)
    return RestChain(config, query, cli)


def send_packet_tx(height: int = 101) -> dict:
    packet = make_packet(sequence=9)
    return {
        "tx_response": make_tx_json(
            height=height,
            txhash="ABCD",
            events=[
                ("message", {"action": "transfer"}),
                ("send_packet", packet.to_event_attributes()),
            ],
        )
    }


class TestReads:
    """Tests for balance and height reads."""

    @pytest.mark.asyncio
    async def test_balance(self, router: NodeRouter, chain: RestChain) -> None:
        router.add_json(
            "/cosmos/bank/v1beta1/balances/seda1user/by_denom",
            {"balance": {"denom": "aseda", "amount": "17"}},
        )

        assert await chain.get_balance("seda1user", "aseda") == 17

    @pytest.mark.asyncio
    async def test_height(self, chain: RestChain) -> None:
        assert await chain.height() == 100
        assert await chain.height() == 101


class TestSendTransfer:
    """Tests for submitting ICS-20 transfers."""

    @pytest.mark.asyncio
    async def test_transfer_returns_packet(
        self, router: NodeRouter, cli: MagicMock, chain: RestChain
    ) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs/ABCD", send_packet_tx(height=101))
        amount = WalletAmount(address=GAIA_USER.address, denom="aseda", amount=1_000)

        result = await chain.send_ibc_transfer("channel-0", SEDA_USER, amount, TransferOptions())

        assert result.tx_hash == "ABCD"
        assert result.height == 101
        assert result.packet == make_packet(sequence=9)
        cli.tx.assert_awaited_once_with(
            SEDA_USER,
            "ibc-transfer",
            "transfer",
            "transfer",
            "channel-0",
            GAIA_USER.address,
            "1000aseda",
        )

    @pytest.mark.asyncio
    async def test_transfer_options_become_flags(
        self, router: NodeRouter, cli: MagicMock, chain: RestChain
    ) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs/ABCD", send_packet_tx())
        amount = WalletAmount(address=GAIA_USER.address, denom="aseda", amount=5)
        options = TransferOptions(timeout_height=900, timeout_timestamp_ns=0, memo="hi")

        await chain.send_ibc_transfer("channel-0", SEDA_USER, amount, options)

        args = cli.tx.await_args.args
        assert args[-6:] == (
            "--packet-timeout-height",
            "0-900",
            "--packet-timeout-timestamp",
            "0",
            "--memo",
            "hi",
        )

    @pytest.mark.asyncio
    async def test_missing_send_packet_event(self, router: NodeRouter, chain: RestChain) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs/ABCD", {"tx_response": make_tx_json()})
        amount = WalletAmount(address=GAIA_USER.address, denom="aseda", amount=5)

        with pytest.raises(TransferSubmitError, match="no send_packet event"):
            await chain.send_ibc_transfer("channel-0", SEDA_USER, amount, TransferOptions())


class TestBroadcast:
    """Tests for broadcast and inclusion failures."""

    @pytest.mark.asyncio
    async def test_cli_failure_is_submit_error(self, cli: MagicMock, chain: RestChain) -> None:
        cli.tx.side_effect = CommandError("sedad tx", exit_code=1, output="key not found")

        with pytest.raises(TransferSubmitError, match="key not found") as exc_info:
            await chain.broadcast(SEDA_USER, "bank", "send")

        assert exc_info.value.chain_id == "seda-local-1"

    @pytest.mark.asyncio
    async def test_check_tx_rejection(self, cli: MagicMock, chain: RestChain) -> None:
        cli.tx.return_value = {"txhash": "ABCD", "code": 5, "raw_log": "insufficient funds"}

        with pytest.raises(TxFailedError) as exc_info:
            await chain.broadcast(SEDA_USER, "bank", "send")

        assert exc_info.value.code == 5

    @pytest.mark.asyncio
    async def test_missing_hash(self, cli: MagicMock, chain: RestChain) -> None:
        cli.tx.return_value = {"code": 0}

        with pytest.raises(TransferSubmitError, match="no tx hash"):
            await chain.broadcast(SEDA_USER, "bank", "send")

    @pytest.mark.asyncio
    async def test_failed_delivery(self, router: NodeRouter, chain: RestChain) -> None:
        router.add_json(
            "/cosmos/tx/v1beta1/txs/ABCD",
            {"tx_response": make_tx_json(code=11, raw_log="out of gas")},
        )

        with pytest.raises(TxFailedError, match="out of gas"):
            await chain.broadcast(SEDA_USER, "bank", "send")

    @pytest.mark.asyncio
    async def test_never_included(self, chain: RestChain) -> None:
        with pytest.raises(TransferSubmitError, match="not included"):
            await chain.broadcast(SEDA_USER, "bank", "send")

    @pytest.mark.asyncio
    async def test_included_after_a_few_blocks(self, router: NodeRouter, chain: RestChain) -> None:
        lookups = count()
        payload = send_packet_tx()

        def tx_lookup(_request: httpx.Request) -> httpx.Response:
            if next(lookups) < 3:
                return httpx.Response(404, json={"code": 5, "message": "tx not found"})
            return httpx.Response(200, json=payload)

        router.add("/cosmos/tx/v1beta1/txs/ABCD", tx_lookup)

        tx = await chain.broadcast(SEDA_USER, "bank", "send")

        assert tx.txhash == "ABCD"


class TestFindAcknowledgement:
    """Tests for locating ack transactions."""

    @pytest.fixture
    def ack_router(self, router: NodeRouter) -> NodeRouter:
        packet = make_packet(sequence=9)
        ack = {
            k: v for k, v in packet.to_event_attributes().items() if k != "packet_data"
        }
        other = {**ack, "packet_sequence": "8"}
        router.add_json(
            "/cosmos/tx/v1beta1/txs",
            {
                "tx_responses": [
                    make_tx_json(
                        height=14, txhash="FAILED", code=1, events=[("acknowledge_packet", ack)]
                    ),
                    make_tx_json(height=15, txhash="OTHER", events=[("acknowledge_packet", other)]),
                    make_tx_json(height=16, txhash="ACK", events=[("acknowledge_packet", ack)]),
                ]
            },
        )
        return router

    @pytest.mark.asyncio
    async def test_ack_in_window(self, ack_router: NodeRouter, chain: RestChain) -> None:
        ack = await chain.find_acknowledgement(make_packet(sequence=9), 10, 20)

        assert ack is not None
        assert ack.height == 16
        assert ack.tx_hash == "ACK"
        query = ack_router.requests[0].url.params["query"]
        assert "acknowledge_packet.packet_sequence='9'" in query
        assert "acknowledge_packet.packet_src_channel='channel-0'" in query

    @pytest.mark.asyncio
    async def test_ack_outside_window(self, ack_router: NodeRouter, chain: RestChain) -> None:
        assert await chain.find_acknowledgement(make_packet(sequence=9), 17, 40) is None

    @pytest.mark.asyncio
    async def test_no_ack_yet(self, router: NodeRouter, chain: RestChain) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs", {"tx_responses": []})

        assert await chain.find_acknowledgement(make_packet(), 1, 100) is None


class TestContracts:
    """Tests for CosmWasm operations."""

    @pytest.mark.asyncio
    async def test_store_returns_code_id(
        self, router: NodeRouter, cli: MagicMock, chain: RestChain
    ) -> None:
        router.add_json(
            "/cosmos/tx/v1beta1/txs/ABCD",
            {"tx_response": make_tx_json(events=[("store_code", {"code_id": "3"})])},
        )

        code_id = await chain.store_contract(SEDA_USER, Path("counter.wasm"))

        assert code_id == "3"
        assert cli.tx.await_args.args == (SEDA_USER, "wasm", "store", "counter.wasm")

    @pytest.mark.asyncio
    async def test_instantiate_returns_address(
        self, router: NodeRouter, cli: MagicMock, chain: RestChain
    ) -> None:
        router.add_json(
            "/cosmos/tx/v1beta1/txs/ABCD",
            {
                "tx_response": make_tx_json(
                    events=[("instantiate", {"_contract_address": "seda1contract", "code_id": "3"})]
                )
            },
        )

        address = await chain.instantiate_contract(SEDA_USER, "3", '{"count":0}', "counter")

        assert address == "seda1contract"
        assert "--no-admin" in cli.tx.await_args.args

    @pytest.mark.asyncio
    async def test_missing_event_attribute(self, router: NodeRouter, chain: RestChain) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs/ABCD", {"tx_response": make_tx_json()})

        with pytest.raises(TransferSubmitError, match="no store_code event"):
            await chain.store_contract(SEDA_USER, Path("counter.wasm"))

    @pytest.mark.asyncio
    async def test_execute_passes_fees(
        self, router: NodeRouter, cli: MagicMock, chain: RestChain
    ) -> None:
        router.add_json("/cosmos/tx/v1beta1/txs/ABCD", {"tx_response": make_tx_json()})

        await chain.execute_contract(SEDA_USER, "seda1contract", '{"increment":{}}', "10000aseda")

        assert cli.tx.await_args.args[-2:] == ("--fees", "10000aseda")


class TestLifecycle:
    """Tests for releasing the handle."""

    @pytest.mark.asyncio
    async def test_stop_closes_http_client(self, chain: RestChain) -> None:
        await chain.stop()

        assert chain.query.http.is_closed
