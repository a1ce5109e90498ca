"""Tests for the REST facade over local chains, read through the typed client."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest

from ibc_conformance.chain.cli import ChainCli
from ibc_conformance.chain.handle import ChainConfig
from ibc_conformance.chain.rest import RestChain
from ibc_conformance.localnet import Acknowledgement, LocalChain, LocalChainApi
from ibc_conformance.localnet.api import parse_event_query
from ibc_conformance.query import NodeQueryClient
from ibc_conformance.transfer.denom import derive_ibc_denom
from ibc_conformance.transfer.packet import TransferOptions, TransferTx, WalletAmount
from ibc_conformance.types import QueryError
from tests.ibc_conformance.helpers import GAIA_USER, SEDA_USER


@pytest.fixture
async def seda_api(
    linked_chains: tuple[LocalChain, LocalChain],
) -> AsyncGenerator[LocalChainApi, None]:
    seda, _ = linked_chains
    api = LocalChainApi(seda)
    await api.start()
    yield api
    await api.stop()


@pytest.fixture
async def client(seda_api: LocalChainApi) -> AsyncGenerator[NodeQueryClient, None]:
    async with NodeQueryClient.connect(seda_api.url, chain_id="seda-local-1") as client:
        yield client


async def send(chain: LocalChain, amount: int = 1_000) -> TransferTx:
    return await chain.send_ibc_transfer(
        "channel-0",
        SEDA_USER,
        WalletAmount(address=GAIA_USER.address, denom="aseda", amount=amount),
        TransferOptions(),
    )


class TestEventQueryParsing:
    """Tests for CometBFT event query parsing."""

    def test_and_joined_conditions(self) -> None:
        query = "acknowledge_packet.packet_src_port='transfer' AND tx.height = '5'"

        assert parse_event_query(query) == {
            "acknowledge_packet.packet_src_port": "transfer",
            "tx.height": "5",
        }

    @pytest.mark.parametrize("query", ["", "tx.height>5", "height='5'"])
    def test_unsupported_conditions(self, query: str) -> None:
        with pytest.raises(ValueError):
            parse_event_query(query)


class TestServer:
    """Tests for the server lifecycle."""

    @pytest.mark.asyncio
    async def test_url_requires_running_server(self, seda_config: ChainConfig) -> None:
        api = LocalChainApi(LocalChain(seda_config))

        with pytest.raises(RuntimeError):
            _ = api.url

    @pytest.mark.asyncio
    async def test_url_has_bound_port(self, seda_api: LocalChainApi) -> None:
        assert seda_api.url.startswith("http://127.0.0.1:")
        assert not seda_api.url.endswith(":0")


class TestQueries:
    """Tests for each served endpoint."""

    @pytest.mark.asyncio
    async def test_balance_and_height(
        self, client: NodeQueryClient, linked_chains: tuple[LocalChain, LocalChain]
    ) -> None:
        seda, _ = linked_chains
        seda.advance(4)

        assert await client.query_balance(SEDA_USER.address, "aseda") == 1_000_000
        assert await client.query_balance(SEDA_USER.address, "uatom") == 0
        assert await client.query_latest_height() == 5

    @pytest.mark.asyncio
    async def test_balance_without_denom(self, seda_api: LocalChainApi) -> None:
        async with httpx.AsyncClient() as http:
            response = await http.get(
                f"{seda_api.url}/cosmos/bank/v1beta1/balances/{SEDA_USER.address}/by_denom"
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_tx_by_hash(
        self, client: NodeQueryClient, linked_chains: tuple[LocalChain, LocalChain]
    ) -> None:
        seda, _ = linked_chains
        sent = await send(seda)

        tx = await client.query_successful_tx(sent.tx_hash)

        assert tx.height == sent.height
        assert tx.events_of_type("send_packet")[0]["packet_sequence"] == "1"

    @pytest.mark.asyncio
    async def test_missing_tx_is_not_found(self, client: NodeQueryClient) -> None:
        with pytest.raises(QueryError) as exc_info:
            await client.query_tx("00FF")

        assert exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_tx_search(
        self, client: NodeQueryClient, linked_chains: tuple[LocalChain, LocalChain]
    ) -> None:
        seda, _ = linked_chains
        await send(seda)
        await send(seda)

        txs = await client.search_txs("send_packet.packet_sequence='2'")
        assert len(txs) == 1
        assert len(await client.search_txs("send_packet.packet_src_port='transfer'", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_invalid_search_query(self, client: NodeQueryClient) -> None:
        with pytest.raises(QueryError) as exc_info:
            await client.search_txs("height > 5")

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_channels(self, client: NodeQueryClient) -> None:
        result = await client.query_channels()

        assert [c.channel_id for c in result.channels] == ["channel-0"]
        assert result.channels[0].is_open()

    @pytest.mark.asyncio
    async def test_denom_trace(self, linked_chains: tuple[LocalChain, LocalChain]) -> None:
        seda, gaia = linked_chains
        gaia.recv_packet((await send(seda)).packet)
        voucher = derive_ibc_denom("transfer", "channel-0", "aseda")

        api = LocalChainApi(gaia)
        await api.start()
        try:
            async with NodeQueryClient.connect(api.url) as client:
                result = await client.query_denom_trace(voucher.removeprefix("ibc/"))
                assert result.denom_trace.path == "transfer/channel-0"
                assert result.denom_trace.base_denom == "aseda"
                with pytest.raises(QueryError):
                    await client.query_denom_trace("0" * 64)
        finally:
            await api.stop()

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, seda_api: LocalChainApi) -> None:
        async with httpx.AsyncClient() as http:
            response = await http.get(f"{seda_api.url}/metrics")

        assert response.status_code == 200
        assert "ibc_conformance_scenarios_total" in response.text


class TestRestChainOverLocalApi:
    """The REST chain handle reads local chains like real nodes."""

    @pytest.mark.asyncio
    async def test_find_acknowledgement(
        self,
        seda_api: LocalChainApi,
        linked_chains: tuple[LocalChain, LocalChain],
        seda_config: ChainConfig,
    ) -> None:
        seda, gaia = linked_chains
        sent = await send(seda)
        seda.advance(3)
        seda.acknowledge_packet(sent.packet, gaia.recv_packet(sent.packet))

        http = httpx.AsyncClient()
        rest = RestChain(
            seda_config,
            NodeQueryClient(seda_api.url, http, seda_config.chain_id),
            ChainCli(binary="sedad", chain=seda_config),
        )
        try:
            ack = await rest.find_acknowledgement(sent.packet, sent.height, sent.height + 10)
            assert ack is not None
            assert ack.height == sent.height + 3
            assert await rest.find_acknowledgement(sent.packet, 0, sent.height) is None
            assert await rest.height() == seda.current_height
        finally:
            await rest.stop()

    @pytest.mark.asyncio
    async def test_error_ack_is_still_an_ack(
        self,
        seda_api: LocalChainApi,
        linked_chains: tuple[LocalChain, LocalChain],
        seda_config: ChainConfig,
    ) -> None:
        seda, _ = linked_chains
        sent = await send(seda)
        seda.acknowledge_packet(sent.packet, Acknowledgement(success=False, error="denied"))

        async with NodeQueryClient.connect(seda_api.url) as client:
            rest = RestChain(seda_config, client, ChainCli(binary="sedad", chain=seda_config))
            assert await rest.find_acknowledgement(sent.packet, 0, 100) is not None
            assert await rest.get_balance(SEDA_USER.address, "aseda") == 1_000_000
