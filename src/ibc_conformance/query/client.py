"""
REST query client for a node's gRPC-gateway API.

The client is an explicitly constructed value: the caller builds the
``httpx.AsyncClient`` (timeouts, transport, base URL) and hands it in.
There is no process-wide client or codec, so tests inject a mock
transport and two chains never share connection state.

Failure policy:

- Transport errors and non-200 responses raise ``QueryError``.
- A 200 response that does not decode into the expected model raises
  ``QueryDecodeError``.
- No query ever returns a default or partially-decoded value on failure.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ibc_conformance.types import QueryDecodeError, QueryError, ResponseModel, TxFailedError

from .responses import (
    GetLatestBlockResponse,
    GetTxResponse,
    GetTxsEventResponse,
    QueryBalanceResponse,
    QueryChannelsResponse,
    QueryDataRequestWasmResponse,
    QueryDataRequestWasmsResponse,
    QueryDenomTraceResponse,
    QueryOverlayWasmResponse,
    QueryOverlayWasmsResponse,
    QueryProposalResponse,
    QueryProxyContractRegistryResponse,
    QuerySmartContractStateResponse,
    TxResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
"""HTTP request timeout in seconds."""

M = TypeVar("M", bound=ResponseModel)


class NodeQueryClient:
    """
    Typed queries against one node's REST endpoint.

    Args:
        endpoint: Base URL of the node API (e.g. "http://localhost:1317").
        http: Client used for every request. The caller owns its lifecycle.
        chain_id: Identifier used in error messages.
    """

    def __init__(self, endpoint: str, http: httpx.AsyncClient, chain_id: str = "") -> None:
        self.endpoint = endpoint.rstrip("/")
        self.http = http
        self.chain_id = chain_id

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        endpoint: str,
        chain_id: str = "",
        timeout: float = DEFAULT_TIMEOUT,
    ) -> AsyncIterator[NodeQueryClient]:
        """Open a client with its own connection pool, closed on exit."""
        async with httpx.AsyncClient(timeout=timeout) as http:
            yield cls(endpoint, http, chain_id)

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def get_bytes(self, path: str, params: dict[str, Any] | None = None) -> bytes:
        """
        GET ``path`` and return the raw body of a 200 response.

        Raises:
            QueryError: On transport failure or any status other than 200.
        """
        url = f"{self.endpoint}{path}"
        try:
            response = await self.http.get(url, params=params)
        except httpx.RequestError as exc:
            raise QueryError(url, f"network error: {exc}") from exc

        if response.status_code != 200:
            raise QueryError(url, response.text[:200], status_code=response.status_code)

        return response.content

    async def get_model(
        self,
        path: str,
        model: type[M],
        params: dict[str, Any] | None = None,
    ) -> M:
        """
        GET ``path`` and decode the body into ``model``.

        Raises:
            QueryError: On transport failure or non-200 status.
            QueryDecodeError: If the body is not valid JSON for ``model``.
        """
        body = await self.get_bytes(path, params)
        try:
            return model.model_validate_json(body)
        except ValidationError as exc:
            raise QueryDecodeError(f"{self.endpoint}{path}", model.__name__, str(exc)) from exc

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def query_tx(self, tx_hash: str) -> TxResponse:
        """Fetch an included transaction by hash, whatever its result code."""
        result = await self.get_model(f"/cosmos/tx/v1beta1/txs/{tx_hash}", GetTxResponse)
        return result.tx_response

    async def query_successful_tx(self, tx_hash: str) -> TxResponse:
        """
        Fetch a transaction and require it to have succeeded.

        Raises:
            TxFailedError: If the transaction's result code is non-zero.
        """
        tx = await self.query_tx(tx_hash)
        if not tx.succeeded:
            raise TxFailedError(self.chain_id, tx_hash, tx.code, tx.raw_log)
        return tx

    async def search_txs(self, query: str, limit: int = 100) -> list[TxResponse]:
        """
        Search included transactions by event query.

        Args:
            query: CometBFT event query (e.g. "acknowledge_packet.packet_sequence='1'").
            limit: Maximum results to return.
        """
        result = await self.get_model(
            "/cosmos/tx/v1beta1/txs",
            GetTxsEventResponse,
            params={"query": query, "limit": limit},
        )
        return result.tx_responses

    # -------------------------------------------------------------------------
    # Bank and blocks
    # -------------------------------------------------------------------------

    async def query_balance(self, address: str, denom: str) -> int:
        """Balance of ``address`` in ``denom``."""
        result = await self.get_model(
            f"/cosmos/bank/v1beta1/balances/{address}/by_denom",
            QueryBalanceResponse,
            params={"denom": denom},
        )
        return result.balance.amount

    async def query_latest_height(self) -> int:
        """Height of the latest committed block."""
        result = await self.get_model(
            "/cosmos/base/tendermint/v1beta1/blocks/latest", GetLatestBlockResponse
        )
        return result.block.header.height

    # -------------------------------------------------------------------------
    # IBC
    # -------------------------------------------------------------------------

    async def query_denom_trace(self, denom_hash: str) -> QueryDenomTraceResponse:
        """Resolve the hash part of an ``ibc/{HASH}`` denom to its trace."""
        return await self.get_model(
            f"/ibc/apps/transfer/v1/denom_traces/{denom_hash}", QueryDenomTraceResponse
        )

    async def query_channels(self) -> QueryChannelsResponse:
        """Every channel end on the chain."""
        return await self.get_model("/ibc/core/channel/v1/channels", QueryChannelsResponse)

    # -------------------------------------------------------------------------
    # Governance
    # -------------------------------------------------------------------------

    async def query_gov_proposal(self, proposal_id: int) -> QueryProposalResponse:
        """A governance proposal by id."""
        return await self.get_model(
            f"/cosmos/gov/v1/proposals/{proposal_id}", QueryProposalResponse
        )

    # -------------------------------------------------------------------------
    # Wasm storage
    # -------------------------------------------------------------------------

    async def query_data_request_wasm(self, dr_hash: str) -> QueryDataRequestWasmResponse:
        """A stored data request binary by hash."""
        return await self.get_model(
            f"/seda-chain/wasm-storage/data_request_wasm/{dr_hash}",
            QueryDataRequestWasmResponse,
        )

    async def query_overlay_wasm(self, wasm_hash: str) -> QueryOverlayWasmResponse:
        """A stored overlay binary by hash."""
        return await self.get_model(
            f"/seda-chain/wasm-storage/overlay_wasm/{wasm_hash}", QueryOverlayWasmResponse
        )

    async def query_data_request_wasms(self) -> QueryDataRequestWasmsResponse:
        """Hashes of every stored data request binary."""
        return await self.get_model(
            "/seda-chain/wasm-storage/data_request_wasms", QueryDataRequestWasmsResponse
        )

    async def query_overlay_wasms(self) -> QueryOverlayWasmsResponse:
        """Hashes of every stored overlay binary."""
        return await self.get_model(
            "/seda-chain/wasm-storage/overlay_wasms", QueryOverlayWasmsResponse
        )

    async def query_proxy_contract_registry(self) -> QueryProxyContractRegistryResponse:
        """Address of the registered proxy contract."""
        return await self.get_model(
            "/seda-chain/wasm-storage/proxy_contract_registry",
            QueryProxyContractRegistryResponse,
        )

    # -------------------------------------------------------------------------
    # CosmWasm
    # -------------------------------------------------------------------------

    async def query_contract_smart(self, contract: str, msg: dict[str, Any]) -> Any:
        """Run a smart query against a contract and return its decoded ``data``."""
        encoded = base64.b64encode(json.dumps(msg, separators=(",", ":")).encode()).decode()
        result = await self.get_model(
            f"/cosmwasm/wasm/v1/contract/{contract}/smart/{quote(encoded, safe='')}",
            QuerySmartContractStateResponse,
        )
        return result.data
