"""
REST facade for a local chain.

Serves the subset of the Cosmos SDK gRPC-gateway API the harness reads,
so ``RestChain``'s query side and ``NodeQueryClient`` can run end to end
against a local chain:

- /cosmos/bank/v1beta1/balances/{address}/by_denom
- /cosmos/base/tendermint/v1beta1/blocks/latest
- /cosmos/tx/v1beta1/txs/{hash}
- /cosmos/tx/v1beta1/txs?query=...
- /ibc/apps/transfer/v1/denom_traces/{hash}
- /ibc/core/channel/v1/channels
- /cosmwasm/wasm/v1/contract/{address}/smart/{query}
- /metrics - Prometheus metrics of the harness
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from ibc_conformance.metrics import generate_metrics
from ibc_conformance.query.responses import TxResponse
from ibc_conformance.types import QueryError

from .chain import LocalChain

logger = logging.getLogger(__name__)

CHAIN_KEY = web.AppKey("chain", LocalChain)
"""Application key of the served chain."""

_CONDITION = re.compile(r"^(\w+)\.(\w+)\s*=\s*'([^']*)'$")


def _error(status: int, code: int, message: str) -> web.Response:
    """gRPC-gateway error body."""
    return web.json_response({"code": code, "message": message, "details": []}, status=status)


def _tx_json(tx: TxResponse) -> dict[str, Any]:
    data = tx.model_dump(mode="json")
    # 64-bit integers travel as strings.
    for key in ("height", "gas_wanted", "gas_used"):
        data[key] = str(data[key])
    return data


def parse_event_query(query: str) -> dict[str, str]:
    """
    Parse a CometBFT event query of ``AND``-joined equality conditions.

    Raises:
        ValueError: On anything but ``type.attr='value'`` conditions.
    """
    conditions = {}
    for part in query.split(" AND "):
        match = _CONDITION.match(part.strip())
        if match is None:
            raise ValueError(f"unsupported query condition: {part!r}")
        event_type, key, value = match.groups()
        conditions[f"{event_type}.{key}"] = value
    return conditions


async def _handle_balance(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    denom = request.query.get("denom", "")
    if not denom:
        return _error(400, 3, "invalid denom")
    amount = chain.balance(request.match_info["address"], denom)
    return web.json_response({"balance": {"denom": denom, "amount": str(amount)}})


async def _handle_latest_block(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    header = {"chain_id": chain.config.chain_id, "height": str(chain.current_height)}
    return web.json_response({"block": {"header": header}})


async def _handle_tx(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    tx_hash = request.match_info["hash"]
    tx = chain.get_tx(tx_hash)
    if tx is None:
        return _error(404, 5, f"tx not found: {tx_hash}")
    return web.json_response({"tx_response": _tx_json(tx)})


async def _handle_tx_search(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    try:
        conditions = parse_event_query(request.query.get("query", ""))
        limit = int(request.query.get("limit", "100"))
    except ValueError as exc:
        return _error(400, 3, str(exc))

    txs = chain.search_txs(conditions)[:limit]
    return web.json_response(
        {
            "tx_responses": [_tx_json(tx) for tx in txs],
            "pagination": {"next_key": None, "total": str(len(txs))},
            "total": str(len(txs)),
        }
    )


async def _handle_denom_trace(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    denom_hash = request.match_info["hash"].upper()
    trace = chain.denom_trace(f"ibc/{denom_hash}")
    if trace is None:
        return _error(404, 5, f"denomination trace not found: {denom_hash}")
    return web.json_response(
        {"denom_trace": {"path": trace.path, "base_denom": trace.base_denom}}
    )


async def _handle_channels(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    channels = [channel.model_dump(mode="json") for channel in chain.channels()]
    return web.json_response(
        {"channels": channels, "pagination": {"next_key": None, "total": str(len(channels))}}
    )


async def _handle_smart_query(request: web.Request) -> web.Response:
    chain = request.app[CHAIN_KEY]
    try:
        msg = json.loads(base64.b64decode(request.match_info["query"], validate=True))
    except (binascii.Error, ValueError) as exc:
        return _error(400, 3, f"invalid query data: {exc}")

    try:
        data = await chain.query_contract(request.match_info["address"], msg)
    except QueryError as exc:
        return _error(exc.status_code or 500, 5 if exc.is_not_found else 3, exc.detail)
    return web.json_response({"data": data})


async def _handle_metrics(_request: web.Request) -> web.Response:
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4; charset=utf-8",
    )


def create_app(chain: LocalChain) -> web.Application:
    """Build the aiohttp application serving ``chain``."""
    app = web.Application()
    app[CHAIN_KEY] = chain
    app.add_routes(
        [
            web.get("/cosmos/bank/v1beta1/balances/{address}/by_denom", _handle_balance),
            web.get("/cosmos/base/tendermint/v1beta1/blocks/latest", _handle_latest_block),
            web.get("/cosmos/tx/v1beta1/txs/{hash}", _handle_tx),
            web.get("/cosmos/tx/v1beta1/txs", _handle_tx_search),
            web.get("/ibc/apps/transfer/v1/denom_traces/{hash}", _handle_denom_trace),
            web.get("/ibc/core/channel/v1/channels", _handle_channels),
            web.get("/cosmwasm/wasm/v1/contract/{address}/smart/{query}", _handle_smart_query),
            web.get("/metrics", _handle_metrics),
        ]
    )
    return app


@dataclass(frozen=True, slots=True)
class LocalApiConfig:
    """Configuration for the local REST facade."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 0
    """Port to listen on. Zero picks a free port."""


@dataclass(slots=True)
class LocalChainApi:
    """HTTP server exposing a local chain's REST surface."""

    chain: LocalChain
    """The chain being served."""

    config: LocalApiConfig = field(default_factory=LocalApiConfig)
    """Server configuration."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    @property
    def url(self) -> str:
        """Base URL of the running server."""
        if self._runner is None or not self._runner.addresses:
            raise RuntimeError("API server is not running")
        host, port = self._runner.addresses[0][:2]
        return f"http://{host}:{port}"

    async def start(self) -> None:
        """Start serving in the background."""
        self._runner = web.AppRunner(create_app(self.chain))
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info("Local API for %s listening on %s", self.chain.config.chain_id, self.url)

    async def stop(self) -> None:
        """Stop the server."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("Local API for %s stopped", self.chain.config.chain_id)
