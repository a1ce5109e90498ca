"""
Chain handle over a running node.

Reads go through the node's REST API (``NodeQueryClient``); writes go
through the chain CLI (``ChainCli``), which signs with the node's
keyring. After broadcasting, the handle waits for inclusion by polling
the tx endpoint, so callers only ever see included transactions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Final

from ibc_conformance.query import NodeQueryClient, TxResponse
from ibc_conformance.testutil.poll import poll_until
from ibc_conformance.transfer.config import TRANSFER_PORT
from ibc_conformance.transfer.packet import (
    Packet,
    PacketAcknowledgement,
    TransferOptions,
    TransferTx,
    WalletAmount,
)
from ibc_conformance.types import CommandError, QueryError, TransferSubmitError, TxFailedError

from .cli import ChainCli
from .handle import ChainConfig, Wallet

logger = logging.getLogger(__name__)

TX_INCLUSION_BLOCKS: Final[int] = 10
"""Blocks a broadcast transaction may take to be included."""


class RestChain:
    """
    ``NetworkHandle`` (and ``WasmChain``) backed by a node's REST API and CLI.

    The handle attaches to a network someone else runs. ``stop()``
    releases the HTTP client only; the node keeps running.

    Args:
        config: Chain identity.
        query: REST client for the node. Its HTTP client is closed by ``stop()``.
        cli: Chain binary wrapper used to sign and broadcast.
    """

    def __init__(self, config: ChainConfig, query: NodeQueryClient, cli: ChainCli) -> None:
        self._config = config
        self.query = query
        self.cli = cli

    @property
    def config(self) -> ChainConfig:
        return self._config

    def __repr__(self) -> str:
        return f"RestChain({self._config.chain_id!r}, {self.query.endpoint!r})"

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_balance(self, address: str, denom: str) -> int:
        return await self.query.query_balance(address, denom)

    async def height(self) -> int:
        return await self.query.query_latest_height()

    async def find_acknowledgement(
        self,
        packet: Packet,
        min_height: int,
        max_height: int,
    ) -> PacketAcknowledgement | None:
        query = (
            f"acknowledge_packet.packet_src_port='{packet.source_port}' AND "
            f"acknowledge_packet.packet_src_channel='{packet.source_channel}' AND "
            f"acknowledge_packet.packet_sequence='{packet.sequence}'"
        )
        for tx in await self.query.search_txs(query):
            if not tx.succeeded or not min_height <= tx.height <= max_height:
                continue
            if any(packet.matches_ack_event(a) for a in tx.events_of_type("acknowledge_packet")):
                return PacketAcknowledgement(packet=packet, height=tx.height, tx_hash=tx.txhash)
        return None

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def wait_for_tx(self, tx_hash: str) -> TxResponse | None:
        """
        Wait for a broadcast transaction to be included.

        Returns:
            The included transaction, or None if it did not land within
            ``TX_INCLUSION_BLOCKS``.
        """

        async def included() -> TxResponse | None:
            try:
                return await self.query.query_tx(tx_hash)
            except QueryError as exc:
                # The tx endpoint answers 404 until the block with the tx is committed.
                if exc.is_not_found:
                    return None
                raise

        start = await self.height()
        outcome = await poll_until(
            included, height=self.height, max_height=start + TX_INCLUSION_BLOCKS
        )
        return outcome.value

    async def broadcast(self, sender: Wallet, *args: str) -> TxResponse:
        """
        Broadcast a transaction and return it once included and successful.

        Raises:
            TransferSubmitError: If the CLI fails, the tx is rejected at
                broadcast, or it is never included.
            TxFailedError: If the tx was included with a non-zero code.
        """
        chain_id = self._config.chain_id
        try:
            result = await self.cli.tx(sender, *args)
        except CommandError as exc:
            raise TransferSubmitError(chain_id, exc.message) from exc

        tx_hash = result.get("txhash", "")
        code = int(result.get("code", 0))
        if code != 0:
            raise TxFailedError(chain_id, tx_hash, code, result.get("raw_log", ""))
        if not tx_hash:
            raise TransferSubmitError(chain_id, f"broadcast returned no tx hash: {result}")

        tx = await self.wait_for_tx(tx_hash)
        if tx is None:
            raise TransferSubmitError(
                chain_id, f"tx {tx_hash} not included within {TX_INCLUSION_BLOCKS} blocks"
            )
        if not tx.succeeded:
            raise TxFailedError(chain_id, tx_hash, tx.code, tx.raw_log)

        logger.debug("Tx %s included on %s at height %d", tx_hash, chain_id, tx.height)
        return tx

    async def send_ibc_transfer(
        self,
        channel_id: str,
        sender: Wallet,
        amount: WalletAmount,
        options: TransferOptions,
    ) -> TransferTx:
        args = [
            "ibc-transfer",
            "transfer",
            TRANSFER_PORT,
            channel_id,
            amount.address,
            f"{amount.amount}{amount.denom}",
        ]
        if options.timeout_height is not None:
            args += ["--packet-timeout-height", f"0-{options.timeout_height}"]
        if options.timeout_timestamp_ns is not None:
            args += ["--packet-timeout-timestamp", str(options.timeout_timestamp_ns)]
        if options.memo:
            args += ["--memo", options.memo]

        tx = await self.broadcast(sender, *args)

        send_events = tx.events_of_type("send_packet")
        if not send_events:
            raise TransferSubmitError(
                self._config.chain_id, f"tx {tx.txhash} emitted no send_packet event"
            )
        packet = Packet.from_send_packet_event(send_events[0])
        logger.info(
            "Transfer %s%s on %s/%s submitted on %s (sequence %d, height %d)",
            amount.amount,
            amount.denom,
            TRANSFER_PORT,
            channel_id,
            self._config.chain_id,
            packet.sequence,
            tx.height,
        )
        return TransferTx(tx_hash=tx.txhash, height=tx.height, packet=packet)

    # -------------------------------------------------------------------------
    # CosmWasm
    # -------------------------------------------------------------------------

    async def store_contract(self, sender: Wallet, wasm_file: Path) -> str:
        tx = await self.broadcast(sender, "wasm", "store", str(wasm_file))
        return _first_attribute(self._config.chain_id, tx, "store_code", "code_id")

    async def instantiate_contract(
        self,
        sender: Wallet,
        code_id: str,
        init_msg: str,
        label: str,
    ) -> str:
        tx = await self.broadcast(
            sender, "wasm", "instantiate", code_id, init_msg, "--label", label, "--no-admin"
        )
        return _first_attribute(self._config.chain_id, tx, "instantiate", "_contract_address")

    async def execute_contract(
        self,
        sender: Wallet,
        contract: str,
        msg: str,
        fees: str = "",
    ) -> TxResponse:
        args = ["wasm", "execute", contract, msg]
        if fees:
            args += ["--fees", fees]
        return await self.broadcast(sender, *args)

    async def query_contract(self, contract: str, msg: dict[str, Any]) -> Any:
        return await self.query.query_contract_smart(contract, msg)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def stop(self) -> None:
        await self.query.http.aclose()


def _first_attribute(chain_id: str, tx: TxResponse, event_type: str, key: str) -> str:
    for attributes in tx.events_of_type(event_type):
        if key in attributes:
            return attributes[key]
    raise TransferSubmitError(
        chain_id, f"tx {tx.txhash} emitted no {event_type} event with attribute {key!r}"
    )
