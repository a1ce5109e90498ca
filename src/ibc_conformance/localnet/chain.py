"""
In-process chain with ICS-20 transfer semantics.

The local chain keeps a bank ledger, a height that advances on a timer,
and the transfer module's channel state: per-channel sequences, packet
commitments, written acknowledgments, and denom traces. It emits the
same events a real node would, so the harness observes it the same way.

Transfer accounting follows ibc-go:

- Sending a token this chain issued escrows it under the channel.
- Sending a voucher back towards its issuer burns it.
- Receiving a token this chain issued releases it from escrow.
- Receiving a foreign token mints a voucher under its hashed trace.
- An error acknowledgment refunds the sender (unescrow or re-mint).

Packet delivery is the relayer's job: ``recv_packet`` and
``acknowledge_packet`` are called by ``LocalRelayer``, never by the
harness.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import hashlib
import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from ibc_conformance.chain.handle import ChainConfig, Wallet
from ibc_conformance.query.responses import Event, EventAttribute, TxResponse
from ibc_conformance.relayer.handle import ChannelCounterparty, ChannelOutput
from ibc_conformance.transfer.config import TRANSFER_PORT
from ibc_conformance.transfer.denom import (
    IBC_DENOM_PREFIX,
    DenomTrace,
    get_denom_prefix,
    get_prefixed_denom,
    parse_denom_trace,
    receiver_chain_is_source,
)
from ibc_conformance.transfer.packet import (
    FungibleTokenPacketData,
    Packet,
    PacketAcknowledgement,
    TransferOptions,
    TransferTx,
    WalletAmount,
)
from ibc_conformance.types import QueryError, TransferSubmitError, TxFailedError

from .wasm import LocalContract

logger = logging.getLogger(__name__)

CODE_INSUFFICIENT_FUNDS: Final[int] = 5
"""SDK error code for insufficient funds."""

CODE_INVALID_REQUEST: Final[int] = 18
"""SDK error code for a malformed or unknown request."""

_FEE_PATTERN = re.compile(r"^(\d+)([a-zA-Z][a-zA-Z0-9/:._-]*)$")


def escrow_address(port_id: str, channel_id: str) -> str:
    """Account holding tokens escrowed on a channel."""
    return f"escrow/{port_id}/{channel_id}"


@dataclass(frozen=True, slots=True)
class Acknowledgement:
    """Acknowledgment written by the receiving chain."""

    success: bool = True
    """Whether the receive succeeded."""

    error: str = ""
    """Failure reason of an error acknowledgment."""

    def to_json(self) -> str:
        """Encode as ibc-go does: ``{"result":"AQ=="}`` or ``{"error":"..."}``."""
        if self.success:
            return json.dumps({"result": base64.b64encode(b"\x01").decode()})
        return json.dumps({"error": self.error})


@dataclass(slots=True)
class ChannelEnd:
    """This chain's end of a transfer channel."""

    channel_id: str
    """Channel identifier on this chain."""

    counterparty_chain_id: str
    """Chain at the other end."""

    counterparty_channel_id: str = ""
    """Channel identifier at the other end. Empty until the handshake completes."""

    port_id: str = TRANSFER_PORT
    """Port on this chain."""

    counterparty_port_id: str = TRANSFER_PORT
    """Port at the other end."""

    next_sequence: int = 1
    """Sequence of the next packet sent on this channel."""

    @property
    def is_open(self) -> bool:
        return bool(self.counterparty_channel_id)

    def to_output(self) -> ChannelOutput:
        return ChannelOutput(
            state="STATE_OPEN" if self.is_open else "STATE_INIT",
            port_id=self.port_id,
            channel_id=self.channel_id,
            counterparty=ChannelCounterparty(
                port_id=self.counterparty_port_id, channel_id=self.counterparty_channel_id
            ),
            connection_hops=[f"connection-{self.channel_id.rsplit('-', 1)[-1]}"],
        )


class LocalChain:
    """
    A chain living in the test process.

    Satisfies ``NetworkHandle`` and ``WasmChain``.

    Args:
        config: Chain identity.
        block_time: Seconds between blocks once started.
        contracts: Contract logic by code checksum (lowercase hex SHA-256).
    """

    def __init__(
        self,
        config: ChainConfig,
        block_time: float = 0.05,
        contracts: Mapping[str, type[LocalContract]] | None = None,
    ) -> None:
        self._config = config
        self.block_time = block_time
        self.contracts: dict[str, type[LocalContract]] = dict(contracts or {})

        self._height = 1
        self._balances: dict[str, dict[str, int]] = {}
        self._channels: dict[str, ChannelEnd] = {}
        self._commitments: dict[tuple[str, int], Packet] = {}
        self._written_acks: dict[tuple[str, int], tuple[Acknowledgement, int]] = {}
        self._acks: dict[tuple[str, int], PacketAcknowledgement] = {}
        self._traces: dict[str, DenomTrace] = {}
        self._txs: dict[str, TxResponse] = {}
        self._codes: dict[str, type[LocalContract]] = {}
        self._instances: dict[str, LocalContract] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def config(self) -> ChainConfig:
        return self._config

    def __repr__(self) -> str:
        return f"LocalChain({self._config.chain_id!r}, height={self._height})"

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether blocks are being produced."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start producing blocks every ``block_time`` seconds."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._produce_blocks())
        logger.info("Local chain %s producing blocks", self._config.chain_id)

    async def _produce_blocks(self) -> None:
        while True:
            await asyncio.sleep(self.block_time)
            self._height += 1

    def advance(self, blocks: int = 1) -> int:
        """Commit ``blocks`` blocks immediately and return the new height."""
        self._height += blocks
        return self._height

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Local chain %s stopped at height %d", self._config.chain_id, self._height)

    async def height(self) -> int:
        return self._height

    @property
    def current_height(self) -> int:
        """Latest height, without awaiting."""
        return self._height

    # -------------------------------------------------------------------------
    # Bank
    # -------------------------------------------------------------------------

    def balance(self, address: str, denom: str) -> int:
        """Balance of ``address`` in ``denom`` (zero when never held)."""
        return self._balances.get(address, {}).get(denom, 0)

    async def get_balance(self, address: str, denom: str) -> int:
        return self.balance(address, denom)

    def fund(self, address: str, denom: str, amount: int) -> None:
        """Mint ``amount`` to ``address`` (genesis allocation)."""
        if amount < 0:
            raise ValueError(f"cannot fund a negative amount: {amount}")
        self._credit(address, denom, amount)

    def _credit(self, address: str, denom: str, amount: int) -> None:
        account = self._balances.setdefault(address, {})
        account[denom] = account.get(denom, 0) + amount

    def _debit(self, address: str, denom: str, amount: int) -> None:
        held = self.balance(address, denom)
        if held < amount:
            raise ValueError(f"{address} holds {held}{denom}, needs {amount}{denom}")
        self._balances[address][denom] = held - amount

    def _move(self, sender: str, receiver: str, denom: str, amount: int) -> None:
        self._debit(sender, denom, amount)
        self._credit(receiver, denom, amount)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _record_tx(
        self,
        events: list[tuple[str, Mapping[str, str]]],
        code: int = 0,
        raw_log: str = "",
    ) -> TxResponse:
        counter = len(self._txs)
        tx_hash = hashlib.sha256(f"{self._config.chain_id}/{counter}".encode()).hexdigest().upper()
        tx = TxResponse(
            height=self._height,
            txhash=tx_hash,
            code=code,
            raw_log=raw_log,
            events=[
                Event(
                    type=event_type,
                    attributes=[EventAttribute(key=k, value=v) for k, v in attributes.items()],
                )
                for event_type, attributes in events
            ],
        )
        self._txs[tx_hash] = tx
        return tx

    def _fail(self, code: int, raw_log: str) -> TxFailedError:
        """Record a failed tx and build the error the submitter sees."""
        tx = self._record_tx([], code=code, raw_log=raw_log)
        logger.info("Tx %s on %s failed: %s", tx.txhash, self._config.chain_id, raw_log)
        return TxFailedError(self._config.chain_id, tx.txhash, code, raw_log)

    def get_tx(self, tx_hash: str) -> TxResponse | None:
        """An included transaction by hash."""
        return self._txs.get(tx_hash.upper())

    def search_txs(self, conditions: Mapping[str, str]) -> list[TxResponse]:
        """
        Transactions with an event matching every condition.

        Args:
            conditions: ``{"event_type.attribute": value}``.
        """
        parsed = []
        for condition, value in conditions.items():
            event_type, _, key = condition.partition(".")
            parsed.append((event_type, key, value))

        def matches(tx: TxResponse) -> bool:
            return all(
                any(attributes.get(key) == value for attributes in tx.events_of_type(event_type))
                for event_type, key, value in parsed
            )

        return [tx for tx in self._txs.values() if matches(tx)]

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    def open_channel(self, counterparty_chain_id: str) -> ChannelEnd:
        """Allocate the next ``channel-N`` towards a counterparty chain."""
        end = ChannelEnd(
            channel_id=f"channel-{len(self._channels)}",
            counterparty_chain_id=counterparty_chain_id,
        )
        self._channels[end.channel_id] = end
        return end

    def connect_channel(self, channel_id: str, counterparty_channel_id: str) -> None:
        """Complete the handshake of a channel opened with ``open_channel``."""
        self._channels[channel_id].counterparty_channel_id = counterparty_channel_id

    def channels(self) -> list[ChannelOutput]:
        """Every channel end on this chain."""
        return [end.to_output() for end in self._channels.values()]

    def denom_trace(self, ibc_denom: str) -> DenomTrace | None:
        """The trace behind a voucher denom, once a voucher has been minted."""
        return self._traces.get(ibc_denom)

    # -------------------------------------------------------------------------
    # Transfer (sender side)
    # -------------------------------------------------------------------------

    def _full_denom_path(self, denom: str) -> str:
        if not denom.startswith(IBC_DENOM_PREFIX):
            return denom
        trace = self._traces.get(denom)
        if trace is None:
            raise self._fail(CODE_INVALID_REQUEST, f"denomination trace not found for {denom}")
        return trace.full_denom_path()

    async def send_ibc_transfer(
        self,
        channel_id: str,
        sender: Wallet,
        amount: WalletAmount,
        options: TransferOptions,
    ) -> TransferTx:
        chain_id = self._config.chain_id
        end = self._channels.get(channel_id)
        if end is None or not end.is_open:
            raise TransferSubmitError(chain_id, f"channel {TRANSFER_PORT}/{channel_id} not open")

        full_path = self._full_denom_path(amount.denom)

        held = self.balance(sender.address, amount.denom)
        if held < amount.amount:
            raise self._fail(
                CODE_INSUFFICIENT_FUNDS,
                f"spendable balance {held}{amount.denom} is smaller than "
                f"{amount.amount}{amount.denom}: insufficient funds",
            )

        if receiver_chain_is_source(end.port_id, channel_id, full_path):
            # Voucher heading home: burn it.
            self._debit(sender.address, amount.denom, amount.amount)
        else:
            self._move(
                sender.address,
                escrow_address(end.port_id, channel_id),
                amount.denom,
                amount.amount,
            )

        packet = Packet(
            sequence=end.next_sequence,
            source_port=end.port_id,
            source_channel=channel_id,
            destination_port=end.counterparty_port_id,
            destination_channel=end.counterparty_channel_id,
            data=FungibleTokenPacketData(
                denom=full_path,
                amount=amount.amount,
                sender=sender.address,
                receiver=amount.address,
                memo=options.memo,
            ),
            timeout_height=options.timeout_height or 0,
            timeout_timestamp_ns=options.timeout_timestamp_ns or 0,
        )
        end.next_sequence += 1
        self._commitments[(channel_id, packet.sequence)] = packet

        tx = self._record_tx(
            [
                ("send_packet", packet.to_event_attributes()),
                (
                    "ibc_transfer",
                    {
                        "sender": sender.address,
                        "receiver": amount.address,
                        "amount": str(amount.amount),
                        "denom": full_path,
                    },
                ),
            ]
        )
        logger.info(
            "Transfer %d%s on %s/%s submitted on %s (sequence %d, height %d)",
            amount.amount,
            amount.denom,
            end.port_id,
            channel_id,
            chain_id,
            packet.sequence,
            tx.height,
        )
        return TransferTx(tx_hash=tx.txhash, height=tx.height, packet=packet)

    def pending_packets(self, channel_id: str) -> list[Packet]:
        """Committed packets on a channel whose ack has not been processed, by sequence."""
        return sorted(
            (p for (ch, _), p in self._commitments.items() if ch == channel_id),
            key=lambda p: p.sequence,
        )

    def acknowledge_packet(
        self, packet: Packet, ack: Acknowledgement
    ) -> PacketAcknowledgement | None:
        """
        Process the acknowledgment of a packet this chain sent.

        Returns:
            The recorded acknowledgment, or None if the packet was already acknowledged.
        """
        key = (packet.source_channel, packet.sequence)
        if self._commitments.pop(key, None) is None:
            return None

        if not ack.success:
            self._refund(packet)

        attributes = packet.to_event_attributes()
        del attributes["packet_data"]
        tx = self._record_tx(
            [
                ("acknowledge_packet", attributes),
                (
                    "fungible_token_packet",
                    {"acknowledgement": ack.to_json(), "success": str(ack.success).lower()},
                ),
            ]
        )
        recorded = PacketAcknowledgement(packet=packet, height=tx.height, tx_hash=tx.txhash)
        self._acks[key] = recorded
        logger.debug(
            "Ack for packet %d on %s/%s processed at height %d",
            packet.sequence,
            packet.source_port,
            packet.source_channel,
            tx.height,
        )
        return recorded

    def _refund(self, packet: Packet) -> None:
        data = packet.data
        denom = parse_denom_trace(data.denom).ibc_denom()
        if receiver_chain_is_source(packet.source_port, packet.source_channel, data.denom):
            # The voucher was burned on send; mint it back.
            self._credit(data.sender, denom, data.amount)
        else:
            self._move(
                escrow_address(packet.source_port, packet.source_channel),
                data.sender,
                denom,
                data.amount,
            )

    async def find_acknowledgement(
        self,
        packet: Packet,
        min_height: int,
        max_height: int,
    ) -> PacketAcknowledgement | None:
        ack = self._acks.get((packet.source_channel, packet.sequence))
        if ack is None or ack.packet != packet:
            return None
        if not min_height <= ack.height <= max_height:
            return None
        return ack

    # -------------------------------------------------------------------------
    # Transfer (receiver side)
    # -------------------------------------------------------------------------

    def written_acknowledgement(
        self, channel_id: str, sequence: int
    ) -> tuple[Acknowledgement, int] | None:
        """The ack written for a received packet and the height it was written at."""
        return self._written_acks.get((channel_id, sequence))

    def recv_packet(self, packet: Packet) -> Acknowledgement:
        """
        Receive a packet sent by the counterparty.

        Receiving the same packet twice returns the first acknowledgment
        without crediting again.
        """
        key = (packet.destination_channel, packet.sequence)
        written = self._written_acks.get(key)
        if written is not None:
            return written[0]

        ack = self._on_recv(packet)
        self._written_acks[key] = (ack, self._height)

        attributes = packet.to_event_attributes()
        self._record_tx(
            [
                ("recv_packet", attributes),
                ("write_acknowledgement", {**attributes, "packet_ack": ack.to_json()}),
                (
                    "fungible_token_packet",
                    {
                        "receiver": packet.data.receiver,
                        "denom": packet.data.denom,
                        "amount": str(packet.data.amount),
                        "success": str(ack.success).lower(),
                    },
                ),
            ]
        )
        return ack

    def _on_recv(self, packet: Packet) -> Acknowledgement:
        end = self._channels.get(packet.destination_channel)
        if end is None or end.counterparty_channel_id != packet.source_channel:
            return Acknowledgement(success=False, error="unknown destination channel")

        if packet.timeout_height and self._height >= packet.timeout_height:
            return Acknowledgement(success=False, error="packet timeout height elapsed")

        data = packet.data
        if receiver_chain_is_source(packet.source_port, packet.source_channel, data.denom):
            # The token was issued here: strip one hop and release it from escrow.
            prefix = get_denom_prefix(packet.source_port, packet.source_channel)
            unprefixed = data.denom[len(prefix) :]
            denom = parse_denom_trace(unprefixed).ibc_denom()
            escrow = escrow_address(packet.destination_port, packet.destination_channel)
            if self.balance(escrow, denom) < data.amount:
                return Acknowledgement(success=False, error="insufficient escrow balance")
            self._move(escrow, data.receiver, denom, data.amount)
            return Acknowledgement()

        trace = parse_denom_trace(
            get_prefixed_denom(packet.destination_port, packet.destination_channel, data.denom)
        )
        voucher = trace.ibc_denom()
        self._traces.setdefault(voucher, trace)
        self._credit(data.receiver, voucher, data.amount)
        return Acknowledgement()

    # -------------------------------------------------------------------------
    # CosmWasm
    # -------------------------------------------------------------------------

    async def store_contract(self, sender: Wallet, wasm_file: Path) -> str:
        checksum = hashlib.sha256(wasm_file.read_bytes()).hexdigest()
        logic = self.contracts.get(checksum)
        if logic is None:
            raise self._fail(CODE_INVALID_REQUEST, f"no contract logic for checksum {checksum}")

        code_id = str(len(self._codes) + 1)
        self._codes[code_id] = logic
        self._record_tx(
            [
                (
                    "store_code",
                    {"code_id": code_id, "code_checksum": checksum, "sender": sender.address},
                )
            ]
        )
        return code_id

    async def instantiate_contract(
        self,
        sender: Wallet,
        code_id: str,
        init_msg: str,
        label: str,
    ) -> str:
        logic = self._codes.get(code_id)
        if logic is None:
            raise self._fail(CODE_INVALID_REQUEST, f"no such code: {code_id}")

        instance = logic()
        try:
            instance.instantiate(sender.address, json.loads(init_msg))
        except ValueError as exc:
            error = self._fail(CODE_INVALID_REQUEST, f"instantiate wasm contract failed: {exc}")
            raise error from exc

        address = f"{self._config.bech32_prefix}1contract{len(self._instances) + 1}"
        self._instances[address] = instance
        self._record_tx(
            [("instantiate", {"_contract_address": address, "code_id": code_id, "label": label})]
        )
        return address

    async def execute_contract(
        self,
        sender: Wallet,
        contract: str,
        msg: str,
        fees: str = "",
    ) -> TxResponse:
        instance = self._instances.get(contract)
        if instance is None:
            raise self._fail(CODE_INVALID_REQUEST, f"no such contract: {contract}")

        if fees:
            match = _FEE_PATTERN.match(fees)
            if match is None:
                raise self._fail(CODE_INVALID_REQUEST, f"invalid fee: {fees}")
            fee_amount, fee_denom = int(match.group(1)), match.group(2)
            held = self.balance(sender.address, fee_denom)
            if held < fee_amount:
                raise self._fail(
                    CODE_INSUFFICIENT_FUNDS, f"insufficient fees; got {held}{fee_denom}"
                )
            self._move(sender.address, "fee_collector", fee_denom, fee_amount)

        try:
            instance.execute(sender.address, json.loads(msg))
        except ValueError as exc:
            error = self._fail(CODE_INVALID_REQUEST, f"execute wasm contract failed: {exc}")
            raise error from exc

        return self._record_tx([("execute", {"_contract_address": contract})])

    async def query_contract(self, contract: str, msg: dict[str, Any]) -> Any:
        url = f"local://{self._config.chain_id}/cosmwasm/wasm/v1/contract/{contract}/smart"
        instance = self._instances.get(contract)
        if instance is None:
            raise QueryError(url, "contract not found", status_code=404)
        try:
            return instance.query(msg)
        except ValueError as exc:
            raise QueryError(url, str(exc), status_code=400) from exc
