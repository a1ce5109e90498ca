"""
Typed results for node REST queries.

Each query kind decodes into its own model instead of a loose dict, so a
missing or mistyped field fails once, at decode time, with a clear error.
Field names follow the Cosmos SDK gRPC-gateway JSON (snake_case).
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ibc_conformance.relayer.handle import ChannelOutput
from ibc_conformance.types import ResponseModel

# -----------------------------------------------------------------------------
# Transactions
# -----------------------------------------------------------------------------


class EventAttribute(ResponseModel):
    """One key/value attribute of an ABCI event."""

    key: str
    value: str = ""


class Event(ResponseModel):
    """An ABCI event emitted during transaction execution."""

    type: str
    attributes: list[EventAttribute] = Field(default_factory=list)

    def attribute_map(self) -> dict[str, str]:
        """Attributes keyed by name. Later duplicates win."""
        return {attr.key: attr.value for attr in self.attributes}


class TxResponse(ResponseModel):
    """Execution result of an included transaction."""

    height: int
    txhash: str
    code: int
    """ABCI result code. Zero means success."""

    codespace: str = ""
    raw_log: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    events: list[Event] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Whether the transaction executed successfully."""
        return self.code == 0

    def events_of_type(self, event_type: str) -> list[dict[str, str]]:
        """Attribute maps of every event with the given type, in emission order."""
        return [event.attribute_map() for event in self.events if event.type == event_type]


class GetTxResponse(ResponseModel):
    """Response of ``/cosmos/tx/v1beta1/txs/{hash}``."""

    tx_response: TxResponse


class Pagination(ResponseModel):
    """Pagination metadata."""

    next_key: str | None = None
    total: int = 0


class GetTxsEventResponse(ResponseModel):
    """Response of ``/cosmos/tx/v1beta1/txs?query=...``."""

    tx_responses: list[TxResponse] = Field(default_factory=list)
    pagination: Pagination | None = None
    total: int = 0


# -----------------------------------------------------------------------------
# Bank and blocks
# -----------------------------------------------------------------------------


class Coin(ResponseModel):
    """An amount of one denom."""

    denom: str
    amount: int


class QueryBalanceResponse(ResponseModel):
    """Response of ``/cosmos/bank/v1beta1/balances/{address}/by_denom``."""

    balance: Coin


class BlockHeader(ResponseModel):
    """The subset of a block header the harness reads."""

    chain_id: str = ""
    height: int


class Block(ResponseModel):
    """A block, reduced to its header."""

    header: BlockHeader


class GetLatestBlockResponse(ResponseModel):
    """Response of ``/cosmos/base/tendermint/v1beta1/blocks/latest``."""

    block: Block


# -----------------------------------------------------------------------------
# IBC
# -----------------------------------------------------------------------------


class DenomTraceResult(ResponseModel):
    """A denom trace as stored by the transfer module."""

    path: str
    base_denom: str


class QueryDenomTraceResponse(ResponseModel):
    """Response of ``/ibc/apps/transfer/v1/denom_traces/{hash}``."""

    denom_trace: DenomTraceResult


class QueryChannelsResponse(ResponseModel):
    """Response of ``/ibc/core/channel/v1/channels``."""

    channels: list[ChannelOutput] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Governance
# -----------------------------------------------------------------------------


class Proposal(ResponseModel):
    """A governance proposal."""

    id: int
    status: str
    title: str = ""
    summary: str = ""
    proposer: str = ""
    messages: list[dict[str, Any]] = Field(default_factory=list)
    final_tally_result: dict[str, Any] | None = None
    submit_time: str | None = None
    voting_end_time: str | None = None


class QueryProposalResponse(ResponseModel):
    """Response of ``/cosmos/gov/v1/proposals/{id}``."""

    proposal: Proposal


# -----------------------------------------------------------------------------
# Wasm storage
# -----------------------------------------------------------------------------


class Wasm(ResponseModel):
    """A stored Wasm binary."""

    hash: str
    bytecode: str = ""
    """Base64-encoded module bytes."""

    wasm_type: str = ""
    added_at: str | None = None
    expiration_height: int = 0


class QueryDataRequestWasmResponse(ResponseModel):
    """Response of ``/seda-chain/wasm-storage/data_request_wasm/{hash}``."""

    wasm: Wasm


class QueryOverlayWasmResponse(ResponseModel):
    """Response of ``/seda-chain/wasm-storage/overlay_wasm/{hash}``."""

    wasm: Wasm


class QueryDataRequestWasmsResponse(ResponseModel):
    """Response of ``/seda-chain/wasm-storage/data_request_wasms``."""

    hashes: list[str] = Field(default_factory=list, alias="list")
    """Hex hashes of every stored binary."""


class QueryOverlayWasmsResponse(ResponseModel):
    """Response of ``/seda-chain/wasm-storage/overlay_wasms``."""

    hashes: list[str] = Field(default_factory=list, alias="list")
    """Hex hashes of every stored binary."""


class QueryProxyContractRegistryResponse(ResponseModel):
    """Response of ``/seda-chain/wasm-storage/proxy_contract_registry``."""

    address: str


# -----------------------------------------------------------------------------
# CosmWasm
# -----------------------------------------------------------------------------


class QuerySmartContractStateResponse(ResponseModel):
    """Response of ``/cosmwasm/wasm/v1/contract/{address}/smart/{query}``."""

    data: Any
