"""
Typed REST queries against a node's API.

Provides:
- NodeQueryClient: dependency-injected client over ``httpx.AsyncClient``
- Response models, one per query kind
"""

from .client import NodeQueryClient
from .responses import (
    Coin,
    Event,
    GetTxsEventResponse,
    Proposal,
    QueryDataRequestWasmResponse,
    QueryDataRequestWasmsResponse,
    QueryDenomTraceResponse,
    QueryOverlayWasmResponse,
    QueryOverlayWasmsResponse,
    QueryProposalResponse,
    QueryProxyContractRegistryResponse,
    TxResponse,
    Wasm,
)

__all__ = [
    "Coin",
    "Event",
    "GetTxsEventResponse",
    "NodeQueryClient",
    "Proposal",
    "QueryDataRequestWasmResponse",
    "QueryDataRequestWasmsResponse",
    "QueryDenomTraceResponse",
    "QueryOverlayWasmResponse",
    "QueryOverlayWasmsResponse",
    "QueryProposalResponse",
    "QueryProxyContractRegistryResponse",
    "TxResponse",
    "Wasm",
]
