"""Conformance checks beyond token transfer."""

from .cosmwasm import (
    EXECUTE_FEE,
    ContractStateError,
    CounterReport,
    WasmChain,
    conformance_cosmwasm,
)

__all__ = [
    "EXECUTE_FEE",
    "ContractStateError",
    "CounterReport",
    "WasmChain",
    "conformance_cosmwasm",
]
