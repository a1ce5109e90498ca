"""
Contract logic for the local network.

A local chain cannot execute Wasm. Instead, each stored code checksum
maps to a Python class implementing the contract's messages. Storing a
code whose checksum has no registered class fails like an invalid
upload would.
"""

from __future__ import annotations

from typing import Any, Protocol


class LocalContract(Protocol):
    """Behavior of one instantiated contract."""

    def instantiate(self, sender: str, msg: dict[str, Any]) -> None:
        """Initialize contract state. Raises ValueError on an invalid message."""
        ...

    def execute(self, sender: str, msg: dict[str, Any]) -> None:
        """Handle an execute message. Raises ValueError on an invalid message."""
        ...

    def query(self, msg: dict[str, Any]) -> Any:
        """Answer a smart query. Raises ValueError on an invalid message."""
        ...


class CounterContract:
    """
    The CosmWasm template counter.

    Messages:
        instantiate: ``{"count": n}``
        execute: ``{"increment": {}}`` or ``{"reset": {"count": n}}`` (owner only)
        query: ``{"get_count": {}}`` returning ``{"count": n}``
    """

    def __init__(self) -> None:
        self.count = 0
        self.owner = ""

    def instantiate(self, sender: str, msg: dict[str, Any]) -> None:
        count = msg.get("count")
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError(f"invalid instantiate message: {msg}")
        self.count = count
        self.owner = sender

    def execute(self, sender: str, msg: dict[str, Any]) -> None:
        if "increment" in msg:
            self.count += 1
        elif "reset" in msg:
            if sender != self.owner:
                raise ValueError("Unauthorized")
            count = msg["reset"].get("count")
            if isinstance(count, bool) or not isinstance(count, int):
                raise ValueError(f"invalid reset message: {msg}")
            self.count = count
        else:
            raise ValueError(f"unknown execute message: {msg}")

    def query(self, msg: dict[str, Any]) -> Any:
        if "get_count" in msg:
            return {"count": self.count}
        raise ValueError(f"unknown query message: {msg}")
