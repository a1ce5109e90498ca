"""
CosmWasm smoke conformance.

Stores the template counter contract, instantiates it at zero, executes
one ``increment`` with an explicit fee, and requires the smart query to
report a count of exactly one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

from ibc_conformance.types import ConformanceError

if TYPE_CHECKING:
    from ibc_conformance.chain.handle import ChainConfig, Wallet
    from ibc_conformance.query.responses import TxResponse

logger = logging.getLogger(__name__)

EXECUTE_FEE: Final[int] = 10_000
"""Fee paid for the increment, in the chain's native denom."""


class ContractStateError(ConformanceError):
    """
    Raised when a contract query returns something other than expected.

    Attributes:
        contract: Contract address.
        expected: The expected query result.
        observed: The actual query result.
    """

    def __init__(self, contract: str, expected: Any, observed: Any) -> None:
        self.contract = contract
        self.expected = expected
        self.observed = observed
        super().__init__(f"Contract {contract} returned {observed!r}, expected {expected!r}")


@runtime_checkable
class WasmChain(Protocol):
    """A chain that can store, instantiate, execute, and query contracts."""

    @property
    def config(self) -> ChainConfig: ...

    async def store_contract(self, sender: Wallet, wasm_file: Path) -> str:
        """Upload a Wasm file and return its code id."""
        ...

    async def instantiate_contract(
        self,
        sender: Wallet,
        code_id: str,
        init_msg: str,
        label: str,
    ) -> str:
        """Instantiate a stored code and return the contract address."""
        ...

    async def execute_contract(
        self,
        sender: Wallet,
        contract: str,
        msg: str,
        fees: str = "",
    ) -> TxResponse:
        """Execute a message and return the included transaction."""
        ...

    async def query_contract(self, contract: str, msg: dict[str, Any]) -> Any:
        """Run a smart query."""
        ...


@dataclass(frozen=True, slots=True)
class CounterReport:
    """Result of a passed counter run."""

    code_id: str
    contract: str
    execute_tx: str
    count: int


async def conformance_cosmwasm(chain: WasmChain, user: Wallet, wasm_file: Path) -> CounterReport:
    """
    Run the counter contract through store, instantiate, execute, and query.

    Args:
        chain: Chain to run on.
        user: Funded account paying for everything.
        wasm_file: The compiled counter contract.

    Raises:
        TransferSubmitError: If any transaction is rejected.
        ContractStateError: If the final count is not 1.
    """
    code_id = await chain.store_contract(user, wasm_file)
    logger.info("Stored %s on %s as code %s", wasm_file.name, chain.config.chain_id, code_id)

    contract = await chain.instantiate_contract(
        user, code_id, json.dumps({"count": 0}), label="counter"
    )

    tx = await chain.execute_contract(
        user,
        contract,
        json.dumps({"increment": {}}),
        fees=f"{EXECUTE_FEE}{chain.config.denom}",
    )

    result = await chain.query_contract(contract, {"get_count": {}})
    expected = {"count": 1}
    if result != expected:
        raise ContractStateError(contract, expected, result)

    logger.info("Counter contract %s on %s reached count 1", contract, chain.config.chain_id)
    return CounterReport(code_id=code_id, contract=contract, execute_tx=tx.txhash, count=1)
