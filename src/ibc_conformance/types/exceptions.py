"""Exception hierarchy for the conformance harness."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ibc_conformance.verify.balance import BalanceMismatch


class ConformanceError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class InfrastructureError(ConformanceError):
    """
    Raised when a network or the relayer fails to start or link.

    Fatal to the scenario. Callers may retry the whole topology build,
    but nothing below the orchestrator retries on its own.
    """


class TopologyBuildError(InfrastructureError):
    """
    Raised when the orchestrator cannot bring a topology up.

    Attributes:
        stage: The build stage that failed (e.g. "create-network", "link-path").
        detail: Description of what went wrong.
    """

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"Topology build failed during {stage}: {detail}")


class CommandError(InfrastructureError):
    """
    Raised when an external binary (chain CLI, relayer) exits unsuccessfully.

    Attributes:
        command: The command line that failed.
        exit_code: Process exit code, if the process ran at all.
        output: Captured stderr/stdout (truncated for display).
    """

    def __init__(self, command: str, *, exit_code: int | None = None, output: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output

        msg = f"Command {command!r} failed"
        if exit_code is not None:
            msg = f"{msg} with exit code {exit_code}"
        if output:
            snippet = output if len(output) <= 200 else output[:197] + "..."
            msg = f"{msg}: {snippet}"

        super().__init__(msg)


class RelayerError(CommandError):
    """Raised when a relayer operation fails."""


class TransferSubmitError(ConformanceError):
    """
    Raised when a transfer is rejected before or during on-chain execution.

    Attributes:
        chain_id: The chain the transfer was submitted to.
        code: On-chain status code, when the chain returned one.
        detail: Description of the rejection.
    """

    def __init__(self, chain_id: str, detail: str, *, code: int | None = None) -> None:
        self.chain_id = chain_id
        self.code = code
        self.detail = detail

        msg = f"Transfer on {chain_id} rejected: {detail}"
        if code is not None:
            msg = f"{msg} (code {code})"

        super().__init__(msg)


class TxFailedError(TransferSubmitError):
    """
    Raised when a transaction landed on chain with a non-zero code.

    Attributes:
        tx_hash: Hash of the failed transaction.
        raw_log: The node's execution log for the transaction.
    """

    def __init__(self, chain_id: str, tx_hash: str, code: int, raw_log: str = "") -> None:
        self.tx_hash = tx_hash
        self.raw_log = raw_log
        detail = f"tx {tx_hash} failed with status code {code}"
        if raw_log:
            detail = f"{detail}: {raw_log}"
        super().__init__(chain_id, detail, code=code)


class AckTimeoutError(ConformanceError):
    """
    Raised when a packet acknowledgment is not observed within its height window.

    Attributes:
        chain_id: The source chain being polled.
        sequence: The packet sequence number.
        start_height: First height of the window (inclusive).
        end_height: Last height of the window (inclusive).
        last_height: The last height observed before giving up.
    """

    def __init__(
        self,
        chain_id: str,
        sequence: int,
        *,
        start_height: int,
        end_height: int,
        last_height: int,
    ) -> None:
        self.chain_id = chain_id
        self.sequence = sequence
        self.start_height = start_height
        self.end_height = end_height
        self.last_height = last_height

        super().__init__(
            f"No acknowledgment for packet {sequence} on {chain_id} within heights "
            f"[{start_height}, {end_height}] (last seen height {last_height})"
        )


class BalanceMismatchError(ConformanceError):
    """
    Raised when a post-condition on balances does not hold.

    Attributes:
        step: The scenario step whose verification failed.
        mismatches: Every mismatch observed during that step.
    """

    def __init__(self, step: str, mismatches: Sequence[BalanceMismatch]) -> None:
        self.step = step
        self.mismatches = tuple(mismatches)

        details = "; ".join(str(m) for m in self.mismatches)
        super().__init__(f"Balance verification failed at {step}: {details}")


class QueryError(ConformanceError):
    """
    Raised when a read against a node's API fails.

    Attributes:
        url: The requested URL.
        status_code: HTTP status code, or None for transport failures.
        detail: Description of the failure.
    """

    def __init__(self, url: str, detail: str, *, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        self.detail = detail

        if status_code is not None:
            msg = f"Query {url} returned non-200 status {status_code}: {detail}"
        else:
            msg = f"Query {url} failed: {detail}"

        super().__init__(msg)

    @property
    def is_not_found(self) -> bool:
        """Whether the node answered 404 (the resource does not exist yet)."""
        return self.status_code == 404


class QueryDecodeError(QueryError):
    """
    Raised when a query response cannot be decoded into its typed result.

    Attributes:
        response_type: Name of the model the payload was decoded into.
    """

    def __init__(self, url: str, response_type: str, detail: str) -> None:
        self.response_type = response_type
        super().__init__(url, f"cannot decode {response_type}: {detail}")
