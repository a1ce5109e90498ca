"""
Balance snapshots and exact-equality verification.

Every amount is an integer in the denom's smallest unit. There is no
tolerance: a transfer of 1,000 must move exactly 1,000. Floats are
rejected rather than compared, because a float that happens to round
to the right value would hide a unit or precision bug.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from ibc_conformance.metrics import registry as metrics
from ibc_conformance.types import BalanceMismatchError

if TYPE_CHECKING:
    from ibc_conformance.chain.handle import ChainHandle

logger = logging.getLogger(__name__)


def _require_int(name: str, value: object) -> int:
    """Return ``value`` if it is an exact integer, else raise TypeError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}: {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    """Point-in-time balance of one account in one denom."""

    chain_id: str
    """Chain the balance was read from."""

    address: str
    """Account address."""

    denom: str
    """Denom the balance is indexed under."""

    amount: int
    """Balance in the smallest unit."""

    def __post_init__(self) -> None:
        _require_int("amount", self.amount)

    @classmethod
    async def take(cls, chain: ChainHandle, address: str, denom: str) -> BalanceSnapshot:
        """Read a balance from a chain."""
        amount = await chain.get_balance(address, denom)
        return cls(chain_id=chain.config.chain_id, address=address, denom=denom, amount=amount)


@dataclass(frozen=True, slots=True)
class BalanceMismatch:
    """A balance assertion that did not hold."""

    chain_id: str
    address: str
    denom: str
    expected: int
    observed: int
    kind: Literal["equal", "delta"] = "equal"
    """Which primitive produced the mismatch."""

    def __str__(self) -> str:
        return (
            f"{self.address} on {self.chain_id} holds {self.observed}{self.denom}, "
            f"expected {self.expected}{self.denom} ({self.kind})"
        )


def check_equal(observed: BalanceSnapshot, expected: int) -> BalanceMismatch | None:
    """
    Compare a snapshot against an exact expected amount.

    Returns:
        The mismatch, or None when the balance matches.
    """
    expected = _require_int("expected", expected)
    if observed.amount == expected:
        return None
    return BalanceMismatch(
        chain_id=observed.chain_id,
        address=observed.address,
        denom=observed.denom,
        expected=expected,
        observed=observed.amount,
    )


def check_delta(
    before: BalanceSnapshot,
    after: BalanceSnapshot,
    expected_delta: int,
) -> BalanceMismatch | None:
    """
    Require ``after.amount - before.amount == expected_delta``.

    Both snapshots must describe the same account and denom.

    Returns:
        The mismatch (expressed in absolute amounts), or None when the delta matches.

    Raises:
        ValueError: If the snapshots describe different balances.
    """
    expected_delta = _require_int("expected_delta", expected_delta)
    if (before.chain_id, before.address, before.denom) != (
        after.chain_id,
        after.address,
        after.denom,
    ):
        raise ValueError(f"Cannot compare snapshots of different balances: {before} vs {after}")

    expected = before.amount + expected_delta
    if after.amount == expected:
        return None
    return BalanceMismatch(
        chain_id=after.chain_id,
        address=after.address,
        denom=after.denom,
        expected=expected,
        observed=after.amount,
        kind="delta",
    )


@dataclass(slots=True)
class BalanceVerifier:
    """
    Collects balance mismatches for one scenario step.

    The primitives record a mismatch instead of raising, so a step with
    several assertions reports all of them at once. ``verify()`` then
    fails the step with a single ``BalanceMismatchError``.
    """

    step: str
    """Label of the scenario step being verified (appears in the error)."""

    mismatches: list[BalanceMismatch] = field(default_factory=list)
    """Mismatches recorded so far."""

    def assert_equal(self, observed: BalanceSnapshot, expected: int) -> BalanceMismatch | None:
        """Record a mismatch unless ``observed`` holds exactly ``expected``."""
        mismatch = check_equal(observed, expected)
        self._record(mismatch)
        return mismatch

    def assert_delta(
        self,
        before: BalanceSnapshot,
        after: BalanceSnapshot,
        expected_delta: int,
    ) -> BalanceMismatch | None:
        """Record a mismatch unless the balance moved by exactly ``expected_delta``."""
        mismatch = check_delta(before, after, expected_delta)
        self._record(mismatch)
        return mismatch

    def _record(self, mismatch: BalanceMismatch | None) -> None:
        if mismatch is None:
            return
        logger.error("[%s] %s", self.step, mismatch)
        metrics.balance_mismatches.inc()
        self.mismatches.append(mismatch)

    @property
    def ok(self) -> bool:
        """Whether every assertion so far held."""
        return not self.mismatches

    def verify(self) -> None:
        """
        Fail the step if any assertion did not hold.

        Raises:
            BalanceMismatchError: Carrying every recorded mismatch.
        """
        if self.mismatches:
            raise BalanceMismatchError(self.step, self.mismatches)
