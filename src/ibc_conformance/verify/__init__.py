"""Exact balance verification."""

from .balance import (
    BalanceMismatch,
    BalanceSnapshot,
    BalanceVerifier,
    check_delta,
    check_equal,
)

__all__ = [
    "BalanceMismatch",
    "BalanceSnapshot",
    "BalanceVerifier",
    "check_delta",
    "check_equal",
]
