"""Shared model bases and the harness error taxonomy."""

from .base import ResponseModel, StrictBaseModel
from .exceptions import (
    AckTimeoutError,
    BalanceMismatchError,
    CommandError,
    ConformanceError,
    InfrastructureError,
    QueryDecodeError,
    QueryError,
    RelayerError,
    TopologyBuildError,
    TransferSubmitError,
    TxFailedError,
)

__all__ = [
    # Models
    "ResponseModel",
    "StrictBaseModel",
    # Errors
    "AckTimeoutError",
    "BalanceMismatchError",
    "CommandError",
    "ConformanceError",
    "InfrastructureError",
    "QueryDecodeError",
    "QueryError",
    "RelayerError",
    "TopologyBuildError",
    "TransferSubmitError",
    "TxFailedError",
]
