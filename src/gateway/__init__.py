"""Gateway - operation registry, dispatch engine and protocol adapters."""

from gateway.errors import (
    DispatchError,
    ExecutionFailed,
    InvalidParameters,
    MissingParameter,
    OperationNotFound,
    OperationTimeout,
)
from gateway.registry import OperationRegistry
from gateway.router import OperationRouter

__all__ = [
    "DispatchError",
    "ExecutionFailed",
    "InvalidParameters",
    "MissingParameter",
    "OperationNotFound",
    "OperationTimeout",
    "OperationRegistry",
    "OperationRouter",
]
