"""
In-process execution host for Python contracts.

Provides message calls of every kind (CALL, DELEGATECALL, STATICCALL) over a
journaled world state, so that any frame can be rolled back as a whole.
"""

from .contract import Contract, external
from .evm.context import BlockContext, CallContext, CallType, Log
from .exceptions import (
    AbiDecodingError,
    AbiEncodingError,
    CallDepthExceeded,
    ExecutionReverted,
    InsufficientBalanceError,
    OutOfGasError,
    StaticCallViolation,
    VMExecutionError,
)
from .executor import ExecutionHost, ExecutionResult

__all__ = [
    "AbiDecodingError",
    "AbiEncodingError",
    "BlockContext",
    "CallContext",
    "CallDepthExceeded",
    "CallType",
    "Contract",
    "ExecutionHost",
    "ExecutionReverted",
    "ExecutionResult",
    "InsufficientBalanceError",
    "Log",
    "OutOfGasError",
    "StaticCallViolation",
    "VMExecutionError",
    "external",
]
