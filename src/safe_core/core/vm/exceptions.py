"""
Execution host exception hierarchy.

Every failure that aborts a message-call frame derives from
``VMExecutionError``. The host catches these at frame boundaries, reverts
the frame's checkpoint and reports ``success=False`` to the caller; any
other Python exception is a bug and propagates untouched.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VMExecutionError(Exception):
    """Base exception for all execution failures.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def revert_data(self) -> bytes:
        """Return data surfaced to the caller when this error aborts a frame."""
        return b""


class ExecutionReverted(VMExecutionError):
    """Raised when a frame deliberately aborts with (possibly empty) revert data.

    ``reason`` is the decoded ``Error(string)`` message when the payload
    carries one, otherwise ``None``.
    """

    def __init__(self, data: bytes = b"", reason: Optional[str] = None) -> None:
        self.data = bytes(data)
        self.reason = reason
        super().__init__(reason if reason is not None else f"execution reverted (0x{self.data.hex()})")

    @property
    def revert_data(self) -> bytes:
        return self.data


class OutOfGasError(VMExecutionError):
    """Raised when a frame tries to consume more gas than it was given."""
    pass


class StaticCallViolation(VMExecutionError):
    """Raised when a state write is attempted inside a static call."""
    pass


class CallDepthExceeded(VMExecutionError):
    """Raised when nested message calls exceed the maximum depth."""
    pass


class InsufficientBalanceError(VMExecutionError):
    """Raised when a value transfer exceeds the sender's balance."""
    pass


class AbiDecodingError(VMExecutionError):
    """Raised when call or return data cannot be decoded for the declared types."""
    pass


class AbiEncodingError(ValueError):
    """Raised when a Python value cannot be encoded as the declared ABI type."""
    pass
