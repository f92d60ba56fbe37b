"""
Execution host: runs message calls of every kind against the journaled state.

Each frame executes inside its own state checkpoint. A frame that returns
normally is committed into its parent; a frame that raises a
``VMExecutionError`` is reverted and reported to its caller as a failed
call carrying the error's revert data. Python errors outside that
hierarchy are bugs and propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..address_checksum import ZERO_ADDRESS, int_to_address, keccak256, to_checksum_address
from ..config import Config, MAX_CALL_DEPTH
from . import gas as gas_schedule
from .contract import Contract
from .evm.abi import decode_revert_reason
from .evm.context import BlockContext, CallContext, CallType, Log
from .exceptions import (
    AbiDecodingError,
    CallDepthExceeded,
    ExecutionReverted,
    StaticCallViolation,
    VMExecutionError,
)
from .state import StateJournal

logger = logging.getLogger(__name__)

_DEPLOY_DOMAIN = b"safe_core.deploy"


@dataclass
class FrameResult:
    success: bool
    output: bytes
    gas_used: int
    error: Optional[VMExecutionError] = None


@dataclass
class ExecutionResult:
    """Outcome of a top-level transaction or static call."""
    success: bool
    return_data: bytes
    gas_used: int
    logs: List[Log] = field(default_factory=list)
    error: Optional[VMExecutionError] = None

    @property
    def revert_reason(self) -> Optional[str]:
        """Decoded ``Error(string)`` message of a failed execution, if any."""
        if self.success:
            return None
        return decode_revert_reason(self.return_data)


class ExecutionHost:
    """
    In-process ledger executing Python contracts.

    Usage:
        host = ExecutionHost()
        safe = host.deploy(Safe())
        result = host.transact(sender, safe.address, calldata)
    """

    def __init__(self, config=None, block: Optional[BlockContext] = None) -> None:
        self.config = config or Config
        self.block = block or BlockContext(
            number=1,
            timestamp=0,
            gas_limit=self.config.BLOCK_GAS_LIMIT,
            coinbase=ZERO_ADDRESS,
            prevrandao=0,
            base_fee=0,
            chain_id=self.config.CHAIN_ID,
        )
        self.state = StateJournal()
        self._logs: List[Log] = []
        self._deployments = 0

    # ------------------------------------------------------------------ #
    # Accounts
    # ------------------------------------------------------------------ #

    def deploy(self, contract: Contract, balance: int = 0, address: Optional[str] = None) -> Contract:
        """Install ``contract`` as code of a fresh (or the given) address."""
        if address is None:
            self._deployments += 1
            seed = keccak256(_DEPLOY_DOMAIN + self._deployments.to_bytes(32, "big"))
            address = int_to_address(int.from_bytes(seed[-20:], "big"))
        if self.state.get_code(address) is not None:
            raise ValueError(f"Address {address} already has code")
        contract.address = to_checksum_address(address)
        self.state.set_code(contract.address, contract)
        if balance:
            self.state.add_balance(contract.address, balance)
        logger.debug(
            "Contract deployed",
            extra={
                "event": "vm.deployed",
                "contract": type(contract).__name__,
                "address": contract.address[:10],
            },
        )
        return contract

    def fund(self, address: str, amount: int) -> None:
        self.state.add_balance(address, amount)

    def get_balance(self, address: str) -> int:
        return self.state.get_balance(address)

    def get_code(self, address: str) -> Optional[Contract]:
        return self.state.get_code(address)

    def get_nonce(self, address: str) -> int:
        return self.state.get_nonce(address)

    def get_storage_at(self, address: str, slot: int) -> int:
        return self.state.storage_get(address, slot)

    def append_log(self, log: Log) -> None:
        self._logs.append(log)

    # ------------------------------------------------------------------ #
    # Top-level entry points
    # ------------------------------------------------------------------ #

    def transact(
        self,
        sender: str,
        to: str,
        data: bytes = b"",
        value: int = 0,
        gas: Optional[int] = None,
    ) -> ExecutionResult:
        """Execute and commit a transaction (state is left untouched if it fails)."""
        self.state.increment_nonce(sender)
        return self._run_top_level(sender, to, data, value, gas, persist=True)

    def call_static(
        self,
        to: str,
        data: bytes = b"",
        sender: str = ZERO_ADDRESS,
        value: int = 0,
        gas: Optional[int] = None,
    ) -> ExecutionResult:
        """Execute a call and always roll it back (``eth_call``)."""
        return self._run_top_level(sender, to, data, value, gas, persist=False)

    def _run_top_level(
        self,
        sender: str,
        to: str,
        data: bytes,
        value: int,
        gas: Optional[int],
        persist: bool,
    ) -> ExecutionResult:
        gas_limit = self.config.TX_GAS_LIMIT if gas is None else gas
        marker = self.state.begin()
        self._logs = []
        ctx = CallContext(
            call_type=CallType.CALL,
            depth=0,
            address=to,
            caller=sender,
            origin=sender,
            value=value,
            gas=gas_limit,
            calldata=bytes(data),
            static=False,
            code_address=to,
            host=self,
        )
        result = self._execute_frame(ctx, transfer_value=True)
        if persist and result.success:
            self.state.commit()
        else:
            self.state.revert_to(marker - 1)

        logs = list(self._logs) if result.success else []
        self._logs = []
        return ExecutionResult(
            success=result.success,
            return_data=result.output,
            gas_used=gas_schedule.G_TX_INTRINSIC + result.gas_used,
            logs=logs,
            error=result.error,
        )

    # ------------------------------------------------------------------ #
    # Frames
    # ------------------------------------------------------------------ #

    def message_call(
        self,
        parent: CallContext,
        call_type: CallType,
        to: str,
        data: bytes,
        value: int = 0,
        gas: Optional[int] = None,
    ) -> tuple[bool, bytes]:
        """
        Run a nested call on behalf of ``parent``.

        Returns:
            ``(success, return_data)``; the child's gas use is charged to the parent.
        """
        transfers_value = call_type == CallType.CALL and value > 0
        if parent.static and transfers_value:
            raise StaticCallViolation("value transfer in static context")

        parent.charge(gas_schedule.G_CALL + (gas_schedule.G_CALL_VALUE if transfers_value else 0), "call")
        available = gas_schedule.max_call_gas(parent.gas_left())
        forwarded = available if gas is None else min(int(gas), available)

        if call_type == CallType.DELEGATECALL:
            address, caller, call_value = parent.address, parent.caller, parent.value
        else:
            address, caller, call_value = to, parent.address, value if call_type == CallType.CALL else 0

        child = CallContext(
            call_type=call_type,
            depth=parent.depth + 1,
            address=address,
            caller=caller,
            origin=parent.origin,
            value=call_value,
            gas=forwarded,
            calldata=bytes(data),
            static=parent.static or call_type == CallType.STATICCALL,
            code_address=to,
            host=self,
        )

        if child.depth > MAX_CALL_DEPTH:
            result = FrameResult(False, b"", 0, CallDepthExceeded(f"call depth {child.depth} exceeds {MAX_CALL_DEPTH}"))
        elif transfers_value and self.state.get_balance(parent.address) < value:
            result = FrameResult(False, b"", 0)
        else:
            result = self._execute_frame(child, transfer_value=transfers_value)

        parent.charge(result.gas_used, "sub-call")
        parent.return_data = result.output
        return result.success, result.output

    def _execute_frame(self, ctx: CallContext, transfer_value: bool) -> FrameResult:
        self.state.begin()
        log_mark = len(self._logs)
        try:
            if transfer_value and ctx.value:
                self.state.transfer(ctx.caller, ctx.address, ctx.value)
            code = self.state.get_code(ctx.code_address)
            output = code.dispatch(ctx) if code is not None else b""
        except VMExecutionError as exc:
            self.state.revert()
            del self._logs[log_mark:]
            if not isinstance(exc, (ExecutionReverted, AbiDecodingError)):
                # Exceptional halts consume the whole frame budget
                ctx.meter.restore(gas_schedule.GasSnapshot(ctx.meter.limit))
            logger.debug(
                "Call frame failed",
                extra={
                    "event": "vm.call_failed",
                    "call_type": ctx.call_type.name,
                    "address": ctx.address[:10],
                    "depth": ctx.depth,
                    "error": type(exc).__name__,
                    "reason": exc.message,
                },
            )
            return FrameResult(False, exc.revert_data, ctx.meter.used, exc)

        self.state.commit()
        return FrameResult(True, bytes(output), ctx.meter.used)


__all__ = ["ExecutionHost", "ExecutionResult", "FrameResult"]
