"""
Isolated simulation of account operations.

``SimulateTxAccessor.simulate`` runs an operation exactly as the account
would execute it and reports ``(estimate, success, returnData)``. It only
makes sense inside the account's own context, so it refuses to run unless
delegate-called; the account runs it through ``simulateAndRevert``, which
always rolls the delegatecall back:

    caller --eth_call--> account.fallback
           --CALL-->     handler.simulate(accessor, payload)
           --CALL-->     account.simulateAndRevert(accessor, payload)
           --DELEGATECALL--> accessor.simulate(to, value, data, operation)
                             (reverts with the packed outcome)

Nothing the simulated operation writes survives, whether it succeeded or
not. ``simulate_transaction`` drives the whole chain from Python.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from ..address_checksum import ZERO_ADDRESS
from ..vm.contract import Contract, external
from ..vm.evm import abi
from ..vm.evm.context import CallContext, CallType
from ..vm.exceptions import AbiDecodingError, VMExecutionError
from .executor import Executor

logger = logging.getLogger(__name__)

DELEGATECALL_ONLY_ERROR = "SimulateTxAccessor should only be called via delegatecall"

ACCESSOR_SIMULATE_SIGNATURE = "simulate(address,uint256,bytes,uint8)"
HANDLER_SIMULATE_SIGNATURE = "simulate(address,bytes)"


class SimulateTxAccessor(Contract, Executor):
    """Measures an operation from inside the account that delegate-calls it."""

    @external(ACCESSOR_SIMULATE_SIGNATURE, returns="(uint256,bool,bytes)")
    def simulate(
        self,
        ctx: CallContext,
        to: str,
        value: int,
        data: bytes,
        operation: int,
    ) -> Tuple[int, bool, bytes]:
        """
        Execute the operation and measure it.

        Returns:
            (estimate, success, returnData): gas consumed by the operation,
            whether it succeeded and its return or revert data
        """
        ctx.require(not ctx.is_self(self.address), DELEGATECALL_ONLY_ERROR)
        start_gas = ctx.gas_left()
        success = self.execute(ctx, to, value, data, operation, ctx.gas_left())
        estimate = start_gas - ctx.gas_left()
        return estimate, success, ctx.return_data


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of a simulated operation. Never persisted."""
    success: bool
    gas_used: int
    return_data: bytes

    @property
    def revert_reason(self) -> Optional[str]:
        if self.success:
            return None
        return abi.decode_revert_reason(self.return_data)


class SimulationError(VMExecutionError):
    """Raised when the simulation machinery itself fails (not the simulated operation)."""

    def __init__(self, message: str, return_data: bytes = b"") -> None:
        super().__init__(message, details={"return_data": return_data.hex()})
        self.return_data = return_data


def _address_of(target: Union[str, Contract]) -> str:
    return target.address if isinstance(target, Contract) else target


def encode_simulation_call(accessor: str, to: str, value: int, data: bytes, operation: int) -> bytes:
    """Calldata sent to the account to simulate an operation through its fallback handler."""
    payload = abi.encode_call(ACCESSOR_SIMULATE_SIGNATURE, [to, value, data, int(operation)])
    return abi.encode_call(HANDLER_SIMULATE_SIGNATURE, [accessor, payload])


def decode_simulation_result(return_data: bytes) -> SimulationResult:
    """Decode the handler's answer into a :class:`SimulationResult`."""
    (response,) = abi.decode_args(["bytes"], return_data)
    estimate, success, inner = abi.decode_args(["uint256", "bool", "bytes"], response)
    return SimulationResult(success=success, gas_used=estimate, return_data=inner)


def simulate_transaction(
    host,
    account: Union[str, Contract],
    accessor: Union[str, Contract],
    to: str,
    value: int = 0,
    data: bytes = b"",
    operation: int = CallType.CALL,
    sender: str = ZERO_ADDRESS,
    commit: bool = False,
) -> SimulationResult:
    """
    Simulate an operation of ``account`` and report its outcome.

    Args:
        host: Execution host holding the account
        account: Account whose fallback handler supports ``simulate``
        accessor: Deployed SimulateTxAccessor
        to, value, data, operation: The operation to simulate
        sender: Caller of the simulation
        commit: Submit as a transaction instead of a static call; the
            account state is unchanged either way

    Raises:
        SimulationError: The simulation call itself failed (for example the
            account has no compatible fallback handler)
    """
    account_address = _address_of(account)
    calldata = encode_simulation_call(_address_of(accessor), to, value, data, operation)
    if commit:
        result = host.transact(sender, account_address, calldata)
    else:
        result = host.call_static(account_address, calldata, sender=sender)

    if not result.success:
        logger.warning(
            "Simulation failed",
            extra={
                "event": "simulation.failed",
                "account": account_address[:10],
                "reason": result.revert_reason,
            },
        )
        raise SimulationError(result.revert_reason or "simulation call failed", result.return_data)

    try:
        simulation = decode_simulation_result(result.return_data)
    except AbiDecodingError as exc:
        raise SimulationError(
            "Account returned no simulation result (fallback handler missing or incompatible)",
            result.return_data,
        ) from exc
    logger.info(
        "Simulation completed",
        extra={
            "event": "simulation.completed",
            "account": account_address[:10],
            "to": to[:10],
            "operation": int(operation),
            "success": simulation.success,
            "gas_used": simulation.gas_used,
        },
    )
    return simulation


__all__ = [
    "DELEGATECALL_ONLY_ERROR",
    "SimulateTxAccessor",
    "SimulationError",
    "SimulationResult",
    "decode_simulation_result",
    "encode_simulation_call",
    "simulate_transaction",
]
