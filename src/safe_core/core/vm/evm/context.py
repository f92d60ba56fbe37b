"""
Execution context for one message-call frame.

``CallContext`` is the only handle contract code gets on the world: it
exposes the frame's identity (``address``, ``caller``, ``value``), gas
accounting and the host primitives (storage, balance, hashing, signer
recovery, nested calls, logs, self-destruct). Every primitive charges gas
on the frame's meter before touching state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ...address_checksum import (
    address_to_int,
    keccak256,
    normalize_address,
)
from ...crypto_utils import recover_address
from .. import gas as gas_schedule
from ..exceptions import ExecutionReverted, StaticCallViolation
from ..gas import GasMeter
from . import abi

if TYPE_CHECKING:
    from ..executor import ExecutionHost

NON_CONTRACT_ERROR = "function call to a non-contract account"


class CallType(IntEnum):
    """Message-call kinds. CALL and DELEGATECALL double as the account's operation codes."""
    CALL = 0
    DELEGATECALL = 1
    STATICCALL = 2


@dataclass(frozen=True)
class BlockContext:
    number: int
    timestamp: int
    gas_limit: int
    coinbase: str
    prevrandao: int
    base_fee: int
    chain_id: int


@dataclass(frozen=True)
class Log:
    """Event emitted by a contract."""
    address: str
    event: str
    args: tuple
    topic: bytes


@dataclass
class CallContext:
    call_type: CallType
    depth: int
    address: str
    caller: str
    origin: str
    value: int
    gas: int
    calldata: bytes
    static: bool
    code_address: Optional[str] = None
    host: Optional["ExecutionHost"] = field(default=None, repr=False)
    meter: GasMeter = field(default=None, repr=False)  # type: ignore[assignment]
    return_data: bytes = field(default=b"", repr=False)

    def __post_init__(self) -> None:
        if self.code_address is None:
            self.code_address = self.address
        if self.meter is None:
            self.meter = GasMeter(self.gas)

    # ------------------------------------------------------------------ #
    # Environment
    # ------------------------------------------------------------------ #

    @property
    def block(self) -> BlockContext:
        return self.host.block

    @property
    def chain_id(self) -> int:
        return self.host.block.chain_id

    def gas_left(self) -> int:
        return self.meter.remaining

    def charge(self, amount: int, reason: Optional[str] = None) -> None:
        self.meter.charge(amount, reason=reason)

    def balance(self, address: Optional[str] = None) -> int:
        return self.host.state.get_balance(address or self.address)

    def has_code(self, address: str) -> bool:
        return self.host.state.get_code(address) is not None

    # ------------------------------------------------------------------ #
    # Storage
    # ------------------------------------------------------------------ #

    def sload(self, slot: int) -> int:
        self.charge(gas_schedule.G_SLOAD, "sload")
        return self.host.state.storage_get(self.address, slot)

    def sstore(self, slot: int, value: int) -> None:
        self._require_mutable("sstore")
        current = self.host.state.storage_get(self.address, slot)
        self.charge(gas_schedule.sstore_cost(current, value), "sstore")
        self.host.state.storage_set(self.address, slot, value)

    def mapping_slot(self, key: Any, slot: int, key_type: str = "address") -> int:
        """Storage slot of ``mapping[key]`` declared at ``slot``: keccak256(abi.encode(key, slot))."""
        return int.from_bytes(self.keccak(abi.encode_args([key_type, "uint256"], [key, slot])), "big")

    # ------------------------------------------------------------------ #
    # Crypto
    # ------------------------------------------------------------------ #

    def keccak(self, data: bytes) -> bytes:
        self.charge(gas_schedule.keccak_cost(len(data)), "keccak")
        return keccak256(data)

    def ecrecover(self, digest: bytes, v: int, r: int, s: int) -> str:
        self.charge(gas_schedule.G_ECRECOVER, "ecrecover")
        return recover_address(digest, v, r, s)

    # ------------------------------------------------------------------ #
    # Message calls
    # ------------------------------------------------------------------ #

    def call(self, to: str, data: bytes = b"", value: int = 0, gas: Optional[int] = None) -> tuple[bool, bytes]:
        return self.host.message_call(self, CallType.CALL, to, data, value=value, gas=gas)

    def delegatecall(self, to: str, data: bytes = b"", gas: Optional[int] = None) -> tuple[bool, bytes]:
        return self.host.message_call(self, CallType.DELEGATECALL, to, data, gas=gas)

    def staticcall(self, to: str, data: bytes = b"", gas: Optional[int] = None) -> tuple[bool, bytes]:
        return self.host.message_call(self, CallType.STATICCALL, to, data, gas=gas)

    def invoke(
        self,
        to: str,
        signature: str,
        args: Sequence[Any] = (),
        returns: str = "()",
        value: int = 0,
    ) -> Any:
        """
        High-level interface call, the equivalent of ``Target(to).method(args)``.

        Reverts when ``to`` has no code, bubbles the callee's revert data and
        decodes the declared return values (``None`` for none, the value
        itself for one, a tuple otherwise).
        """
        if not self.has_code(to):
            self.revert(NON_CONTRACT_ERROR)
        success, output = self.call(to, abi.encode_call(signature, args), value=value)
        if not success:
            raise ExecutionReverted(output, abi.decode_revert_reason(output))
        types = abi.parse_type_list(returns)
        if not types:
            return None
        values = abi.decode_args(types, output)
        return values[0] if len(values) == 1 else tuple(values)

    # ------------------------------------------------------------------ #
    # Termination and side effects
    # ------------------------------------------------------------------ #

    def revert(self, message: Optional[str] = None, data: Optional[bytes] = None) -> None:
        """Abort the frame with ``Error(message)`` or raw ``data`` (empty by default)."""
        if message is not None:
            raise ExecutionReverted(abi.encode_error(message), reason=message)
        raise ExecutionReverted(data or b"")

    def require(self, condition: bool, message: Optional[str] = None) -> None:
        if not condition:
            self.revert(message)

    def emit(self, event: str, *args: Any) -> None:
        """Record ``event`` (a canonical event signature) with its arguments."""
        self._require_mutable("log")
        self.charge(gas_schedule.G_LOG, "log")
        self.host.append_log(Log(self.address, event, tuple(args), keccak256(event.encode("ascii"))))

    def selfdestruct(self, beneficiary: str) -> None:
        self._require_mutable("selfdestruct")
        self.charge(gas_schedule.G_SELFDESTRUCT, "selfdestruct")
        state = self.host.state
        balance = state.get_balance(self.address)
        if normalize_address(beneficiary) != normalize_address(self.address):
            state.transfer(self.address, beneficiary, balance)
        state.destroy_account(self.address)

    def _require_mutable(self, operation: str) -> None:
        if self.static:
            raise StaticCallViolation(
                f"{operation} not allowed in static context",
                details={"address": self.address},
            )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def is_self(self, address: str) -> bool:
        return address_to_int(address) == address_to_int(self.address)


__all__ = ["BlockContext", "CallContext", "CallType", "Log", "NON_CONTRACT_ERROR"]
