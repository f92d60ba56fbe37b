"""
Gas schedule and per-frame gas metering.

Each message-call frame owns a ``GasMeter``. Debits past the frame's budget
raise ``OutOfGasError``, which fails the frame (its state changes are
reverted by the host). A child frame receives at most all-but-one-64th of
the parent's remaining gas and the gas it used is charged back to the
parent when it finishes.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from .exceptions import OutOfGasError

# Fixed costs
G_CALL = 700
G_CALL_VALUE = 9000
G_SLOAD = 800
G_SSTORE_SET = 20000
G_SSTORE_RESET = 5000
G_KECCAK = 30
G_KECCAK_WORD = 6
G_ECRECOVER = 3000
G_LOG = 375
G_SELFDESTRUCT = 5000
G_TX_INTRINSIC = 21000

WORD_SIZE = 32


def keccak_cost(length: int) -> int:
    """Cost of hashing ``length`` bytes."""
    words = (length + WORD_SIZE - 1) // WORD_SIZE
    return G_KECCAK + G_KECCAK_WORD * words


def sstore_cost(current: int, new: int) -> int:
    return G_SSTORE_SET if current == 0 and new != 0 else G_SSTORE_RESET


def max_call_gas(available: int) -> int:
    """Gas a frame may forward to a sub-call: all but one 64th of ``available``."""
    return available - available // 64


class GasSnapshot(NamedTuple):
    """Lightweight snapshot for scoped execution blocks."""
    used: int


class GasMeter:
    """
    Deterministic gas meter.

    Parameters
    ----------
    limit : int
        Total gas made available to the frame. Must be non-negative.
    """

    __slots__ = ("_limit", "_used")

    def __init__(self, limit: int) -> None:
        lim = int(limit)
        if lim < 0:
            raise ValueError("gas limit must be non-negative")
        self._limit = lim
        self._used = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return self._limit - self._used

    def charge(self, amount: int, *, reason: Optional[str] = None) -> None:
        """
        Consume ``amount`` gas, raising OutOfGasError if insufficient remains.

        On failure the whole budget is consumed, as a failed frame burns all
        gas given to it.
        """
        amt = int(amount)
        if amt < 0:
            raise ValueError("gas amount must be non-negative")
        if amt > self.remaining:
            self._used = self._limit
            msg = "out of gas"
            if reason:
                msg = f"{msg}: {reason}"
            raise OutOfGasError(msg, details={"requested": amt, "limit": self._limit})
        self._used += amt

    def try_charge(self, amount: int) -> bool:
        """Best-effort charge that returns False (no mutation) if insufficient gas."""
        amt = int(amount)
        if amt < 0 or amt > self.remaining:
            return False
        self._used += amt
        return True

    def snapshot(self) -> GasSnapshot:
        return GasSnapshot(self._used)

    def restore(self, snap: GasSnapshot) -> None:
        if not 0 <= snap.used <= self._limit:
            raise ValueError("snapshot 'used' out of range")
        self._used = int(snap.used)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"GasMeter(limit={self._limit}, used={self._used}, remaining={self.remaining})"


__all__ = [
    "GasMeter",
    "GasSnapshot",
    "keccak_cost",
    "sstore_cost",
    "max_call_gas",
    "G_CALL",
    "G_CALL_VALUE",
    "G_SLOAD",
    "G_SSTORE_SET",
    "G_SSTORE_RESET",
    "G_KECCAK",
    "G_KECCAK_WORD",
    "G_ECRECOVER",
    "G_LOG",
    "G_SELFDESTRUCT",
    "G_TX_INTRINSIC",
]
