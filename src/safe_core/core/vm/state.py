"""
Journaled world state with nested checkpoints.

A deterministic, in-memory write journal layered over a base account map.
Writes go to the top overlay; reads consult overlays from top to base.
``commit()`` merges the top overlay into its parent (or the base state if
it is the last one), ``revert()`` discards it.

Every message-call frame runs inside its own checkpoint: a failing frame is
undone with ``revert()`` and nothing it wrote (balances, nonces, code,
storage, self-destructs) survives.

Intended usage
--------------
    journal = StateJournal()
    journal.begin()
    journal.storage_set(addr, 4, 2)
    journal.commit()

Addresses are normalized to lower-case ``0x`` strings; storage slots and
values are unsigned 256-bit integers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Set

from ..address_checksum import normalize_address
from .exceptions import InsufficientBalanceError

U256_MAX = (1 << 256) - 1


def _u256(value: int, *, name: str) -> int:
    value = int(value)
    if not 0 <= value <= U256_MAX:
        raise ValueError(f"{name} must be a u256, got {value}")
    return value


@dataclass
class Account:
    """Balance, nonce and code of one address. ``code`` is a Contract instance or None."""
    balance: int = 0
    nonce: int = 0
    code: Optional[Any] = None


@dataclass
class _Overlay:
    """
    A single journal layer.

    - ``accounts``: copies of accounts modified or created in this layer.
    - ``destroyed``: addresses self-destructed in this layer; storage below
      the layer is hidden for them.
    - ``storage``: staged storage writes (a zero value clears the slot).
    """

    accounts: Dict[str, Account] = field(default_factory=dict)
    destroyed: Set[str] = field(default_factory=set)
    storage: Dict[str, Dict[int, int]] = field(default_factory=dict)

    def destroy(self, addr: str) -> None:
        self.accounts.pop(addr, None)
        self.storage.pop(addr, None)
        self.destroyed.add(addr)

    def merge(self, child: "_Overlay") -> None:
        # Destructions first: the child's storage for a destroyed address only
        # holds writes made after the destruction.
        for addr in child.destroyed:
            self.destroy(addr)
        self.accounts.update(child.accounts)
        for addr, slots in child.storage.items():
            self.storage.setdefault(addr, {}).update(slots)


class StateJournal:
    """
    A copy-on-write world state with nested checkpoints.

    API highlights
    --------------
    - begin() / commit() / revert()
    - get_balance(), transfer(), get_code(), set_code(), destroy_account()
    - storage_get(), storage_set()
    """

    def __init__(self) -> None:
        self._base = _Overlay()
        self._layers: List[_Overlay] = []

    # ------------------------------------------------------------------ #
    # Checkpointing
    # ------------------------------------------------------------------ #

    def depth(self) -> int:
        """Number of open checkpoints."""
        return len(self._layers)

    def begin(self) -> int:
        """Start a new checkpoint. Returns the new depth marker."""
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> None:
        """Merge the top overlay into its parent, or into the base state."""
        if not self._layers:
            raise RuntimeError("no open checkpoint to commit")
        top = self._layers.pop()
        parent = self._layers[-1] if self._layers else self._base
        parent.merge(top)
        if parent is self._base:
            self._base.destroyed.clear()
            for addr, slots in self._base.storage.items():
                for slot in [s for s, v in slots.items() if v == 0]:
                    del slots[slot]

    def revert(self) -> None:
        """Discard the top overlay."""
        if not self._layers:
            raise RuntimeError("no open checkpoint to revert")
        self._layers.pop()

    def revert_to(self, marker: int) -> None:
        """Revert repeatedly until the depth equals ``marker``."""
        if marker < 0:
            raise ValueError("marker must be >= 0")
        while len(self._layers) > marker:
            self.revert()

    def _top(self) -> _Overlay:
        return self._layers[-1] if self._layers else self._base

    def _stack(self) -> List[_Overlay]:
        return [*reversed(self._layers), self._base]

    # ------------------------------------------------------------------ #
    # Accounts
    # ------------------------------------------------------------------ #

    def get_account(self, address: str) -> Optional[Account]:
        addr = normalize_address(address)
        for layer in self._stack():
            if addr in layer.accounts:
                return layer.accounts[addr]
            if addr in layer.destroyed:
                return None
        return None

    def _account_for_write(self, address: str) -> Account:
        addr = normalize_address(address)
        top = self._top()
        if addr in top.accounts:
            return top.accounts[addr]
        current = self.get_account(addr)
        account = replace(current) if current is not None else Account()
        top.accounts[addr] = account
        return account

    def account_exists(self, address: str) -> bool:
        return self.get_account(address) is not None

    def get_balance(self, address: str) -> int:
        account = self.get_account(address)
        return account.balance if account else 0

    def set_balance(self, address: str, amount: int) -> None:
        self._account_for_write(address).balance = _u256(amount, name="balance")

    def add_balance(self, address: str, amount: int) -> None:
        self.set_balance(address, self.get_balance(address) + int(amount))

    def sub_balance(self, address: str, amount: int) -> None:
        balance = self.get_balance(address)
        if amount > balance:
            raise InsufficientBalanceError(
                "insufficient balance for transfer",
                details={"address": address, "balance": balance, "amount": amount},
            )
        self.set_balance(address, balance - int(amount))

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount == 0:
            return
        self.sub_balance(sender, amount)
        self.add_balance(recipient, amount)

    def get_nonce(self, address: str) -> int:
        account = self.get_account(address)
        return account.nonce if account else 0

    def increment_nonce(self, address: str) -> int:
        account = self._account_for_write(address)
        account.nonce += 1
        return account.nonce

    def get_code(self, address: str) -> Optional[Any]:
        account = self.get_account(address)
        return account.code if account else None

    def set_code(self, address: str, code: Any) -> None:
        self._account_for_write(address).code = code

    def destroy_account(self, address: str) -> None:
        """Remove the account, its code and its storage (undone by revert)."""
        self._top().destroy(normalize_address(address))

    # ------------------------------------------------------------------ #
    # Storage
    # ------------------------------------------------------------------ #

    def storage_get(self, address: str, slot: int) -> int:
        addr = normalize_address(address)
        slot = _u256(slot, name="slot")
        for layer in self._stack():
            slots = layer.storage.get(addr)
            if slots is not None and slot in slots:
                return slots[slot]
            if addr in layer.destroyed:
                return 0
        return 0

    def storage_set(self, address: str, slot: int, value: int) -> None:
        addr = normalize_address(address)
        slot = _u256(slot, name="slot")
        value = _u256(value, name="value")
        top = self._top()
        if addr not in top.accounts and self.get_account(addr) is None:
            top.accounts[addr] = Account()
        top.storage.setdefault(addr, {})[slot] = value


__all__ = ["Account", "StateJournal", "U256_MAX"]
