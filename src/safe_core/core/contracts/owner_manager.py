"""
Owner Registry stored in the account's own storage.

Owners form a linked list rooted at the sentinel address ``0x…01``:
``owners[SENTINEL] -> first -> ... -> last -> SENTINEL``. Membership is a
single storage read, listing walks the list in insertion order.

Storage layout:
    slot 2  mapping(address => address) owners
    slot 3  uint256 ownerCount
    slot 4  uint256 threshold
"""

from __future__ import annotations

import logging
from typing import List

from ..address_checksum import address_to_int, int_to_address
from ..vm.contract import external
from ..vm.evm.context import CallContext

logger = logging.getLogger(__name__)

SENTINEL_OWNERS = "0x0000000000000000000000000000000000000001"

OWNERS_SLOT = 2
OWNER_COUNT_SLOT = 3
THRESHOLD_SLOT = 4


def require_self_authorized(ctx: CallContext) -> None:
    """Configuration changes must come from the account itself (through execTransaction)."""
    ctx.require(ctx.is_self(ctx.caller), "GS031")


class OwnerManager:
    """Owner list and threshold of an account."""

    def _owner_slot(self, ctx: CallContext, owner: str) -> int:
        return ctx.mapping_slot(owner, OWNERS_SLOT)

    def _next_owner(self, ctx: CallContext, owner: str) -> str:
        return int_to_address(ctx.sload(self._owner_slot(ctx, owner)))

    def setup_owners(self, ctx: CallContext, owners: List[str], threshold: int) -> None:
        """
        Initialize the owner list (once).

        Reverts:
            GS200 already set up, GS201 threshold above owner count,
            GS202 threshold zero, GS203 invalid owner, GS204 duplicate owner
        """
        ctx.require(ctx.sload(THRESHOLD_SLOT) == 0, "GS200")
        ctx.require(threshold <= len(owners), "GS201")
        ctx.require(threshold >= 1, "GS202")

        current = SENTINEL_OWNERS
        for owner in owners:
            value = address_to_int(owner)
            ctx.require(
                value not in (0, 1)
                and not ctx.is_self(owner)
                and value != address_to_int(current),
                "GS203",
            )
            ctx.require(ctx.sload(self._owner_slot(ctx, owner)) == 0, "GS204")
            ctx.sstore(self._owner_slot(ctx, current), value)
            current = owner
        ctx.sstore(self._owner_slot(ctx, current), address_to_int(SENTINEL_OWNERS))
        ctx.sstore(OWNER_COUNT_SLOT, len(owners))
        ctx.sstore(THRESHOLD_SLOT, threshold)
        logger.info(
            "Owners configured",
            extra={
                "event": "safe.owners_configured",
                "account": ctx.address[:10],
                "owners": len(owners),
                "threshold": threshold,
            },
        )

    @external("getThreshold()", returns="(uint256)")
    def get_threshold(self, ctx: CallContext) -> int:
        return ctx.sload(THRESHOLD_SLOT)

    @external("isOwner(address)", returns="(bool)")
    def is_owner(self, ctx: CallContext, owner: str) -> bool:
        if address_to_int(owner) == address_to_int(SENTINEL_OWNERS):
            return False
        return ctx.sload(self._owner_slot(ctx, owner)) != 0

    @external("getOwners()", returns="(address[])")
    def get_owners(self, ctx: CallContext) -> List[str]:
        owners = []
        current = self._next_owner(ctx, SENTINEL_OWNERS)
        while address_to_int(current) not in (0, 1):
            owners.append(current)
            current = self._next_owner(ctx, current)
        return owners


class StorageOwnerRegistry:
    """Owner registry view over the storage of the executing account."""

    def __init__(self, ctx: CallContext, manager: OwnerManager) -> None:
        self._ctx = ctx
        self._manager = manager

    def is_owner(self, address: str) -> bool:
        if address_to_int(address) == 0:
            return False
        return self._manager.is_owner(self._ctx, address)

    def get_threshold(self) -> int:
        return self._manager.get_threshold(self._ctx)


__all__ = [
    "OWNERS_SLOT",
    "OWNER_COUNT_SLOT",
    "OwnerManager",
    "SENTINEL_OWNERS",
    "StorageOwnerRegistry",
    "THRESHOLD_SLOT",
    "require_self_authorized",
]
