"""
Fallback handler of an account.

Calls matching none of the account's own functions are forwarded to the
handler with a regular CALL. The original sender is appended to the
calldata (20 bytes) since the handler only sees the account as caller.
The handler's return or revert data is passed through unchanged.
"""

from __future__ import annotations

import logging

from ..address_checksum import address_to_int, int_to_address, keccak256
from ..vm.contract import external
from ..vm.evm.context import CallContext
from .owner_manager import require_self_authorized

logger = logging.getLogger(__name__)

# keccak256("fallback_manager.handler.address")
FALLBACK_HANDLER_STORAGE_SLOT = int.from_bytes(keccak256(b"fallback_manager.handler.address"), "big")


class FallbackManager:

    def internal_set_fallback_handler(self, ctx: CallContext, handler: str) -> None:
        ctx.sstore(FALLBACK_HANDLER_STORAGE_SLOT, address_to_int(handler))

    def get_fallback_handler(self, ctx: CallContext) -> str:
        return int_to_address(ctx.sload(FALLBACK_HANDLER_STORAGE_SLOT))

    @external("setFallbackHandler(address)")
    def set_fallback_handler(self, ctx: CallContext, handler: str) -> None:
        require_self_authorized(ctx)
        self.internal_set_fallback_handler(ctx, handler)
        ctx.emit("ChangedFallbackHandler(address)", handler)

    def forward_to_handler(self, ctx: CallContext) -> bytes:
        """Forward the current call to the handler; empty result when none is set."""
        handler_value = ctx.sload(FALLBACK_HANDLER_STORAGE_SLOT)
        if handler_value == 0:
            return b""
        handler = int_to_address(handler_value)
        forwarded = ctx.calldata + bytes.fromhex(ctx.caller[2:])
        success, output = ctx.call(handler, forwarded)
        if not success:
            logger.debug(
                "Fallback handler reverted",
                extra={
                    "event": "safe.fallback_reverted",
                    "account": ctx.address[:10],
                    "handler": handler[:10],
                    "selector": ctx.calldata[:4].hex(),
                },
            )
            ctx.revert(data=output)
        return output


__all__ = ["FALLBACK_HANDLER_STORAGE_SLOT", "FallbackManager"]
