"""
Compatibility Fallback Handler.

Installed as an account's fallback handler, it adds the entry points the
account does not implement itself: token receiver hooks, EIP-1271
signature validation, module listing and transaction simulation.

The handler is reached through the account's fallback, so ``ctx.caller``
is the account. Calling it directly makes every account-bound entry point
revert because the caller has no code.
"""

from __future__ import annotations

import logging
from typing import List

from ..config import EIP1271_LEGACY_MAGIC_VALUE, EIP1271_MAGIC_VALUE
from ..typed_signing import EIP712_PREFIX, safe_message_struct_hash
from ..vm.contract import external
from ..vm.evm import abi
from ..vm.evm.context import CallContext, NON_CONTRACT_ERROR
from .module_manager import SENTINEL_MODULES
from .storage_accessible import decode_simulation_payload
from .token_callback_handler import TokenCallbackHandler

logger = logging.getLogger(__name__)

MODULES_PAGE_SIZE = 10
INVALID_SIGNATURE_VALUE = b"\x00\x00\x00\x00"


class CompatibilityFallbackHandler(TokenCallbackHandler):
    """Default handler for accounts: EIP-1271 validation, module listing and simulation."""

    NAME = "Compatibility Fallback Handler"
    VERSION = "1.0.0"

    # ==================== Message hashes ====================

    @external("getMessageHash(bytes)", returns="(bytes32)")
    def get_message_hash(self, ctx: CallContext, message: bytes) -> bytes:
        """Digest of ``message`` for the calling account."""
        return self.get_message_hash_for_safe(ctx, ctx.caller, message)

    @external("getMessageHashForSafe(address,bytes)", returns="(bytes32)")
    def get_message_hash_for_safe(self, ctx: CallContext, safe: str, message: bytes) -> bytes:
        """Digest of ``message`` bound to ``safe``'s domain separator."""
        separator = ctx.invoke(safe, "domainSeparator()", returns="(bytes32)")
        return ctx.keccak(EIP712_PREFIX + separator + safe_message_struct_hash(message))

    # ==================== EIP-1271 ====================

    @external("isValidSignature(bytes,bytes)", returns="(bytes4)")
    def is_valid_signature_legacy(self, ctx: CallContext, data: bytes, signature: bytes) -> bytes:
        """
        Validate ``signature`` over ``data`` for the calling account.

        An empty signature asks whether the account signed the message
        on-chain (through the sign message library).

        Returns:
            ``0x20c13b0b``; any failure reverts
        """
        safe = ctx.caller
        message_hash = self.get_message_hash_for_safe(ctx, safe, data)
        if not signature:
            signed = ctx.invoke(safe, "signedMessages(bytes32)", [message_hash], returns="(uint256)")
            ctx.require(signed != 0, "Hash not approved")
        else:
            ctx.invoke(safe, "checkSignatures(bytes32,bytes,bytes)", [message_hash, data, signature])
        return EIP1271_LEGACY_MAGIC_VALUE

    @external("isValidSignature(bytes32,bytes)", returns="(bytes4)")
    def is_valid_signature(self, ctx: CallContext, data_hash: bytes, signature: bytes) -> bytes:
        """
        Validate ``signature`` over a pre-hashed ``data_hash``.

        Returns:
            ``0x1626ba7e`` on success, ``0x00000000`` when the account answers
            with anything but the legacy magic value
        """
        value = ctx.invoke(
            ctx.caller,
            "isValidSignature(bytes,bytes)",
            [abi.encode_args(["bytes32"], [data_hash]), signature],
            returns="(bytes4)",
        )
        return EIP1271_MAGIC_VALUE if value == EIP1271_LEGACY_MAGIC_VALUE else INVALID_SIGNATURE_VALUE

    # ==================== Modules ====================

    @external("getModules()", returns="(address[])")
    def get_modules(self, ctx: CallContext) -> List[str]:
        """First page of modules enabled on the calling account."""
        modules, _ = ctx.invoke(
            ctx.caller,
            "getModulesPaginated(address,uint256)",
            [SENTINEL_MODULES, MODULES_PAGE_SIZE],
            returns="(address[],address)",
        )
        return modules

    # ==================== Simulation ====================

    @external("simulate(address,bytes)", returns="(bytes)")
    def simulate(self, ctx: CallContext, target: str, payload: bytes) -> bytes:
        """
        Run ``payload`` against ``target`` by delegatecall from the calling
        account, then discard every change it made.

        The account's ``simulateAndRevert`` performs the delegatecall and
        always reverts with the outcome; this entry point turns that revert
        back into a result.

        Returns:
            The inner return data when the inner call succeeded; otherwise
            reverts with the inner revert data
        """
        account = ctx.caller
        if not ctx.has_code(account):
            ctx.revert(NON_CONTRACT_ERROR)
        _, output = ctx.call(account, abi.encode_call("simulateAndRevert(address,bytes)", [target, payload]))
        try:
            success, response = decode_simulation_payload(output)
        except ValueError:
            ctx.revert(data=output)
        logger.debug(
            "Delegatecall simulated",
            extra={
                "event": "simulation.completed",
                "account": account[:10],
                "target": target[:10],
                "success": success,
            },
        )
        if not success:
            ctx.revert(data=response)
        return response

    @external("simulateDelegatecall(address,bytes)", returns="(bytes)")
    def simulate_delegatecall(self, ctx: CallContext, target: str, payload: bytes) -> bytes:
        """Alias of :meth:`simulate`."""
        return self.simulate(ctx, target, payload)


__all__ = ["CompatibilityFallbackHandler"]
