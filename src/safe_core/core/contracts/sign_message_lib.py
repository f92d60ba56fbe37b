"""
Library for on-chain message signing.

Meant to be delegate-called by an account (operation ``DELEGATECALL`` of
``execTransaction``): marks the message as signed in the account's own
``signedMessages`` mapping, which ``isValidSignature`` accepts with an
empty signature.
"""

from __future__ import annotations

import logging

from ..typed_signing import EIP712_PREFIX, safe_message_struct_hash
from ..vm.contract import Contract, external
from ..vm.evm.context import CallContext
from .safe import signed_message_slot

logger = logging.getLogger(__name__)


class SignMessageLib(Contract):

    @external("signMessage(bytes)")
    def sign_message(self, ctx: CallContext, data: bytes) -> None:
        message_hash = self.get_message_hash(ctx, data)
        ctx.sstore(signed_message_slot(ctx, message_hash), 1)
        ctx.emit("SignMsg(bytes32)", message_hash)
        logger.info(
            "Message signed",
            extra={
                "event": "safe.message_signed",
                "account": ctx.address[:10],
                "hash": message_hash.hex()[:16],
            },
        )

    @external("getMessageHash(bytes)", returns="(bytes32)")
    def get_message_hash(self, ctx: CallContext, message: bytes) -> bytes:
        """Digest of ``message`` for the executing account."""
        separator = ctx.invoke(ctx.address, "domainSeparator()", returns="(bytes32)")
        return ctx.keccak(EIP712_PREFIX + separator + safe_message_struct_hash(message))


__all__ = ["SignMessageLib"]
