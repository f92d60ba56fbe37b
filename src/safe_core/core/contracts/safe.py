"""
Multi-owner account.

Owners jointly authorize transactions by signing the EIP-712 hash of the
transaction (or by approving it on-chain); the account executes it once
at least ``threshold`` owners have authorized it.

Storage layout (word slots):
    1  modules linked list          5  nonce
    2  owners linked list           7  signedMessages (bytes32 => uint256)
    3  owner count                  8  approvedHashes (address => bytes32 => uint256)
    4  threshold
    keccak256("fallback_manager.handler.address")  fallback handler
"""

from __future__ import annotations

import logging
from typing import List

from ..address_checksum import address_to_int
from ..config import EIP1271_LEGACY_MAGIC_VALUE
from .. import typed_signing
from ..vm.contract import Contract, external
from ..vm.evm import abi
from ..vm.evm.context import CallContext
from .executor import Executor
from .fallback_manager import FallbackManager
from .module_manager import ModuleManager
from .owner_manager import OwnerManager, StorageOwnerRegistry, THRESHOLD_SLOT
from .signature_validator import SignatureError, SignatureValidator
from .storage_accessible import StorageAccessible

logger = logging.getLogger(__name__)

NONCE_SLOT = 5
SIGNED_MESSAGES_SLOT = 7
APPROVED_HASHES_SLOT = 8

# Gas kept back when forwarding all remaining gas to the executed operation
EXECUTION_GAS_RESERVE = 2500


def approved_hash_slot(ctx: CallContext, owner: str, data_hash: bytes) -> int:
    """Slot of ``approvedHashes[owner][data_hash]``."""
    return ctx.mapping_slot(data_hash, ctx.mapping_slot(owner, APPROVED_HASHES_SLOT), key_type="bytes32")


def signed_message_slot(ctx: CallContext, message_hash: bytes) -> int:
    """Slot of ``signedMessages[message_hash]``."""
    return ctx.mapping_slot(message_hash, SIGNED_MESSAGES_SLOT, key_type="bytes32")


class StorageApprovedHashStore:
    """Approved-hash store backed by the executing account's storage."""

    def __init__(self, ctx: CallContext) -> None:
        self._ctx = ctx

    def is_approved(self, owner: str, data_hash: bytes) -> bool:
        return self._ctx.sload(approved_hash_slot(self._ctx, owner, data_hash)) != 0


def _contract_signature_checker(ctx: CallContext):
    """Check a contract signature through the owner's ``isValidSignature(bytes,bytes)``."""

    def check(owner: str, data: bytes, signature: bytes) -> bool:
        if not ctx.has_code(owner):
            return False
        success, output = ctx.staticcall(
            owner, abi.encode_call("isValidSignature(bytes,bytes)", [data, signature])
        )
        return success and len(output) >= 32 and output[:4] == EIP1271_LEGACY_MAGIC_VALUE

    return check


class Safe(Contract, ModuleManager, OwnerManager, FallbackManager, StorageAccessible, Executor):
    """Multi-owner account with threshold signature authorization."""

    VERSION = "1.3.0"

    # ==================== Setup ====================

    @external("setup(address[],uint256,address)")
    def setup(self, ctx: CallContext, owners: List[str], threshold: int, fallback_handler: str) -> None:
        """Initialize owners, threshold and fallback handler. Can only run once."""
        self.setup_owners(ctx, owners, threshold)
        self.setup_modules(ctx)
        if address_to_int(fallback_handler) != 0:
            self.internal_set_fallback_handler(ctx, fallback_handler)
        ctx.emit("SafeSetup(address,address[],uint256,address)", ctx.caller, owners, threshold, fallback_handler)

    # ==================== Views ====================

    @external("VERSION()", returns="(string)")
    def version(self, ctx: CallContext) -> str:
        return self.VERSION

    @external("nonce()", returns="(uint256)")
    def nonce(self, ctx: CallContext) -> int:
        return ctx.sload(NONCE_SLOT)

    @external("getChainId()", returns="(uint256)")
    def get_chain_id(self, ctx: CallContext) -> int:
        return ctx.chain_id

    @external("domainSeparator()", returns="(bytes32)")
    def domain_separator(self, ctx: CallContext) -> bytes:
        return typed_signing.domain_separator(ctx.chain_id, ctx.address)

    @external("approvedHashes(address,bytes32)", returns="(uint256)")
    def approved_hashes(self, ctx: CallContext, owner: str, data_hash: bytes) -> int:
        return ctx.sload(approved_hash_slot(ctx, owner, data_hash))

    @external("signedMessages(bytes32)", returns="(uint256)")
    def signed_messages(self, ctx: CallContext, message_hash: bytes) -> int:
        return ctx.sload(signed_message_slot(ctx, message_hash))

    # ==================== Authorization ====================

    @external("approveHash(bytes32)")
    def approve_hash(self, ctx: CallContext, hash_to_approve: bytes) -> None:
        """Record that the calling owner approves ``hash_to_approve``."""
        ctx.require(self.is_owner(ctx, ctx.caller), "GS030")
        ctx.sstore(approved_hash_slot(ctx, ctx.caller, hash_to_approve), 1)
        ctx.emit("ApproveHash(bytes32,address)", hash_to_approve, ctx.caller)
        logger.info(
            "Hash approved",
            extra={
                "event": "safe.hash_approved",
                "account": ctx.address[:10],
                "owner": ctx.caller[:10],
                "hash": hash_to_approve.hex()[:16],
            },
        )

    def signature_validator(self, ctx: CallContext) -> SignatureValidator:
        """Validator over this account's owners, approvals and the current caller."""
        return SignatureValidator(
            owners=StorageOwnerRegistry(ctx, self),
            approvals=StorageApprovedHashStore(ctx),
            contract_checker=_contract_signature_checker(ctx),
            executor=ctx.caller,
            recover=ctx.ecrecover,
        )

    @external("checkSignatures(bytes32,bytes,bytes)")
    def check_signatures(self, ctx: CallContext, data_hash: bytes, data: bytes, signatures: bytes) -> None:
        """Revert unless ``signatures`` carry at least ``threshold`` valid owner authorizations."""
        threshold = ctx.sload(THRESHOLD_SLOT)
        ctx.require(threshold > 0, "GS001")
        self.check_n_signatures(ctx, data_hash, data, signatures, threshold)

    @external("checkNSignatures(bytes32,bytes,bytes,uint256)")
    def check_n_signatures(
        self,
        ctx: CallContext,
        data_hash: bytes,
        data: bytes,
        signatures: bytes,
        required: int,
    ) -> None:
        try:
            self.signature_validator(ctx).check_signatures(data_hash, data, signatures, required)
        except SignatureError as exc:
            ctx.revert(exc.message)

    # ==================== Transactions ====================

    @external(
        "encodeTransactionData(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,uint256)",
        returns="(bytes)",
    )
    def encode_transaction_data(
        self,
        ctx: CallContext,
        to: str,
        value: int,
        data: bytes,
        operation: int,
        safe_tx_gas: int,
        base_gas: int,
        gas_price: int,
        gas_token: str,
        refund_receiver: str,
        nonce: int,
    ) -> bytes:
        return typed_signing.encode_transaction_data(
            ctx.address, ctx.chain_id, to, value, data, operation,
            safe_tx_gas, base_gas, gas_price, gas_token, refund_receiver, nonce,
        )

    @external(
        "getTransactionHash(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,uint256)",
        returns="(bytes32)",
    )
    def get_transaction_hash(self, ctx: CallContext, *args) -> bytes:
        return ctx.keccak(self.encode_transaction_data(ctx, *args))

    @external(
        "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)",
        returns="(bool)",
        payable=True,
    )
    def exec_transaction(
        self,
        ctx: CallContext,
        to: str,
        value: int,
        data: bytes,
        operation: int,
        safe_tx_gas: int,
        base_gas: int,
        gas_price: int,
        gas_token: str,
        refund_receiver: str,
        signatures: bytes,
    ) -> bool:
        """
        Execute an owner-authorized operation.

        The transaction hash is bound to the current nonce, which is
        consumed even when the operation itself fails.
        """
        ctx.require(gas_price == 0, "Gas refunds are not supported")
        nonce = ctx.sload(NONCE_SLOT)
        tx_hash_data = self.encode_transaction_data(
            ctx, to, value, data, operation, safe_tx_gas, base_gas, gas_price, gas_token, refund_receiver, nonce
        )
        ctx.sstore(NONCE_SLOT, nonce + 1)
        tx_hash = ctx.keccak(tx_hash_data)
        self.check_signatures(ctx, tx_hash, tx_hash_data, signatures)

        ctx.require(
            ctx.gas_left() >= max(safe_tx_gas * 64 // 63, safe_tx_gas + EXECUTION_GAS_RESERVE) + 500,
            "GS010",
        )
        tx_gas = max(ctx.gas_left() - EXECUTION_GAS_RESERVE, 0) if gas_price == 0 else safe_tx_gas
        success = self.execute(ctx, to, value, data, operation, tx_gas)
        ctx.require(success or safe_tx_gas != 0 or gas_price != 0, "GS013")

        if success:
            ctx.emit("ExecutionSuccess(bytes32,uint256)", tx_hash, 0)
        else:
            ctx.emit("ExecutionFailure(bytes32,uint256)", tx_hash, 0)
        logger.info(
            "Transaction executed",
            extra={
                "event": "safe.execution_success" if success else "safe.execution_failure",
                "account": ctx.address[:10],
                "nonce": nonce,
                "operation": operation,
                "to": to[:10],
            },
        )
        return success

    # ==================== Fallback ====================

    def fallback(self, ctx: CallContext) -> bytes:
        if not ctx.calldata:
            ctx.emit("SafeReceived(address,uint256)", ctx.caller, ctx.value)
            return b""
        ctx.require(ctx.value == 0)
        return self.forward_to_handler(ctx)


__all__ = [
    "APPROVED_HASHES_SLOT",
    "NONCE_SLOT",
    "SIGNED_MESSAGES_SLOT",
    "Safe",
    "StorageApprovedHashStore",
    "approved_hash_slot",
    "signed_message_slot",
]
