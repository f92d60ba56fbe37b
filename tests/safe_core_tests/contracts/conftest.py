"""
Deployed accounts, handler, helper libraries and the test-only contracts.
"""

from typing import Any, List, Optional, Sequence

import pytest

from safe_core.core import typed_signing
from safe_core.core.address_checksum import ZERO_ADDRESS, int_to_address
from safe_core.core.contracts import (
    CompatibilityFallbackHandler,
    Safe,
    SignMessageLib,
    SimulateTxAccessor,
)
from safe_core.core.contracts.fallback_manager import FALLBACK_HANDLER_STORAGE_SLOT
from safe_core.core.vm import Contract, external
from safe_core.core.vm.evm import abi

EXEC_TRANSACTION = "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"

DEPLOYER = "0x00000000000000000000000000000000000000d1"


class KillLib(Contract):
    """Library run by delegatecall. Storage layout: slot 0 singleton, slot 1 value."""

    @external("killme()")
    def killme(self, ctx):
        ctx.selfdestruct(ctx.caller)

    @external("expose()", returns="(address)")
    def expose(self, ctx):
        return int_to_address(ctx.sload(FALLBACK_HANDLER_STORAGE_SLOT))

    @external("estimate(address,bytes)", returns="(uint256)")
    def estimate(self, ctx, to, data):
        start_gas = ctx.gas_left()
        success, _ = ctx.call(to, data, gas=ctx.gas_left())
        ctx.require(success, "Transaction failed")
        return start_gas - ctx.gas_left()

    @external("updateAndGet()", returns="(uint256)")
    def update_and_get(self, ctx):
        value = ctx.sload(1) + 1
        ctx.sstore(1, value)
        return value

    @external("trever()")
    def trever(self, ctx):
        ctx.revert("Why are you doing this?")

    @external("value()", returns="(uint256)")
    def value(self, ctx):
        return ctx.sload(1)


class Interactor(Contract):

    @external("sendAndReturnBalance(address,uint256)", returns="(uint256)")
    def send_and_return_balance(self, ctx, destination, amount):
        success, _ = ctx.call(destination, b"", value=amount)
        ctx.require(success, "Transfer failed")
        return ctx.balance(destination)


class SafeEnv:
    """Host plus the singletons every account test needs."""

    def __init__(self, host, signatures):
        self.host = host
        self.signatures = signatures
        self.handler = host.deploy(CompatibilityFallbackHandler())
        self.accessor = host.deploy(SimulateTxAccessor())
        self.sign_lib = host.deploy(SignMessageLib())

    @property
    def chain_id(self) -> int:
        return self.host.block.chain_id

    def deploy_safe(self, owner_addresses: Sequence[str], threshold: int, handler: Optional[str] = None) -> Safe:
        safe = self.host.deploy(Safe())
        handler = self.handler.address if handler is None else handler
        result = self.transact(
            DEPLOYER, safe.address, "setup(address[],uint256,address)",
            [list(owner_addresses), threshold, handler],
        )
        assert result.success, result.revert_reason
        return safe

    def transact(self, sender: str, to: str, signature: str, args: Sequence[Any] = (), value: int = 0):
        return self.host.transact(sender, to, abi.encode_call(signature, list(args)), value=value)

    def static(self, to: str, signature: str, args: Sequence[Any] = (), sender: str = ZERO_ADDRESS):
        return self.host.call_static(to, abi.encode_call(signature, list(args)), sender=sender)

    def call(self, to: str, signature: str, args: Sequence[Any] = (), returns: str = "()", sender: str = ZERO_ADDRESS):
        """Static call that must succeed; returns the decoded value(s)."""
        result = self.static(to, signature, args, sender=sender)
        assert result.success, result.revert_reason
        values = abi.decode_args(abi.parse_type_list(returns), result.return_data)
        return values[0] if len(values) == 1 else tuple(values)

    def tx_hash(self, safe: Safe, to: str, value: int = 0, data: bytes = b"", operation: int = 0, nonce: Optional[int] = None) -> bytes:
        if nonce is None:
            nonce = self.call(safe.address, "nonce()", returns="(uint256)")
        return typed_signing.safe_tx_hash(
            safe.address, self.chain_id, to, value, data, operation,
            0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, nonce,
        )

    def exec_transaction(
        self,
        safe: Safe,
        signers: List,
        to: str,
        value: int = 0,
        data: bytes = b"",
        operation: int = 0,
        sender: Optional[str] = None,
        signature_blob: Optional[bytes] = None,
    ):
        """Sign with ``signers`` (typed-data ECDSA) and submit through execTransaction."""
        if signature_blob is None:
            digest = self.tx_hash(safe, to, value, data, operation)
            signature_blob = self.signatures.pack(self.signatures.ecdsa(owner, digest) for owner in signers)
        return self.transact(
            sender or signers[0].address,
            safe.address,
            EXEC_TRANSACTION,
            [to, value, data, operation, 0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, signature_blob],
        )


@pytest.fixture
def env(host, signatures):
    return SafeEnv(host, signatures)


@pytest.fixture
def kill_lib(host):
    return host.deploy(KillLib())


@pytest.fixture
def interactor(host):
    return host.deploy(Interactor())
