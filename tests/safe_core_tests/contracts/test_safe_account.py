"""
Tests for the multi-owner account: setup, signature checks, execution,
modules and the storage helpers.
"""

import pytest

from safe_core.core import typed_signing
from safe_core.core.address_checksum import ZERO_ADDRESS, keccak256
from safe_core.core.contracts import Safe
from safe_core.core.contracts.module_manager import SENTINEL_MODULES
from safe_core.core.contracts.owner_manager import SENTINEL_OWNERS
from safe_core.core.vm.evm import abi

ETHER = 10**18
DEPLOYER = "0x00000000000000000000000000000000000000d1"
EXEC_TRANSACTION = "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
SETUP = "setup(address[],uint256,address)"


@pytest.fixture
def sorted_owners(owners):
    return sorted(owners, key=lambda owner: int(owner.address, 16))


@pytest.fixture
def safe(env, owners):
    return env.deploy_safe([owners[0].address, owners[1].address, owners[2].address], 2)


class TestSetup:

    def test_views_after_setup(self, env, owners, safe):
        expected = [owners[0].address, owners[1].address, owners[2].address]
        assert env.call(safe.address, "getOwners()", returns="(address[])") == expected
        assert env.call(safe.address, "getThreshold()", returns="(uint256)") == 2
        assert env.call(safe.address, "isOwner(address)", [owners[1].address], returns="(bool)") is True
        assert env.call(safe.address, "isOwner(address)", [owners[3].address], returns="(bool)") is False
        assert env.call(safe.address, "isOwner(address)", [SENTINEL_OWNERS], returns="(bool)") is False
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 0
        assert env.call(safe.address, "VERSION()", returns="(string)") == "1.3.0"
        assert env.call(safe.address, "getChainId()", returns="(uint256)") == env.chain_id

    def test_domain_separator(self, env, safe):
        separator = env.call(safe.address, "domainSeparator()", returns="(bytes32)")
        assert separator == typed_signing.domain_separator(env.chain_id, safe.address)

    def test_setup_emits_event(self, env, host, owners):
        safe = host.deploy(Safe())
        result = env.transact(DEPLOYER, safe.address, SETUP, [[owners[0].address], 1, env.handler.address])
        assert result.success
        assert [log.event for log in result.logs] == ["SafeSetup(address,address[],uint256,address)"]

    def test_setup_only_once(self, env, owners, safe):
        result = env.transact(DEPLOYER, safe.address, SETUP, [[owners[3].address], 1, ZERO_ADDRESS])
        assert result.revert_reason == "GS200"

    @pytest.mark.parametrize(
        "owner_indexes, threshold, reason",
        [
            ([0], 2, "GS201"),
            ([0, 1], 0, "GS202"),
            ([0, 1, 0], 2, "GS204"),
            ([0, 0], 1, "GS203"),
        ],
    )
    def test_setup_rejects_invalid_configuration(self, env, host, owners, owner_indexes, threshold, reason):
        safe = host.deploy(Safe())
        owner_addresses = [owners[index].address for index in owner_indexes]
        result = env.transact(DEPLOYER, safe.address, SETUP, [owner_addresses, threshold, ZERO_ADDRESS])
        assert not result.success
        assert result.revert_reason == reason

    @pytest.mark.parametrize("invalid_owner", [ZERO_ADDRESS, SENTINEL_OWNERS, "self"])
    def test_setup_rejects_invalid_owner(self, env, host, owners, invalid_owner):
        safe = host.deploy(Safe())
        owner = safe.address if invalid_owner == "self" else invalid_owner
        result = env.transact(DEPLOYER, safe.address, SETUP, [[owners[0].address, owner], 1, ZERO_ADDRESS])
        assert result.revert_reason == "GS203"


class TestTransactionHash:

    def test_on_chain_hash_matches_offchain(self, env, owners, safe):
        args = [owners[3].address, ETHER, b"\x12\x34", 0, 0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, 7]
        on_chain = env.call(
            safe.address,
            "getTransactionHash(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,uint256)",
            args,
            returns="(bytes32)",
        )
        assert on_chain == typed_signing.safe_tx_hash(safe.address, env.chain_id, *args)

    def test_encode_transaction_data(self, env, owners, safe):
        args = [owners[3].address, 0, b"", 1, 0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, 0]
        encoded = env.call(
            safe.address,
            "encodeTransactionData(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,uint256)",
            args,
            returns="(bytes)",
        )
        assert len(encoded) == 66
        assert encoded[:2] == b"\x19\x01"
        assert encoded[2:34] == typed_signing.domain_separator(env.chain_id, safe.address)


class TestExecTransaction:

    def test_value_transfer_with_owner_signatures(self, env, host, owners, safe):
        recipient = owners[3].address
        host.fund(safe.address, 2 * ETHER)

        result = env.exec_transaction(safe, owners[:2], recipient, value=ETHER)

        assert result.success, result.revert_reason
        assert abi.decode_args(["bool"], result.return_data) == [True]
        assert host.get_balance(recipient) == ETHER
        assert host.get_balance(safe.address) == ETHER
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 1
        assert "ExecutionSuccess(bytes32,uint256)" in [log.event for log in result.logs]

    def test_signatures_cannot_be_replayed(self, env, host, owners, signatures, safe):
        host.fund(safe.address, 2 * ETHER)
        digest = env.tx_hash(safe, owners[3].address, ETHER)
        blob = signatures.pack(signatures.ecdsa(owner, digest) for owner in owners[:2])

        first = env.exec_transaction(safe, owners[:2], owners[3].address, value=ETHER, signature_blob=blob)
        replay = env.exec_transaction(safe, owners[:2], owners[3].address, value=ETHER, signature_blob=blob)

        assert first.success
        assert not replay.success
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 1
        assert host.get_balance(owners[3].address) == ETHER

    def test_below_threshold_rejected(self, env, owners, safe):
        result = env.exec_transaction(safe, owners[:1], owners[3].address)
        assert result.revert_reason == "Signatures data too short"
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 0

    def test_non_owner_signature_rejected(self, env, owners, safe):
        result = env.exec_transaction(safe, [owners[0], owners[3]], owners[3].address)
        assert result.revert_reason == "Signer is not an owner"

    def test_descending_signers_rejected(self, env, signatures, sorted_owners, owners, safe):
        signers = [owner for owner in sorted_owners if owner in owners[:3]][:2]
        digest = env.tx_hash(safe, owners[3].address)
        blob = signatures.pack(
            [signatures.ecdsa(owner, digest) for owner in reversed(signers)], sort=False
        )
        result = env.exec_transaction(safe, signers, owners[3].address, signature_blob=blob)
        assert result.revert_reason == "Invalid owner provided"

    def test_duplicate_signer_rejected(self, env, signatures, owners, safe):
        digest = env.tx_hash(safe, owners[3].address)
        blob = signatures.pack(
            [signatures.ecdsa(owners[0], digest), signatures.ecdsa(owners[0], digest)], sort=False
        )
        result = env.exec_transaction(safe, owners[:1], owners[3].address, signature_blob=blob)
        assert result.revert_reason == "Invalid owner provided"

    def test_executor_approval_counts(self, env, signatures, owners, safe):
        digest = env.tx_hash(safe, owners[3].address)
        blob = signatures.pack([
            signatures.approved_hash(owners[0].address),
            signatures.ecdsa(owners[1], digest),
        ])

        result = env.exec_transaction(safe, owners[:2], owners[3].address, signature_blob=blob, sender=owners[0].address)
        assert result.success, result.revert_reason

    def test_approved_hash_by_other_owner(self, env, signatures, owners, safe):
        digest = env.tx_hash(safe, owners[3].address)
        blob = signatures.pack([
            signatures.approved_hash(owners[0].address),
            signatures.approved_hash(owners[1].address),
        ])

        rejected = env.exec_transaction(safe, owners[:2], owners[3].address, signature_blob=blob, sender=owners[2].address)
        assert rejected.revert_reason == "Hash not approved"

        for owner in owners[:2]:
            assert env.transact(owner.address, safe.address, "approveHash(bytes32)", [digest]).success
        assert env.call(safe.address, "approvedHashes(address,bytes32)", [owners[0].address, digest], returns="(uint256)") == 1

        accepted = env.exec_transaction(safe, owners[:2], owners[3].address, signature_blob=blob, sender=owners[2].address)
        assert accepted.success, accepted.revert_reason

    def test_approve_hash_only_owners(self, env, owners, safe):
        result = env.transact(owners[3].address, safe.address, "approveHash(bytes32)", [keccak256(b"tx")])
        assert result.revert_reason == "GS030"

    def test_failing_operation_without_safe_tx_gas(self, env, owners, safe, kill_lib):
        result = env.exec_transaction(safe, owners[:2], kill_lib.address, data=abi.encode_call("trever()", []))
        assert result.revert_reason == "GS013"
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 0

    def test_failing_operation_with_safe_tx_gas(self, env, signatures, owners, safe, kill_lib):
        data = abi.encode_call("trever()", [])
        safe_tx_gas = 100000
        digest = typed_signing.safe_tx_hash(
            safe.address, env.chain_id, kill_lib.address, 0, data, 0,
            safe_tx_gas, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, 0,
        )
        blob = signatures.pack(signatures.ecdsa(owner, digest) for owner in owners[:2])

        result = env.transact(
            owners[0].address,
            safe.address,
            EXEC_TRANSACTION,
            [kill_lib.address, 0, data, 0, safe_tx_gas, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, blob],
        )

        assert result.success
        assert abi.decode_args(["bool"], result.return_data) == [False]
        assert "ExecutionFailure(bytes32,uint256)" in [log.event for log in result.logs]
        assert env.call(safe.address, "nonce()", returns="(uint256)") == 1

    def test_gas_refunds_rejected(self, env, owners, safe):
        result = env.transact(
            owners[0].address,
            safe.address,
            EXEC_TRANSACTION,
            [owners[3].address, 0, b"", 0, 0, 0, 1, ZERO_ADDRESS, ZERO_ADDRESS, b""],
        )
        assert result.revert_reason == "Gas refunds are not supported"


class TestContractSignatures:
    """An account owning another account signs through its own isValidSignature."""

    @pytest.fixture
    def nested(self, env, owners):
        owner_safe = env.deploy_safe([owners[0].address], 1)
        safe = env.deploy_safe([owner_safe.address, owners[1].address], 2)
        return owner_safe, safe

    def _blob(self, env, signatures, owner_safe, safe, inner_signer, cosigner, to):
        nonce = env.call(safe.address, "nonce()", returns="(uint256)")
        tx_data = typed_signing.encode_transaction_data(
            safe.address, env.chain_id, to, ETHER, b"", 0, 0, 0, 0, ZERO_ADDRESS, ZERO_ADDRESS, nonce
        )
        inner_hash = typed_signing.safe_message_hash(tx_data, owner_safe.address, env.chain_id)
        inner_blob = signatures.pack([signatures.ecdsa(inner_signer, inner_hash)])
        return signatures.pack([
            signatures.contract(owner_safe.address, inner_blob),
            signatures.ecdsa(cosigner, keccak256(tx_data)),
        ])

    def test_nested_account_signature(self, env, host, signatures, owners, nested):
        owner_safe, safe = nested
        host.fund(safe.address, ETHER)
        blob = self._blob(env, signatures, owner_safe, safe, owners[0], owners[1], owners[3].address)

        result = env.exec_transaction(safe, owners[1:2], owners[3].address, value=ETHER, signature_blob=blob)

        assert result.success, result.revert_reason
        assert host.get_balance(owners[3].address) == ETHER

    def test_invalid_nested_signature(self, env, host, signatures, owners, nested):
        owner_safe, safe = nested
        host.fund(safe.address, ETHER)
        blob = self._blob(env, signatures, owner_safe, safe, owners[2], owners[1], owners[3].address)

        result = env.exec_transaction(safe, owners[1:2], owners[3].address, value=ETHER, signature_blob=blob)

        assert result.revert_reason == "Invalid contract signature provided"
        assert host.get_balance(owners[3].address) == 0

    def test_contract_signature_from_non_contract(self, env, signatures, owners, safe):
        digest = env.tx_hash(safe, owners[3].address)
        blob = signatures.pack([
            signatures.contract(owners[0].address, b"\x00" * 65),
            signatures.ecdsa(owners[1], digest),
        ])
        result = env.exec_transaction(safe, owners[1:2], owners[3].address, signature_blob=blob)
        assert result.revert_reason == "Invalid contract signature provided"


class TestCheckSignatures:

    def test_check_n_signatures_with_lower_requirement(self, env, signatures, owners, safe):
        digest = keccak256(b"payload")
        blob = signatures.pack([signatures.ecdsa(owners[0], digest)])

        result = env.static(
            safe.address, "checkNSignatures(bytes32,bytes,bytes,uint256)", [digest, b"payload", blob, 1]
        )
        assert result.success
        result = env.static(safe.address, "checkSignatures(bytes32,bytes,bytes)", [digest, b"payload", blob])
        assert result.revert_reason == "Signatures data too short"

    def test_threshold_undefined(self, env, host, signatures, owners):
        safe = host.deploy(Safe())
        digest = keccak256(b"payload")
        blob = signatures.pack([signatures.ecdsa(owners[0], digest)])
        result = env.static(safe.address, "checkSignatures(bytes32,bytes,bytes)", [digest, b"", blob])
        assert result.revert_reason == "GS001"


class TestModules:

    def test_enable_and_disable_module(self, env, owners, safe):
        module = owners[3].address
        enable = abi.encode_call("enableModule(address)", [module])
        assert env.exec_transaction(safe, owners[:2], safe.address, data=enable).success
        assert env.call(safe.address, "isModuleEnabled(address)", [module], returns="(bool)") is True

        modules, cursor = env.call(
            safe.address, "getModulesPaginated(address,uint256)", [SENTINEL_MODULES, 10], returns="(address[],address)"
        )
        assert modules == [module]
        assert int(cursor, 16) == 1

        disable = abi.encode_call("disableModule(address,address)", [SENTINEL_MODULES, module])
        assert env.exec_transaction(safe, owners[:2], safe.address, data=disable).success
        assert env.call(safe.address, "isModuleEnabled(address)", [module], returns="(bool)") is False

    def test_module_changes_require_account(self, env, owners, safe):
        result = env.transact(owners[0].address, safe.address, "enableModule(address)", [owners[3].address])
        assert result.revert_reason == "GS031"

    def test_sentinel_cannot_be_enabled(self, env, owners, safe):
        enable = abi.encode_call("enableModule(address)", [SENTINEL_MODULES])
        result = env.exec_transaction(safe, owners[:2], safe.address, data=enable)
        assert result.revert_reason == "GS013"

    def test_pagination(self, env, owners, safe):
        for owner in owners:
            data = abi.encode_call("enableModule(address)", [owner.address])
            assert env.exec_transaction(safe, owners[:2], safe.address, data=data).success

        first, cursor = env.call(
            safe.address, "getModulesPaginated(address,uint256)", [SENTINEL_MODULES, 3], returns="(address[],address)"
        )
        # Newest module first; the cursor is the first module not returned
        assert first == [owners[3].address, owners[2].address, owners[1].address]
        assert cursor == owners[0].address


class TestFallbackAndStorage:

    def test_plain_deposit(self, env, host, owners, safe):
        host.fund(owners[3].address, ETHER)
        result = host.transact(owners[3].address, safe.address, b"", value=ETHER)
        assert result.success
        assert host.get_balance(safe.address) == ETHER
        assert [log.event for log in result.logs] == ["SafeReceived(address,uint256)"]

    def test_value_with_unknown_selector_rejected(self, env, host, owners, safe):
        host.fund(owners[3].address, ETHER)
        result = host.transact(owners[3].address, safe.address, bytes.fromhex("deadbeef"), value=ETHER)
        assert not result.success
        assert host.get_balance(safe.address) == 0

    def test_set_fallback_handler_requires_account(self, env, owners, safe):
        result = env.transact(owners[0].address, safe.address, "setFallbackHandler(address)", [ZERO_ADDRESS])
        assert result.revert_reason == "GS031"

    def test_get_storage_at(self, env, safe):
        words = env.call(safe.address, "getStorageAt(uint256,uint256)", [3, 2], returns="(bytes)")
        assert words == (3).to_bytes(32, "big") + (2).to_bytes(32, "big")

    def test_simulate_and_revert_always_reverts(self, env, safe, kill_lib):
        result = env.static(
            safe.address, "simulateAndRevert(address,bytes)", [kill_lib.address, abi.encode_call("updateAndGet()", [])]
        )
        assert not result.success
        assert result.return_data[:32] == (1).to_bytes(32, "big")
        assert result.return_data[32:64] == (32).to_bytes(32, "big")
        assert result.return_data[64:] == (1).to_bytes(32, "big")
