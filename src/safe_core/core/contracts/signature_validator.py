"""
Threshold Signature Validator.

Decides whether enough distinct registered owners authorized a digest.
The signature blob is a concatenation of 65-byte records ``{r}{s}{v}``,
optionally followed by the variable-length payloads of contract
signatures. The ``v`` byte tags the kind of each record:

- ``v == 0``  contract signature: ``r`` is the owner contract, ``s`` the
  offset of a ``len32 || bytes`` trailer passed to the owner's
  ``isValidSignature(bytes,bytes)``
- ``v == 1``  approved hash: ``r`` is the owner; valid when the owner is the
  executor or has approved the digest beforehand
- ``v > 30``  eth_sign: ECDSA over the EIP-191 prefixed digest, ``v - 4``
- otherwise  plain ECDSA over the digest

Failure policy:
- malformed blob bounds and signers out of strictly increasing order abort
  the whole validation (``MalformedSignatureError``, ``SignatureOrderError``)
- an unknown signer or a signature that does not verify only fails its own
  record; validation succeeds iff at least ``threshold`` records verify

The validator holds no state of its own: the owner registry, the approved
hash store and the contract-signature check are collaborators passed in,
so the same code runs over account storage and over in-memory fixtures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from ..address_checksum import (
    ZERO_ADDRESS,
    address_to_int,
    int_to_address,
    is_zero_address,
    normalize_address,
)
from ..crypto_utils import SIGNATURE_LENGTH, recover_address
from ..typed_signing import hash_personal_message
from ..vm.exceptions import VMExecutionError

logger = logging.getLogger(__name__)

WORD_SIZE = 32
# v values of eth_sign records are shifted by 4 to tell them apart from plain ECDSA
ETH_SIGN_V_OFFSET = 4
ETH_SIGN_V_MIN = 31


# ==================== Failures ====================

class SignatureFailure(Enum):
    """Stable error codes and messages surfaced to callers."""

    THRESHOLD_UNDEFINED = ("GS001", "Threshold needs to be defined")
    DATA_TOO_SHORT = ("GS020", "Signatures data too short")
    CONTRACT_SIGNATURE_INSIDE_STATIC_PART = ("GS021", "Invalid contract signature location: inside static part")
    CONTRACT_SIGNATURE_LENGTH_MISSING = ("GS022", "Invalid contract signature location: length not present")
    CONTRACT_SIGNATURE_INCOMPLETE = ("GS023", "Invalid contract signature location: data not complete")
    INVALID_CONTRACT_SIGNATURE = ("GS024", "Invalid contract signature provided")
    HASH_NOT_APPROVED = ("GS025", "Hash not approved")
    INVALID_OWNER_ORDER = ("GS026", "Invalid owner provided")
    INVALID_OWNER_SIGNATURE = ("GS027", "Invalid owner signature")
    SIGNER_NOT_OWNER = ("GS028", "Signer is not an owner")

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message


class SignatureError(VMExecutionError):
    """Base exception for signature validation failures."""

    def __init__(self, failure: SignatureFailure, details: Optional[Dict] = None) -> None:
        super().__init__(failure.message, details)
        self.failure = failure
        self.code = failure.code


class MalformedSignatureError(SignatureError):
    """
    Raised when the signature blob is structurally invalid.

    The declared bounds of the blob or of a contract signature payload do
    not fit the data. Raised before any cryptographic work.
    """
    pass


class SignatureOrderError(SignatureError):
    """Raised when signers are not in strictly increasing order (duplicates included)."""
    pass


class ThresholdNotMetError(SignatureError):
    """Raised when fewer records verify than required. Carries the full report."""

    def __init__(self, failure: SignatureFailure, report: "ValidationReport") -> None:
        super().__init__(
            failure,
            details={"valid": report.valid_count, "required": report.required},
        )
        self.report = report


# ==================== Collaborators ====================

class OwnerRegistry(Protocol):
    def is_owner(self, address: str) -> bool:
        ...

    def get_threshold(self) -> int:
        ...


class ApprovedHashStore(Protocol):
    def is_approved(self, owner: str, data_hash: bytes) -> bool:
        ...


# (owner contract, signed data, contract signature payload) -> valid
ContractSignatureChecker = Callable[[str, bytes, bytes], bool]
# (digest, v, r, s) -> signer address, zero address when recovery fails
SignerRecovery = Callable[[bytes, int, int, int], str]


def _reject_contract_signatures(owner: str, data: bytes, signature: bytes) -> bool:
    return False


class InMemoryOwnerRegistry:
    """Owner set and threshold kept in memory."""

    def __init__(self, owners: Iterable[str], threshold: int) -> None:
        normalized = [normalize_address(owner) for owner in owners]
        if len(set(normalized)) != len(normalized):
            raise ValueError("Duplicate owner")
        if any(is_zero_address(owner) for owner in normalized):
            raise ValueError("Invalid owner address")
        if not 1 <= threshold <= len(normalized):
            raise ValueError(f"Threshold {threshold} out of range for {len(normalized)} owners")
        self._owners = normalized
        self._threshold = threshold

    def is_owner(self, address: str) -> bool:
        return normalize_address(address) in self._owners

    def get_threshold(self) -> int:
        return self._threshold

    def get_owners(self) -> List[str]:
        return list(self._owners)


class InMemoryApprovedHashStore:
    """``(owner, hash) -> approved`` flags kept in memory."""

    def __init__(self) -> None:
        self._approved: Set[Tuple[str, bytes]] = set()

    def approve(self, owner: str, data_hash: bytes) -> None:
        self._approved.add((normalize_address(owner), bytes(data_hash)))

    def is_approved(self, owner: str, data_hash: bytes) -> bool:
        return (normalize_address(owner), bytes(data_hash)) in self._approved


# ==================== Records ====================

class SignatureKind(Enum):
    CONTRACT = "contract"
    APPROVED_HASH = "approved_hash"
    ETH_SIGN = "eth_sign"
    ECDSA = "ecdsa"

    @classmethod
    def from_v(cls, v: int) -> "SignatureKind":
        if v == 0:
            return cls.CONTRACT
        if v == 1:
            return cls.APPROVED_HASH
        if v >= ETH_SIGN_V_MIN:
            return cls.ETH_SIGN
        return cls.ECDSA


@dataclass(frozen=True)
class SignatureRecord:
    """One parsed 65-byte record (plus the trailer of a contract signature)."""
    index: int
    kind: SignatureKind
    v: int
    r: int
    s: int
    contract_signature: bytes = b""

    @property
    def declared_signer(self) -> Optional[str]:
        """Signer named by the record itself (contract and approved-hash kinds)."""
        if self.kind in (SignatureKind.CONTRACT, SignatureKind.APPROVED_HASH):
            return int_to_address(self.r)
        return None


@dataclass
class RecordVerdict:
    record: SignatureRecord
    signer: str
    accepted: bool
    failure: Optional[SignatureFailure] = None


@dataclass
class ValidationReport:
    """Outcome of evaluating every record of a blob against a digest."""
    data_hash: bytes
    required: int
    verdicts: List[RecordVerdict] = field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return sum(1 for verdict in self.verdicts if verdict.accepted)

    @property
    def is_valid(self) -> bool:
        return self.valid_count >= self.required

    @property
    def signers(self) -> List[str]:
        return [verdict.signer for verdict in self.verdicts if verdict.accepted]

    @property
    def first_failure(self) -> Optional[SignatureFailure]:
        for verdict in self.verdicts:
            if verdict.failure is not None:
                return verdict.failure
        return None


def parse_signatures(signatures: bytes, required: int) -> List[SignatureRecord]:
    """
    Split a signature blob into records, validating every declared bound.

    The static part ends at the smallest contract-signature offset (or at
    the last complete 65-byte record); every record of the static part is
    returned.

    Raises:
        SignatureError: ``required`` is zero
        MalformedSignatureError: blob shorter than ``required`` records or a
            contract signature trailer out of bounds
    """
    if required < 1:
        raise SignatureError(SignatureFailure.THRESHOLD_UNDEFINED)
    total = len(signatures)
    if total < required * SIGNATURE_LENGTH:
        raise MalformedSignatureError(
            SignatureFailure.DATA_TOO_SHORT,
            details={"length": total, "required": required},
        )

    records: List[SignatureRecord] = []
    static_end = (total // SIGNATURE_LENGTH) * SIGNATURE_LENGTH
    index = 0
    while (index + 1) * SIGNATURE_LENGTH <= static_end:
        pos = index * SIGNATURE_LENGTH
        r = int.from_bytes(signatures[pos:pos + WORD_SIZE], "big")
        s = int.from_bytes(signatures[pos + WORD_SIZE:pos + 2 * WORD_SIZE], "big")
        v = signatures[pos + 2 * WORD_SIZE]
        kind = SignatureKind.from_v(v)
        trailer = b""

        if kind is SignatureKind.CONTRACT:
            offset = s
            if offset < max(required, index + 1) * SIGNATURE_LENGTH:
                raise MalformedSignatureError(
                    SignatureFailure.CONTRACT_SIGNATURE_INSIDE_STATIC_PART,
                    details={"record": index, "offset": offset},
                )
            if offset + WORD_SIZE > total:
                raise MalformedSignatureError(
                    SignatureFailure.CONTRACT_SIGNATURE_LENGTH_MISSING,
                    details={"record": index, "offset": offset},
                )
            length = int.from_bytes(signatures[offset:offset + WORD_SIZE], "big")
            if offset + WORD_SIZE + length > total:
                raise MalformedSignatureError(
                    SignatureFailure.CONTRACT_SIGNATURE_INCOMPLETE,
                    details={"record": index, "offset": offset, "length": length},
                )
            trailer = bytes(signatures[offset + WORD_SIZE:offset + WORD_SIZE + length])
            static_end = min(static_end, offset)

        records.append(SignatureRecord(index=index, kind=kind, v=v, r=r, s=s, contract_signature=trailer))
        index += 1

    return records


# ==================== Validator ====================

class SignatureValidator:
    """
    Threshold signature validation over pluggable owner and approval stores.

    Args:
        owners: Owner registry (membership and threshold)
        approvals: Approved-hash store
        contract_checker: Delegated check for contract signatures; any
            failure of the check (wrong magic value, revert, no code) makes
            it return False
        executor: Address submitting the approval; its own approved-hash
            records count without a stored approval
        recover: Signer recovery primitive
    """

    def __init__(
        self,
        owners: OwnerRegistry,
        approvals: ApprovedHashStore,
        contract_checker: Optional[ContractSignatureChecker] = None,
        executor: Optional[str] = None,
        recover: SignerRecovery = recover_address,
    ) -> None:
        self.owners = owners
        self.approvals = approvals
        self.contract_checker = contract_checker or _reject_contract_signatures
        self.executor = executor
        self.recover = recover

    def _resolve(self, record: SignatureRecord, data_hash: bytes, data: bytes) -> RecordVerdict:
        """Resolve the signer of one record and whether its authorization holds."""
        if record.kind is SignatureKind.CONTRACT:
            return RecordVerdict(record, record.declared_signer, True)

        if record.kind is SignatureKind.APPROVED_HASH:
            owner = record.declared_signer
            executed_by_owner = (
                self.executor is not None and address_to_int(self.executor) == address_to_int(owner)
            )
            if executed_by_owner or self.approvals.is_approved(owner, data_hash):
                return RecordVerdict(record, owner, True)
            return RecordVerdict(record, owner, False, SignatureFailure.HASH_NOT_APPROVED)

        if record.kind is SignatureKind.ETH_SIGN:
            signer = self.recover(hash_personal_message(data_hash), record.v - ETH_SIGN_V_OFFSET, record.r, record.s)
        else:
            signer = self.recover(data_hash, record.v, record.r, record.s)
        if is_zero_address(signer):
            return RecordVerdict(record, ZERO_ADDRESS, False, SignatureFailure.INVALID_OWNER_SIGNATURE)
        return RecordVerdict(record, signer, True)

    def evaluate(
        self,
        data_hash: bytes,
        data: bytes,
        signatures: bytes,
        required: Optional[int] = None,
    ) -> ValidationReport:
        """
        Evaluate every record of ``signatures`` against ``data_hash``.

        Returns:
            Report with one verdict per record; ``report.is_valid`` tells
            whether the threshold is met.

        Raises:
            MalformedSignatureError: Blob bounds are inconsistent
            SignatureOrderError: Signers are not strictly increasing
        """
        if required is None:
            required = self.owners.get_threshold()
        records = parse_signatures(signatures, required)
        report = ValidationReport(data_hash=bytes(data_hash), required=required)

        last_signer = 0
        for record in records:
            verdict = self._resolve(record, data_hash, data)

            if not is_zero_address(verdict.signer):
                current = address_to_int(verdict.signer)
                if current <= last_signer:
                    logger.warning(
                        "Signers out of order",
                        extra={
                            "event": "signature.order_violation",
                            "record": record.index,
                            "signer": verdict.signer[:10],
                        },
                    )
                    raise SignatureOrderError(
                        SignatureFailure.INVALID_OWNER_ORDER,
                        details={"record": record.index, "signer": verdict.signer},
                    )
                last_signer = current

            if verdict.accepted and not self.owners.is_owner(verdict.signer):
                verdict.accepted = False
                verdict.failure = SignatureFailure.SIGNER_NOT_OWNER
            elif verdict.accepted and record.kind is SignatureKind.CONTRACT:
                if not self.contract_checker(verdict.signer, data, record.contract_signature):
                    verdict.accepted = False
                    verdict.failure = SignatureFailure.INVALID_CONTRACT_SIGNATURE

            if verdict.failure is not None:
                logger.debug(
                    "Signature record rejected",
                    extra={
                        "event": "signature.rejected",
                        "record": record.index,
                        "kind": record.kind.value,
                        "signer": verdict.signer[:10],
                        "code": verdict.failure.code,
                    },
                )
            report.verdicts.append(verdict)

        return report

    def check_signatures(
        self,
        data_hash: bytes,
        data: bytes,
        signatures: bytes,
        required: Optional[int] = None,
    ) -> ValidationReport:
        """
        Validate and raise unless the threshold is met.

        Raises:
            MalformedSignatureError, SignatureOrderError: As in :meth:`evaluate`
            ThresholdNotMetError: Fewer than ``required`` records verify; the
                error carries the first record failure (or GS020 when the
                blob simply holds too few records)
        """
        report = self.evaluate(data_hash, data, signatures, required)
        if not report.is_valid:
            failure = report.first_failure or SignatureFailure.DATA_TOO_SHORT
            logger.info(
                "Signature threshold not met",
                extra={
                    "event": "signature.threshold_not_met",
                    "valid": report.valid_count,
                    "required": report.required,
                    "code": failure.code,
                },
            )
            raise ThresholdNotMetError(failure, report)
        logger.debug(
            "Signatures validated",
            extra={
                "event": "signature.validated",
                "valid": report.valid_count,
                "required": report.required,
            },
        )
        return report

    def is_valid(
        self,
        data_hash: bytes,
        data: bytes,
        signatures: bytes,
        required: Optional[int] = None,
    ) -> bool:
        """Boolean form: any validation failure (fatal or threshold) yields False."""
        try:
            self.check_signatures(data_hash, data, signatures, required)
        except SignatureError:
            return False
        return True


__all__ = [
    "ApprovedHashStore",
    "ContractSignatureChecker",
    "InMemoryApprovedHashStore",
    "InMemoryOwnerRegistry",
    "MalformedSignatureError",
    "OwnerRegistry",
    "RecordVerdict",
    "SignatureError",
    "SignatureFailure",
    "SignatureKind",
    "SignatureOrderError",
    "SignatureRecord",
    "SignatureValidator",
    "ThresholdNotMetError",
    "ValidationReport",
    "parse_signatures",
]
