"""
Shared fixtures: execution host, deterministic owner keys and signature blob builders.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import pytest

from safe_core.core.address_checksum import address_to_int
from safe_core.core.crypto_utils import address_from_private_key, sign_hash
from safe_core.core.typed_signing import hash_personal_message
from safe_core.core.vm import ExecutionHost

# Well-known development keys (hardhat / anvil accounts 0-3)
OWNER_KEYS = [
    "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
    "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d",
    "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a5804022ab5a",
    "0x7c852118294e51e653712a81e05800f419141751be58f605c371e15141b007a6",
]

ETHER = 10**18


@dataclass(frozen=True)
class Owner:
    key: str
    address: str


@dataclass(frozen=True)
class SignaturePart:
    """One entry of a signature blob before packing.

    ``record`` is the 65-byte record; contract signatures leave it empty and
    carry their payload instead (the offset is only known when packing).
    """
    signer: str
    record: bytes = b""
    contract_payload: Optional[bytes] = None


class SignatureBuilder:
    """Builds records of every kind and packs them sorted by signer."""

    def ecdsa(self, owner: Owner, digest: bytes) -> SignaturePart:
        return SignaturePart(owner.address, sign_hash(owner.key, digest))

    def eth_sign(self, owner: Owner, digest: bytes) -> SignaturePart:
        signature = sign_hash(owner.key, hash_personal_message(digest))
        return SignaturePart(owner.address, signature[:64] + bytes([signature[64] + 4]))

    def approved_hash(self, address: str) -> SignaturePart:
        record = address_to_int(address).to_bytes(32, "big") + b"\x00" * 32 + b"\x01"
        return SignaturePart(address, record)

    def contract(self, address: str, payload: bytes) -> SignaturePart:
        return SignaturePart(address, contract_payload=payload)

    def pack(self, parts: Iterable[SignaturePart], sort: bool = True) -> bytes:
        parts = list(parts)
        if sort:
            parts.sort(key=lambda part: address_to_int(part.signer))
        static = b""
        dynamic = b""
        for part in parts:
            if part.contract_payload is None:
                static += part.record
                continue
            offset = 65 * len(parts) + len(dynamic)
            static += (
                address_to_int(part.signer).to_bytes(32, "big")
                + offset.to_bytes(32, "big")
                + b"\x00"
            )
            dynamic += len(part.contract_payload).to_bytes(32, "big") + part.contract_payload
        return static + dynamic


@pytest.fixture
def owners():
    """Four owners ordered as generated (not by address)."""
    return [Owner(key, address_from_private_key(key)) for key in OWNER_KEYS]


@pytest.fixture
def signatures():
    return SignatureBuilder()


@pytest.fixture
def host():
    return ExecutionHost()
