"""
Safe Core Typed Data Signing - EIP-712/EIP-191

Builds the canonical digests owners sign.

Standards implemented:
- EIP-191: Personal message signing ("\\x19Ethereum Signed Message:\\n<len>")
- EIP-712: Typed structured data signing ("\\x19\\x01" ++ domainSeparator ++ structHash)

The account binds every digest to its own address and to the chain id
through the domain separator, so a signature produced for one account or
chain never validates for another.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from .address_checksum import address_to_int, keccak256, to_checksum_address

EIP191_PREFIX = b"\x19Ethereum Signed Message:\n"
EIP712_PREFIX = b"\x19\x01"

TypeDefinitions = Dict[str, List[Dict[str, str]]]


@dataclass
class TypedDataDomain:
    """
    EIP-712 domain separator.

    Only the fields that are set take part in the domain type, in the
    canonical order name, version, chainId, verifyingContract, salt. The
    account uses the minimal ``(chainId, verifyingContract)`` domain.
    """
    chain_id: Optional[int] = None
    verifying_contract: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    salt: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for hashing."""
        d: Dict[str, Any] = {}
        if self.name is not None:
            d["name"] = self.name
        if self.version is not None:
            d["version"] = self.version
        if self.chain_id is not None:
            d["chainId"] = self.chain_id
        if self.verifying_contract is not None:
            d["verifyingContract"] = to_checksum_address(self.verifying_contract)
        if self.salt is not None:
            d["salt"] = self.salt
        return d

    def type_definition(self) -> List[Dict[str, str]]:
        fields = []
        if self.name is not None:
            fields.append({"name": "name", "type": "string"})
        if self.version is not None:
            fields.append({"name": "version", "type": "string"})
        if self.chain_id is not None:
            fields.append({"name": "chainId", "type": "uint256"})
        if self.verifying_contract is not None:
            fields.append({"name": "verifyingContract", "type": "address"})
        if self.salt is not None:
            fields.append({"name": "salt", "type": "bytes32"})
        return fields


def _is_array_type(type_name: str) -> Tuple[bool, str, Optional[int]]:
    """
    Check if type is an array type.

    Returns:
        Tuple of (is_array, base_type, array_length or None for dynamic)
    """
    match = re.match(r'^(.+)\[(\d*)\]$', type_name)
    if match:
        base_type = match.group(1)
        length = int(match.group(2)) if match.group(2) else None
        return True, base_type, length
    return False, type_name, None


def _format_type(type_name: str, fields: List[Dict[str, str]]) -> str:
    return f"{type_name}({','.join(f['type'] + ' ' + f['name'] for f in fields)})"


def _find_type_dependencies(type_name: str, types: TypeDefinitions, visited: Optional[set] = None) -> set:
    """Find all struct types ``type_name`` references, recursively."""
    if visited is None:
        visited = set()

    if type_name in visited or type_name not in types:
        return set()

    visited.add(type_name)
    deps = set()

    for field in types[type_name]:
        _, field_type, _ = _is_array_type(field['type'])
        if field_type in types:
            deps.add(field_type)
            deps.update(_find_type_dependencies(field_type, types, visited))

    return deps


def encode_type(type_name: str, types: TypeDefinitions) -> str:
    """
    Encode a type string for hashing (EIP-712 encodeType).

    The primary type comes first, followed by every referenced struct type
    sorted by name.
    """
    if type_name not in types:
        raise ValueError(f"Unknown struct type: {type_name}")

    encoded = _format_type(type_name, types[type_name])
    deps = _find_type_dependencies(type_name, types) - {type_name}
    for dep in sorted(deps):
        encoded += _format_type(dep, types[dep])
    return encoded


def hash_type(type_name: str, types: TypeDefinitions) -> bytes:
    """Compute typeHash for a type."""
    return keccak256(encode_type(type_name, types).encode('utf-8'))


def _to_bytes(value: Union[str, bytes, None]) -> bytes:
    if value is None:
        return b''
    if isinstance(value, str):
        return bytes.fromhex(value[2:] if value[:2].lower() == '0x' else value)
    return bytes(value)


def _encode_value(type_name: str, value: Any, types: TypeDefinitions) -> bytes:
    """Encode a single value based on its type (one 32-byte word)."""
    is_array, base_type, _ = _is_array_type(type_name)
    if is_array:
        encoded = b''.join(_encode_value(base_type, item, types) for item in (value or []))
        return keccak256(encoded)

    if type_name == "string":
        return keccak256((value or "").encode('utf-8'))
    if type_name == "bytes":
        return keccak256(_to_bytes(value))
    if type_name == "bool":
        return (1 if value else 0).to_bytes(32, 'big')
    if type_name == "address":
        return address_to_int(value).to_bytes(32, 'big')
    if type_name.startswith("uint") or type_name.startswith("int"):
        bits = int(type_name[type_name.index("int") + 3:] or 256)
        val = int(value or 0)
        if type_name.startswith("int") and val < 0:
            # Two's complement over the full word
            val = (1 << 256) + val
        elif val >= (1 << bits):
            raise ValueError(f"Value {val} does not fit in {type_name}")
        return val.to_bytes(32, 'big')
    if type_name.startswith("bytes"):
        size = int(type_name[5:])
        raw = _to_bytes(value)
        if len(raw) > size:
            raise ValueError(f"Value too long for {type_name}")
        return raw.ljust(32, b'\x00')
    if type_name in types:
        return hash_struct(type_name, value or {}, types)
    raise ValueError(f"Unknown type: {type_name}")


def encode_data(type_name: str, data: Dict[str, Any], types: TypeDefinitions) -> bytes:
    """
    Encode structured data for hashing (EIP-712 encodeData).

    Returns:
        typeHash followed by one word per field
    """
    encoded = hash_type(type_name, types)
    for field in types[type_name]:
        encoded += _encode_value(field['type'], data.get(field['name']), types)
    return encoded


def hash_struct(type_name: str, data: Dict[str, Any], types: TypeDefinitions) -> bytes:
    return keccak256(encode_data(type_name, data, types))


def hash_domain(domain: TypedDataDomain) -> bytes:
    """EIP-712 domain separator of ``domain``."""
    types = {"EIP712Domain": domain.type_definition()}
    return hash_struct("EIP712Domain", domain.to_dict(), types)


def hash_personal_message(message: Union[str, bytes]) -> bytes:
    """
    Hash a personal message (EIP-191 version 0x45).

    The message is prefixed with "\\x19Ethereum Signed Message:\\n<length>"
    so that a signed message can never be replayed as a transaction.

    Returns:
        32-byte keccak256 hash ready for signing
    """
    if isinstance(message, str):
        message = message.encode('utf-8')
    return keccak256(EIP191_PREFIX + str(len(message)).encode('utf-8') + message)


def hash_typed_data(
    domain: TypedDataDomain,
    primary_type: str,
    types: TypeDefinitions,
    message: Dict[str, Any],
) -> bytes:
    """
    Hash typed structured data (EIP-712).

    Args:
        domain: Domain separator fields
        primary_type: Name of the primary type being signed
        types: Dictionary of all struct definitions (``EIP712Domain`` is ignored)
        message: The structured data to sign

    Returns:
        32-byte keccak256 hash ready for signing
    """
    message_types = {k: v for k, v in types.items() if k != "EIP712Domain"}
    return keccak256(
        EIP712_PREFIX + hash_domain(domain) + hash_struct(primary_type, message, message_types)
    )


# ==================== Account message and transaction hashes ====================

SAFE_MESSAGE_TYPES: TypeDefinitions = {
    "SafeMessage": [
        {"name": "message", "type": "bytes"},
    ]
}

SAFE_TX_TYPES: TypeDefinitions = {
    "SafeTx": [
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "data", "type": "bytes"},
        {"name": "operation", "type": "uint8"},
        {"name": "safeTxGas", "type": "uint256"},
        {"name": "baseGas", "type": "uint256"},
        {"name": "gasPrice", "type": "uint256"},
        {"name": "gasToken", "type": "address"},
        {"name": "refundReceiver", "type": "address"},
        {"name": "nonce", "type": "uint256"},
    ]
}

# 0x47e79534a245952e8b16893a336b85a3d9ea9fa8c573f3d803afb92a79469218
DOMAIN_SEPARATOR_TYPEHASH = keccak256(b"EIP712Domain(uint256 chainId,address verifyingContract)")
# 0x60b3cbf8b4a223d68d641b3b6ddf9a298e7f33710cf3d3a9d1146b5a6150fbca
SAFE_MSG_TYPEHASH = hash_type("SafeMessage", SAFE_MESSAGE_TYPES)
# 0xbb8310d486368db6bd6f849402fdd73ad53d316b5a4b2644ad6efe0f941286d8
SAFE_TX_TYPEHASH = hash_type("SafeTx", SAFE_TX_TYPES)


def domain_separator(chain_id: int, verifying_contract: str) -> bytes:
    """Domain separator of an account: keccak256(abi.encode(typehash, chainId, address))."""
    return hash_domain(TypedDataDomain(chain_id=chain_id, verifying_contract=verifying_contract))


def safe_message_struct_hash(message: bytes) -> bytes:
    return hash_struct("SafeMessage", {"message": message}, SAFE_MESSAGE_TYPES)


def safe_message_hash(message: bytes, verifying_contract: str, chain_id: int) -> bytes:
    """
    Digest owners sign to approve an off-chain ``message`` for an account.

    Pure function of its three inputs; changing the account address or the
    chain id changes the digest.
    """
    return keccak256(
        EIP712_PREFIX
        + domain_separator(chain_id, verifying_contract)
        + safe_message_struct_hash(message)
    )


def encode_transaction_data(
    verifying_contract: str,
    chain_id: int,
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
    """Pre-image of the transaction hash: ``0x19 0x01 || domainSeparator || safeTxHash``."""
    struct_hash = hash_struct(
        "SafeTx",
        {
            "to": to,
            "value": value,
            "data": data,
            "operation": operation,
            "safeTxGas": safe_tx_gas,
            "baseGas": base_gas,
            "gasPrice": gas_price,
            "gasToken": gas_token,
            "refundReceiver": refund_receiver,
            "nonce": nonce,
        },
        SAFE_TX_TYPES,
    )
    return EIP712_PREFIX + domain_separator(chain_id, verifying_contract) + struct_hash


def safe_tx_hash(*args: Any, **kwargs: Any) -> bytes:
    """keccak256 of :func:`encode_transaction_data` (same arguments)."""
    return keccak256(encode_transaction_data(*args, **kwargs))


def build_safe_message_typed_data(message: bytes, verifying_contract: str, chain_id: int) -> Dict[str, Any]:
    """
    Full ``eth_signTypedData_v4`` payload for a message signature.

    Wallets that implement typed-data signing produce signatures over
    exactly :func:`safe_message_hash` from this payload.
    """
    return {
        "types": {
            "EIP712Domain": TypedDataDomain(chain_id=chain_id, verifying_contract=verifying_contract).type_definition(),
            **SAFE_MESSAGE_TYPES,
        },
        "primaryType": "SafeMessage",
        "domain": {"chainId": chain_id, "verifyingContract": to_checksum_address(verifying_contract)},
        "message": {"message": "0x" + bytes(message).hex()},
    }
