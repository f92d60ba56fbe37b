"""
Account Address Checksum - EIP-55 Mixed-Case Encoding

Provides error detection for 20-byte account addresses using keccak256-based
mixed-case checksumming (EIP-55), plus the conversions between the textual
and numeric address forms used by the signature validator (owners are
ordered by their numeric value).

Address Format:
- Raw:      0x7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b
- Checksum: 0x7A8b9C0d1E2f3A4b5C6D7e8F9a0B1c2D3e4F5A6b
"""

from __future__ import annotations

from Crypto.Hash import keccak

ZERO_ADDRESS = "0x" + "0" * 40
ADDRESS_BYTES = 20


def keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (Ethereum flavour, not NIST SHA3-256)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def _hex_part(address: str) -> str:
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")
    if address[:2].lower() != "0x":
        raise ValueError(f"Invalid address prefix: {address[:2]}")
    hex_part = address[2:]
    if len(hex_part) != 40:
        raise ValueError(f"Address hex part must be 40 characters, got {len(hex_part)}")
    try:
        int(hex_part, 16)
    except ValueError:
        raise ValueError(f"Invalid hex characters in address: {hex_part}")
    return hex_part


def to_checksum_address(address: str) -> str:
    """
    Convert address to checksummed format (EIP-55).

    Args:
        address: Address with 0x prefix (any case)

    Returns:
        Checksummed address with mixed-case hex

    Raises:
        ValueError: If address format is invalid

    Example:
        >>> to_checksum_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
        '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
    """
    hex_lower = _hex_part(address).lower()
    address_hash = keccak256(hex_lower.encode("ascii")).hex()

    checksummed = []
    for i, char in enumerate(hex_lower):
        if char in "0123456789":
            checksummed.append(char)
        elif int(address_hash[i], 16) >= 8:
            checksummed.append(char.upper())
        else:
            checksummed.append(char)

    return "0x" + "".join(checksummed)


def is_checksum_valid(address: str) -> bool:
    """
    Verify if address has valid checksum.

    Returns:
        True if checksum is valid or address is all lowercase/uppercase
        False if checksum is invalid or the address is malformed
    """
    try:
        hex_part = _hex_part(address)
    except ValueError:
        return False

    # All lowercase or all uppercase is valid (no checksum applied)
    if hex_part == hex_part.lower() or hex_part == hex_part.upper():
        return True

    return address == to_checksum_address(address)


def validate_address(address: str, require_checksum: bool = False) -> tuple[bool, str]:
    """
    Validate address format and optionally checksum.

    Returns:
        Tuple of (is_valid, error_message or checksummed_address)
    """
    try:
        hex_part = _hex_part(address)
    except ValueError as exc:
        return False, str(exc)

    mixed_case = hex_part != hex_part.lower() and hex_part != hex_part.upper()
    if (require_checksum or mixed_case) and not is_checksum_valid(address):
        expected = to_checksum_address(address)
        return False, f"Invalid checksum. Did you mean {expected}?"

    return True, to_checksum_address(address)


def normalize_address(address: str) -> str:
    """
    Normalize address to its canonical lower-case storage key.

    Raises:
        ValueError: If address is invalid
    """
    return "0x" + _hex_part(address).lower()


def address_to_int(address: str) -> int:
    """Numeric value of an address (the ordering key for owners)."""
    return int(_hex_part(address), 16)


def int_to_address(value: int) -> str:
    """Checksummed address for the low 160 bits of ``value``."""
    value &= (1 << 160) - 1
    return to_checksum_address("0x" + value.to_bytes(ADDRESS_BYTES, "big").hex())


def is_zero_address(address: str) -> bool:
    return address_to_int(address) == 0
