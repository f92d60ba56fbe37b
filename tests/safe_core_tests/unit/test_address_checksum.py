"""
Unit tests for account address checksums (EIP-55) and the numeric address forms.
"""

import pytest

from safe_core.core.address_checksum import (
    ZERO_ADDRESS,
    address_to_int,
    int_to_address,
    is_checksum_valid,
    is_zero_address,
    keccak256,
    normalize_address,
    to_checksum_address,
    validate_address,
)

# Reference vectors from EIP-55
EIP55_VECTORS = [
    "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
    "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
    "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
    "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
]


class TestChecksumGeneration:
    """Test checksum address generation."""

    @pytest.mark.parametrize("expected", EIP55_VECTORS)
    def test_reference_vectors(self, expected):
        assert to_checksum_address(expected.lower()) == expected
        assert to_checksum_address("0x" + expected[2:].upper()) == expected

    def test_checksum_is_idempotent(self):
        checksummed = to_checksum_address(EIP55_VECTORS[0])
        assert to_checksum_address(checksummed) == checksummed

    def test_uppercase_prefix_accepted(self):
        assert to_checksum_address("0X" + EIP55_VECTORS[1][2:].lower()) == EIP55_VECTORS[1]

    @pytest.mark.parametrize(
        "address",
        [
            "5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeA",
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAedff",
            "0xzzAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        ],
    )
    def test_invalid_format_rejected(self, address):
        with pytest.raises(ValueError):
            to_checksum_address(address)

    def test_non_string_rejected(self):
        with pytest.raises(ValueError, match="must be a string"):
            to_checksum_address(0x1234)


class TestChecksumValidation:
    """Test checksum validation."""

    def test_valid_checksum(self):
        assert is_checksum_valid(EIP55_VECTORS[2])

    def test_single_case_accepted(self):
        assert is_checksum_valid(EIP55_VECTORS[2].lower())
        assert is_checksum_valid("0x" + EIP55_VECTORS[2][2:].upper())

    def test_wrong_mixed_case_rejected(self):
        address = EIP55_VECTORS[0]
        # Flip the case of the first letter
        broken = address[:3] + address[3].swapcase() + address[4:]
        assert not is_checksum_valid(broken)

    def test_malformed_is_invalid(self):
        assert not is_checksum_valid("0x1234")

    def test_validate_address_returns_checksum(self):
        ok, result = validate_address(EIP55_VECTORS[3].lower())
        assert ok
        assert result == EIP55_VECTORS[3]

    def test_validate_address_requires_checksum(self):
        ok, message = validate_address(EIP55_VECTORS[3].lower(), require_checksum=True)
        assert ok  # all-lowercase carries no checksum to contradict

        broken = "0x" + EIP55_VECTORS[3][2].swapcase() + EIP55_VECTORS[3][3:]
        ok, message = validate_address(broken)
        assert not ok
        assert EIP55_VECTORS[3] in message

    def test_validate_address_reports_format_error(self):
        ok, message = validate_address("0xabc")
        assert not ok
        assert "40 characters" in message


class TestNumericForms:

    def test_address_ordering_is_numeric(self):
        low = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
        high = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        assert address_to_int(low) < address_to_int(high)

    def test_int_round_trip(self):
        value = address_to_int(EIP55_VECTORS[0])
        assert int_to_address(value) == EIP55_VECTORS[0]

    def test_int_to_address_truncates_to_160_bits(self):
        assert int_to_address((1 << 160) + 1) == "0x0000000000000000000000000000000000000001"

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert not is_zero_address(EIP55_VECTORS[0])
        assert int_to_address(0) == ZERO_ADDRESS

    def test_normalize_address(self):
        assert normalize_address(EIP55_VECTORS[1]) == EIP55_VECTORS[1].lower()
        with pytest.raises(ValueError):
            normalize_address("not-an-address")


def test_keccak256_is_not_sha3():
    # keccak256("") differs from NIST SHA3-256("")
    assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
