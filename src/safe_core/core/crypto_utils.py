"""Utility helpers for secp256k1 key management, signing and signer recovery."""

from __future__ import annotations

import hashlib
import logging

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
)
from ecdsa import SECP256k1, VerifyingKey
from ecdsa.ecdsa import InvalidPointError
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import SquareRootError
from ecdsa.util import sigdecode_string

from .address_checksum import ZERO_ADDRESS, keccak256, to_checksum_address

logger = logging.getLogger(__name__)

_CURVE = ec.SECP256K1()
_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

SIGNATURE_LENGTH = 65
# v values accepted by ecrecover (recovery id 0 / 1)
RECOVERY_V_BASE = 27


def _normalize_private_value(value: int) -> int:
    normalized = value % _CURVE_ORDER
    if normalized == 0:
        normalized = 1
    return normalized


def _private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_numbers().private_value.to_bytes(32, "big").hex()


def _public_key_to_hex(public_key: ec.EllipticCurvePublicKey) -> str:
    numbers = public_key.public_numbers()
    return (numbers.x.to_bytes(32, "big") + numbers.y.to_bytes(32, "big")).hex()


def load_private_key_from_hex(private_hex: str) -> ec.EllipticCurvePrivateKey:
    if private_hex.startswith("0x"):
        private_hex = private_hex[2:]
    return ec.derive_private_key(_normalize_private_value(int(private_hex, 16)), _CURVE)


def generate_secp256k1_keypair_hex() -> tuple[str, str]:
    private_key = ec.generate_private_key(_CURVE)
    public_key = private_key.public_key()
    return _private_key_to_hex(private_key), _public_key_to_hex(public_key)


def derive_public_key_hex(private_hex: str) -> str:
    private_key = load_private_key_from_hex(private_hex)
    return _public_key_to_hex(private_key.public_key())


def deterministic_keypair_from_seed(seed: bytes) -> tuple[str, str]:
    if len(seed) < 32:
        seed = seed.ljust(32, b"\x00")
    private_value = _normalize_private_value(int.from_bytes(seed[:32], "big"))
    private_key = ec.derive_private_key(private_value, _CURVE)
    return _private_key_to_hex(private_key), _public_key_to_hex(private_key.public_key())


def public_key_to_address(public_hex: str) -> str:
    """Account address of an uncompressed public key: last 20 bytes of keccak256(x || y)."""
    raw = bytes.fromhex(public_hex)
    if len(raw) != 64:
        raise ValueError("Public key hex must be 64 bytes (uncompressed without prefix).")
    return to_checksum_address("0x" + keccak256(raw)[-20:].hex())


def address_from_private_key(private_hex: str) -> str:
    return public_key_to_address(derive_public_key_hex(private_hex))


def _validate_signature_range(r: int, s: int) -> None:
    """
    Ensure signature components fall within the curve order.

    Raises:
        ValueError: If either component is out of range.
    """
    if not (1 <= r < _CURVE_ORDER):
        raise ValueError("Signature r component out of range.")
    if not (1 <= s < _CURVE_ORDER):
        raise ValueError("Signature s component out of range.")


def canonicalize_signature_components(r: int, s: int) -> tuple[int, int]:
    """
    Normalize signature components to canonical low-S form.

    Args:
        r: Signature r component
        s: Signature s component

    Returns:
        Tuple of canonical (r, s)
    """
    _validate_signature_range(r, s)
    if s > _CURVE_ORDER // 2:
        s = _CURVE_ORDER - s
    return r, s


def is_canonical_signature(r: int, s: int) -> bool:
    """Check whether signature components are in range and have low-S form."""
    try:
        _validate_signature_range(r, s)
    except ValueError:
        return False
    return s <= _CURVE_ORDER // 2


def _recover_candidates(digest: bytes, r: int, s: int) -> list[bytes]:
    """Both public keys (raw x || y) that could have produced ``(r, s)`` over ``digest``.

    Index 0 belongs to the even-y nonce point (recovery id 0), index 1 to the odd one.
    """
    signature = r.to_bytes(32, "big") + s.to_bytes(32, "big")
    keys = VerifyingKey.from_public_key_recovery_with_digest(
        signature,
        digest,
        curve=SECP256k1,
        hashfunc=hashlib.sha256,
        sigdecode=sigdecode_string,
    )
    return [key.to_string() for key in keys]


def sign_hash(private_hex: str, digest: bytes) -> bytes:
    """
    Sign a 32-byte digest without further hashing.

    Returns:
        65-byte signature ``r || s || v`` with low-S ``s`` and ``v`` in {27, 28},
        the layout expected by ecrecover.
    """
    if len(digest) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
    private_key = load_private_key_from_hex(private_hex)
    der_signature = private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    r, s = canonicalize_signature_components(*decode_dss_signature(der_signature))

    public_raw = bytes.fromhex(_public_key_to_hex(private_key.public_key()))
    candidates = _recover_candidates(digest, r, s)
    recovery_id = candidates.index(public_raw)
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([RECOVERY_V_BASE + recovery_id])


def recover_address(digest: bytes, v: int, r: int, s: int) -> str:
    """
    Recover the signer address of ``(v, r, s)`` over ``digest``.

    Mirrors ecrecover: any invalid input yields the zero address instead of
    raising, so callers treat it as "no signer".
    """
    if v not in (RECOVERY_V_BASE, RECOVERY_V_BASE + 1):
        return ZERO_ADDRESS
    try:
        _validate_signature_range(r, s)
        candidates = _recover_candidates(digest, r, s)
    except (ValueError, SquareRootError, InvalidPointError, MalformedPointError) as exc:
        logger.debug(
            "Signer recovery failed",
            extra={"event": "crypto.recover_failed", "error": str(exc)},
        )
        return ZERO_ADDRESS
    return to_checksum_address("0x" + keccak256(candidates[v - RECOVERY_V_BASE])[-20:].hex())


def split_signature(signature: bytes) -> tuple[int, int, int]:
    """Split a 65-byte ``r || s || v`` signature into ``(v, r, s)``."""
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    return signature[64], r, s
