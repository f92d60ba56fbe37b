"""
Solidity ABI codec.

Covers the types the account contracts exchange: ``address``, ``bool``,
``uintN``, ``intN``, ``bytesN``, ``bytes``, ``string`` and dynamic arrays
``T[]`` (arbitrarily nested). Fixed-size arrays and tuples are not needed
and are rejected.

Encoding follows the head/tail layout of the Solidity ABI specification;
decoding ignores trailing bytes (the account forwards calls with the
original sender appended) but rejects any offset or length that points
outside the data.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from ...address_checksum import int_to_address, keccak256
from ..exceptions import AbiDecodingError, AbiEncodingError

WORD_SIZE = 32
UINT256_MAX = (1 << 256) - 1

# keccak256("Error(string)")[:4]
ERROR_SELECTOR = bytes.fromhex("08c379a0")

_UINT_RE = re.compile(r"^uint(\d*)$")
_INT_RE = re.compile(r"^int(\d*)$")
_BYTES_N_RE = re.compile(r"^bytes(\d+)$")


def keccak(data: bytes) -> bytes:
    return keccak256(data)


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 of the canonical function signature."""
    return keccak256(signature.replace(" ", "").encode("ascii"))[:4]


def parse_type_list(types: str) -> list[str]:
    """Parse ``"(uint256,bool,bytes)"`` (parentheses optional) into a list of types."""
    types = types.replace(" ", "")
    if types.startswith("(") and types.endswith(")"):
        types = types[1:-1]
    if not types:
        return []
    parsed = types.split(",")
    for type_name in parsed:
        _validate_type(type_name)
    return parsed


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split ``"name(type1,type2)"`` into its name and argument types."""
    signature = signature.replace(" ", "")
    open_paren = signature.find("(")
    if open_paren <= 0 or not signature.endswith(")"):
        raise AbiEncodingError(f"Invalid function signature: {signature!r}")
    return signature[:open_paren], parse_type_list(signature[open_paren:])


def _validate_type(type_name: str) -> None:
    if type_name.endswith("[]"):
        _validate_type(type_name[:-2])
        return
    if type_name in ("address", "bool", "bytes", "string"):
        return
    for pattern in (_UINT_RE, _INT_RE):
        match = pattern.match(type_name)
        if match:
            bits = int(match.group(1) or 256)
            if bits % 8 or not 8 <= bits <= 256:
                raise AbiEncodingError(f"Invalid integer width: {type_name}")
            return
    match = _BYTES_N_RE.match(type_name)
    if match and 1 <= int(match.group(1)) <= 32:
        return
    raise AbiEncodingError(f"Unsupported ABI type: {type_name}")


def is_dynamic(type_name: str) -> bool:
    return type_name in ("bytes", "string") or type_name.endswith("[]")


# ==================== Encoding ====================


def _encode_static(type_name: str, value: Any) -> bytes:
    if type_name == "address":
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and value[:2].lower() == "0x" and len(value) == 42:
            number = int(value, 16)
        else:
            raise AbiEncodingError(f"Invalid address value: {value!r}")
        return number.to_bytes(WORD_SIZE, "big")

    if type_name == "bool":
        if not isinstance(value, bool) and value not in (0, 1):
            raise AbiEncodingError(f"Invalid bool value: {value!r}")
        return int(bool(value)).to_bytes(WORD_SIZE, "big")

    match = _UINT_RE.match(type_name)
    if match:
        bits = int(match.group(1) or 256)
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < (1 << bits):
            raise AbiEncodingError(f"Value {value!r} out of range for {type_name}")
        return value.to_bytes(WORD_SIZE, "big")

    match = _INT_RE.match(type_name)
    if match:
        bits = int(match.group(1) or 256)
        bound = 1 << (bits - 1)
        if not isinstance(value, int) or isinstance(value, bool) or not -bound <= value < bound:
            raise AbiEncodingError(f"Value {value!r} out of range for {type_name}")
        return (value & UINT256_MAX).to_bytes(WORD_SIZE, "big")

    match = _BYTES_N_RE.match(type_name)
    if match:
        size = int(match.group(1))
        if not isinstance(value, (bytes, bytearray)) or len(value) != size:
            raise AbiEncodingError(f"Expected {size} bytes for {type_name}, got {value!r}")
        return bytes(value).ljust(WORD_SIZE, b"\x00")

    raise AbiEncodingError(f"Unsupported ABI type: {type_name}")


def _pad_right(data: bytes) -> bytes:
    remainder = len(data) % WORD_SIZE
    return data if remainder == 0 else data + b"\x00" * (WORD_SIZE - remainder)


def _encode_dynamic(type_name: str, value: Any) -> bytes:
    if type_name == "bytes":
        if not isinstance(value, (bytes, bytearray)):
            raise AbiEncodingError(f"Expected bytes, got {type(value).__name__}")
        return len(value).to_bytes(WORD_SIZE, "big") + _pad_right(bytes(value))
    if type_name == "string":
        if not isinstance(value, str):
            raise AbiEncodingError(f"Expected str, got {type(value).__name__}")
        raw = value.encode("utf-8")
        return len(raw).to_bytes(WORD_SIZE, "big") + _pad_right(raw)
    # T[]
    if not isinstance(value, (list, tuple)):
        raise AbiEncodingError(f"Expected a sequence for {type_name}")
    element = type_name[:-2]
    return len(value).to_bytes(WORD_SIZE, "big") + encode_args([element] * len(value), value)


def encode_args(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """ABI-encode ``values`` as a tuple of ``types``."""
    if len(types) != len(values):
        raise AbiEncodingError(f"Expected {len(types)} values, got {len(values)}")

    heads: list[bytes] = []
    tails: list[bytes] = []
    tail_offset = WORD_SIZE * len(types)
    for type_name, value in zip(types, values):
        _validate_type(type_name)
        if is_dynamic(type_name):
            encoded = _encode_dynamic(type_name, value)
            heads.append(tail_offset.to_bytes(WORD_SIZE, "big"))
            tails.append(encoded)
            tail_offset += len(encoded)
        else:
            heads.append(_encode_static(type_name, value))
    return b"".join(heads) + b"".join(tails)


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """Calldata for ``signature`` with ``args``: selector followed by the encoded arguments."""
    _, types = parse_signature(signature)
    return function_selector(signature) + encode_args(types, args)


def encode_error(message: str) -> bytes:
    """``Error(string)`` revert payload, as produced by ``require(cond, message)``."""
    return ERROR_SELECTOR + encode_args(["string"], [message])


# ==================== Decoding ====================


def _read_word(data: bytes, offset: int) -> bytes:
    if offset < 0 or offset + WORD_SIZE > len(data):
        raise AbiDecodingError(
            f"Word at offset {offset} out of bounds (data length {len(data)})"
        )
    return data[offset:offset + WORD_SIZE]


def decode_uint256(data: bytes, offset: int) -> tuple[int, int]:
    """Read one unsigned word at ``offset``; returns ``(value, next_offset)``."""
    return int.from_bytes(_read_word(data, offset), "big"), offset + WORD_SIZE


def decode_address(data: bytes, offset: int) -> tuple[str, int]:
    """Read one address word at ``offset``; returns ``(checksum_address, next_offset)``."""
    value, next_offset = decode_uint256(data, offset)
    return int_to_address(value), next_offset


def _decode_static(type_name: str, data: bytes, offset: int) -> Any:
    word = _read_word(data, offset)
    if type_name == "address":
        return int_to_address(int.from_bytes(word, "big"))
    if type_name == "bool":
        return int.from_bytes(word, "big") != 0
    if _UINT_RE.match(type_name):
        return int.from_bytes(word, "big")
    match = _INT_RE.match(type_name)
    if match:
        return int.from_bytes(word, "big", signed=True)
    match = _BYTES_N_RE.match(type_name)
    if match:
        return word[:int(match.group(1))]
    raise AbiDecodingError(f"Unsupported ABI type: {type_name}")


def _decode_dynamic(type_name: str, data: bytes, offset: int) -> Any:
    length, start = decode_uint256(data, offset)
    if type_name in ("bytes", "string"):
        if start + length > len(data):
            raise AbiDecodingError(
                f"{type_name} of length {length} at offset {offset} exceeds data length {len(data)}"
            )
        raw = data[start:start + length]
        if type_name == "string":
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise AbiDecodingError(f"Invalid utf-8 string: {exc}") from exc
        return raw
    if start + length * WORD_SIZE > len(data):
        raise AbiDecodingError(f"Array of length {length} at offset {offset} exceeds data")
    element = type_name[:-2]
    return decode_args([element] * length, data, start)


def decode_args(types: Sequence[str], data: bytes, start: int = 0) -> list[Any]:
    """Decode a tuple of ``types`` from ``data`` beginning at ``start``."""
    values = []
    for index, type_name in enumerate(types):
        head = start + index * WORD_SIZE
        if is_dynamic(type_name):
            relative, _ = decode_uint256(data, head)
            values.append(_decode_dynamic(type_name, data, start + relative))
        else:
            values.append(_decode_static(type_name, data, head))
    return values


def decode_revert_reason(data: bytes) -> str | None:
    """Message of an ``Error(string)`` revert payload, or ``None`` for any other payload."""
    if len(data) < 4 or data[:4] != ERROR_SELECTOR:
        return None
    try:
        return decode_args(["string"], data[4:])[0]
    except AbiDecodingError:
        return None
