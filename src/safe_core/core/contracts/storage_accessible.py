"""
Read access to raw account storage and the revert-carrying simulation primitive.
"""

from __future__ import annotations

from ..vm.contract import external
from ..vm.evm.context import CallContext

WORD_SIZE = 32


def encode_simulation_payload(success: bool, return_data: bytes) -> bytes:
    """``abi.encodePacked(uint256 success, uint256 length, returnData)``."""
    return (
        int(success).to_bytes(WORD_SIZE, "big")
        + len(return_data).to_bytes(WORD_SIZE, "big")
        + bytes(return_data)
    )


def decode_simulation_payload(payload: bytes) -> tuple[bool, bytes]:
    """Inverse of :func:`encode_simulation_payload`; raises ValueError on truncated payloads."""
    if len(payload) < 2 * WORD_SIZE:
        raise ValueError(f"Simulation payload too short: {len(payload)} bytes")
    success = int.from_bytes(payload[:WORD_SIZE], "big") != 0
    length = int.from_bytes(payload[WORD_SIZE:2 * WORD_SIZE], "big")
    data = payload[2 * WORD_SIZE:2 * WORD_SIZE + length]
    if len(data) != length:
        raise ValueError("Simulation payload truncated")
    return success, bytes(data)


class StorageAccessible:

    @external("getStorageAt(uint256,uint256)", returns="(bytes)")
    def get_storage_at(self, ctx: CallContext, offset: int, length: int) -> bytes:
        """``length`` consecutive storage words starting at slot ``offset``."""
        return b"".join(
            ctx.sload(offset + index).to_bytes(WORD_SIZE, "big") for index in range(length)
        )

    @external("simulateAndRevert(address,bytes)")
    def simulate_and_revert(self, ctx: CallContext, target: str, payload: bytes) -> None:
        """
        Delegatecall ``target`` with ``payload`` in the account's context, then
        revert unconditionally.

        The revert data carries the outcome (see :func:`encode_simulation_payload`);
        reverting discards every state change the delegatecall made.
        """
        success, output = ctx.delegatecall(target, payload)
        ctx.revert(data=encode_simulation_payload(success, output))


__all__ = ["StorageAccessible", "decode_simulation_payload", "encode_simulation_payload"]
