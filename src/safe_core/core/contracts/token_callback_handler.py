"""
Receiver hooks for token standards.

Acknowledge incoming ERC-1155, ERC-721 and ERC-777 transfers so tokens sent
with "safe" transfer functions are accepted by the account.
"""

from __future__ import annotations

from typing import List

from ..config import ERC721_RECEIVED_VALUE, ERC1155_BATCH_RECEIVED_VALUE, ERC1155_RECEIVED_VALUE
from ..vm.contract import Contract, external
from ..vm.evm.context import CallContext

ERC165_INTERFACE_ID = bytes.fromhex("01ffc9a7")
ERC1155_TOKEN_RECEIVER_INTERFACE_ID = bytes.fromhex("4e2312e0")
ERC721_TOKEN_RECEIVER_INTERFACE_ID = bytes.fromhex("150b7a02")


class TokenCallbackHandler(Contract):

    @external("onERC1155Received(address,address,uint256,uint256,bytes)", returns="(bytes4)")
    def on_erc1155_received(
        self, ctx: CallContext, operator: str, sender: str, token_id: int, value: int, data: bytes
    ) -> bytes:
        return ERC1155_RECEIVED_VALUE

    @external("onERC1155BatchReceived(address,address,uint256[],uint256[],bytes)", returns="(bytes4)")
    def on_erc1155_batch_received(
        self,
        ctx: CallContext,
        operator: str,
        sender: str,
        token_ids: List[int],
        values: List[int],
        data: bytes,
    ) -> bytes:
        return ERC1155_BATCH_RECEIVED_VALUE

    @external("onERC721Received(address,address,uint256,bytes)", returns="(bytes4)")
    def on_erc721_received(self, ctx: CallContext, operator: str, sender: str, token_id: int, data: bytes) -> bytes:
        return ERC721_RECEIVED_VALUE

    @external("tokensReceived(address,address,address,uint256,bytes,bytes)")
    def tokens_received(
        self,
        ctx: CallContext,
        operator: str,
        sender: str,
        recipient: str,
        amount: int,
        user_data: bytes,
        operator_data: bytes,
    ) -> None:
        # ERC-777 only requires the hook not to revert
        return None

    @external("supportsInterface(bytes4)", returns="(bool)")
    def supports_interface(self, ctx: CallContext, interface_id: bytes) -> bool:
        return interface_id in (
            ERC165_INTERFACE_ID,
            ERC1155_TOKEN_RECEIVER_INTERFACE_ID,
            ERC721_TOKEN_RECEIVER_INTERFACE_ID,
        )


__all__ = ["TokenCallbackHandler"]
