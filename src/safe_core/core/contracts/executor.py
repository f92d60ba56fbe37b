"""Execution of an account operation: CALL or DELEGATECALL."""

from __future__ import annotations

from ..vm.evm.context import CallContext, CallType


class Executor:

    def execute(
        self,
        ctx: CallContext,
        to: str,
        value: int,
        data: bytes,
        operation: int,
        tx_gas: int,
    ) -> bool:
        """Run ``operation`` against ``to``; the return data is left in ``ctx.return_data``."""
        if operation == CallType.DELEGATECALL:
            success, _ = ctx.delegatecall(to, data, gas=tx_gas)
        elif operation == CallType.CALL:
            success, _ = ctx.call(to, data, value=value, gas=tx_gas)
        else:
            # Operation is a two-value enum
            ctx.revert()
        return success


__all__ = ["Executor"]
