"""
Contract base class and external-function dispatch.

Contracts are plain Python classes. Methods decorated with ``@external`` are
reachable through calldata: the first four bytes select the method, the
rest is ABI-decoded into its arguments and the method's result is
ABI-encoded into the return data. Everything else goes to ``fallback``.

Instance attributes behave like immutables (they belong to the code, not to
an account): a contract that is delegate-called sees its own attributes but
reads and writes the caller's storage through ``ctx``.

Example:
    >>> class Counter(Contract):
    ...     @external("increment()", returns="(uint256)")
    ...     def increment(self, ctx):
    ...         value = ctx.sload(0) + 1
    ...         ctx.sstore(0, value)
    ...         return value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Optional

from .evm import abi
from .evm.context import CallContext


@dataclass(frozen=True)
class ExternalFunction:
    """Dispatch metadata of one ``@external`` method."""
    signature: str
    selector: bytes
    arg_types: tuple
    return_types: tuple
    payable: bool

    def encode_result(self, result: Any) -> bytes:
        if not self.return_types:
            return b""
        if len(self.return_types) == 1:
            return abi.encode_args(self.return_types, [result])
        return abi.encode_args(self.return_types, list(result))


def external(signature: str, returns: str = "()", payable: bool = False) -> Callable:
    """Expose a method under the canonical Solidity ``signature``."""
    _, arg_types = abi.parse_signature(signature)
    spec = ExternalFunction(
        signature=signature.replace(" ", ""),
        selector=abi.function_selector(signature),
        arg_types=tuple(arg_types),
        return_types=tuple(abi.parse_type_list(returns)),
        payable=payable,
    )

    def decorator(func: Callable) -> Callable:
        func.__external__ = spec
        return func

    return decorator


class Contract:
    """Base class of all contracts deployed on the execution host."""

    _externals: ClassVar[Dict[bytes, tuple]] = {}

    # Set by the host on deployment
    address: Optional[str] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: Dict[bytes, tuple] = {}
        for klass in reversed(cls.__mro__):
            for attr_name, attr in vars(klass).items():
                spec = getattr(attr, "__external__", None)
                if spec is None:
                    continue
                clash = table.get(spec.selector)
                if clash is not None and clash[1].signature != spec.signature:
                    raise TypeError(
                        f"Selector clash in {cls.__name__}: {clash[1].signature} / {spec.signature}"
                    )
                table[spec.selector] = (attr_name, spec)
        cls._externals = table

    @classmethod
    def external_functions(cls) -> Dict[str, ExternalFunction]:
        """External functions by canonical signature."""
        return {spec.signature: spec for _, spec in cls._externals.values()}

    @classmethod
    def selector_for(cls, signature: str) -> bytes:
        spec = cls.external_functions().get(signature.replace(" ", ""))
        if spec is None:
            raise KeyError(f"{cls.__name__} has no external function {signature}")
        return spec.selector

    def dispatch(self, ctx: CallContext) -> bytes:
        """Run the external function selected by ``ctx.calldata``."""
        entry = self._externals.get(ctx.calldata[:4]) if len(ctx.calldata) >= 4 else None
        if entry is None:
            return self.fallback(ctx) or b""

        attr_name, spec = entry
        if ctx.value and not spec.payable:
            ctx.revert()
        args = abi.decode_args(spec.arg_types, ctx.calldata[4:])
        result = getattr(self, attr_name)(ctx, *args)
        return spec.encode_result(result)

    def fallback(self, ctx: CallContext) -> bytes:
        """Calldata matching no external function. Reverts by default."""
        ctx.revert()
        return b""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address})"


__all__ = ["Contract", "ExternalFunction", "external"]
