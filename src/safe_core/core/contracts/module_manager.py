"""
Module list of an account: a sentinel-rooted linked list at storage slot 1.

Modules are plain bookkeeping here: they can be enabled, disabled and
listed, all changes going through the account itself.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from ..address_checksum import address_to_int, int_to_address
from ..vm.contract import external
from ..vm.evm.context import CallContext
from .owner_manager import require_self_authorized

logger = logging.getLogger(__name__)

SENTINEL_MODULES = "0x0000000000000000000000000000000000000001"

MODULES_SLOT = 1


class ModuleManager:

    def _module_slot(self, ctx: CallContext, module: str) -> int:
        return ctx.mapping_slot(module, MODULES_SLOT)

    def _next_module(self, ctx: CallContext, module: str) -> str:
        return int_to_address(ctx.sload(self._module_slot(ctx, module)))

    def setup_modules(self, ctx: CallContext) -> None:
        ctx.require(ctx.sload(self._module_slot(ctx, SENTINEL_MODULES)) == 0, "GS100")
        ctx.sstore(self._module_slot(ctx, SENTINEL_MODULES), address_to_int(SENTINEL_MODULES))

    @external("enableModule(address)")
    def enable_module(self, ctx: CallContext, module: str) -> None:
        require_self_authorized(ctx)
        ctx.require(address_to_int(module) not in (0, 1), "GS101")
        ctx.require(ctx.sload(self._module_slot(ctx, module)) == 0, "GS102")
        ctx.sstore(self._module_slot(ctx, module), ctx.sload(self._module_slot(ctx, SENTINEL_MODULES)))
        ctx.sstore(self._module_slot(ctx, SENTINEL_MODULES), address_to_int(module))
        ctx.emit("EnabledModule(address)", module)
        logger.info(
            "Module enabled",
            extra={"event": "safe.module_enabled", "account": ctx.address[:10], "module": module[:10]},
        )

    @external("disableModule(address,address)")
    def disable_module(self, ctx: CallContext, prev_module: str, module: str) -> None:
        require_self_authorized(ctx)
        ctx.require(address_to_int(module) not in (0, 1), "GS101")
        ctx.require(
            ctx.sload(self._module_slot(ctx, prev_module)) == address_to_int(module),
            "GS103",
        )
        ctx.sstore(self._module_slot(ctx, prev_module), ctx.sload(self._module_slot(ctx, module)))
        ctx.sstore(self._module_slot(ctx, module), 0)
        ctx.emit("DisabledModule(address)", module)
        logger.info(
            "Module disabled",
            extra={"event": "safe.module_disabled", "account": ctx.address[:10], "module": module[:10]},
        )

    @external("isModuleEnabled(address)", returns="(bool)")
    def is_module_enabled(self, ctx: CallContext, module: str) -> bool:
        return address_to_int(module) != 1 and ctx.sload(self._module_slot(ctx, module)) != 0

    @external("getModulesPaginated(address,uint256)", returns="(address[],address)")
    def get_modules_paginated(self, ctx: CallContext, start: str, page_size: int) -> Tuple[List[str], str]:
        """
        Up to ``page_size`` modules following ``start``.

        Returns:
            (modules, next) where ``next`` is the cursor for the following page
            (the sentinel once the list is exhausted)
        """
        modules: List[str] = []
        current = self._next_module(ctx, start)
        while address_to_int(current) not in (0, 1) and len(modules) < page_size:
            modules.append(current)
            current = self._next_module(ctx, current)
        return modules, current


__all__ = ["MODULES_SLOT", "ModuleManager", "SENTINEL_MODULES"]
