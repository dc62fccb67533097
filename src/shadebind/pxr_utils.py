"""Lazy handles for the pxr modules used by the resolvers."""

from __future__ import annotations

from typing import Any

from .usd_context import get_pxr_module


class _ModuleProxy:
    def __init__(self, module_name: str):
        self._module_name = module_name

    def __getattr__(self, item: str) -> Any:
        return getattr(get_pxr_module(self._module_name), item)

    def __dir__(self):
        return dir(get_pxr_module(self._module_name))

    def __repr__(self) -> str:
        return f"<lazy pxr.{self._module_name}>"


Gf = _ModuleProxy("Gf")
Sdf = _ModuleProxy("Sdf")
Usd = _ModuleProxy("Usd")
UsdShade = _ModuleProxy("UsdShade")

__all__ = ["Gf", "Sdf", "Usd", "UsdShade"]
