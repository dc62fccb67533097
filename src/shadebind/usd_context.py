from __future__ import annotations

import importlib
import logging
from typing import Dict

LOG = logging.getLogger(__name__)

_PXR_CACHE: Dict[str, object] = {}
_INSTALL_HINT = (
    "OpenUSD Python bindings are required. Install with: pip install usd-core "
    "or run within a Python runtime that ships pxr."
)


def is_initialized() -> bool:
    """Return True once the pxr package has been imported through this module."""
    return "__pxr__" in _PXR_CACHE


def initialize_usd():
    """Import the pxr package once and cache it.

    Raises ImportError with an install hint when the bindings are missing.
    """
    if "__pxr__" in _PXR_CACHE:
        return _PXR_CACHE["__pxr__"]
    try:
        package = importlib.import_module("pxr")
    except ImportError as exc:
        raise ImportError(_INSTALL_HINT) from exc
    LOG.debug("Loaded OpenUSD bindings from %s", getattr(package, "__file__", "<unknown>"))
    _PXR_CACHE["__pxr__"] = package
    return package


def get_pxr_module(name: str):
    if name not in _PXR_CACHE:
        initialize_usd()
        try:
            _PXR_CACHE[name] = importlib.import_module(f"pxr.{name}")
        except ImportError as exc:
            raise ImportError(f"pxr.{name} is unavailable. {_INSTALL_HINT}") from exc
    return _PXR_CACHE[name]


def shutdown_usd_context() -> None:
    """Forget cached pxr modules; the next access re-imports them."""
    _PXR_CACHE.clear()
