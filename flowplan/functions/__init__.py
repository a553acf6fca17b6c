"""
Default registry and auto-discovery of bundled functions.

Any module inside this package can register functions using the decorator
provided by :mod:`flowplan.functions.registry`. When this package is imported
we scan sibling modules and import them, triggering registrations
automatically. A parameter named after another registered function is a
dependency on it.
"""

from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path

from .registry import (
    FunctionSource,
    FunctionNotFoundError,
    Registry,
    default_registry,
    list_functions,
    register,
)

__all__ = [
    "FunctionNotFoundError",
    "FunctionSource",
    "Registry",
    "default_registry",
    "register",
    "list_functions",
]


def _auto_discover() -> None:
    """Import every peer module to trigger registration side-effects."""
    package_path = Path(__file__).resolve().parent
    for module_info in pkgutil.iter_modules([str(package_path)]):
        module_name = module_info.name
        if module_name.startswith("_") or module_name == "registry":
            continue
        importlib.import_module(f"{__name__}.{module_name}")


_auto_discover()
