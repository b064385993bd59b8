"""User-facing interfaces such as the command line tool."""

from __future__ import annotations

import importlib

__all__ = ["cli"]

_MODULES = {
    "cli": "masterart.interfaces.cli",
}


def __getattr__(name: str):
    module_path = _MODULES.get(name)
    if module_path is None:
        raise AttributeError(name)
    module = importlib.import_module(module_path)
    globals()[name] = module
    return module


def __dir__():
    return sorted(set(__all__))
