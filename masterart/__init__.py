"""Public API surface for the masterart package."""

from __future__ import annotations

import importlib
from typing import Any, Mapping

__all__ = [
    "RenderSession",
    "RenderOutcome",
    "RenderState",
    "LayerFetcher",
    "MetadataResolver",
    "MasterMetadata",
    "ControlValueResolver",
    "compose_layers",
    "resolve_transform",
    # exceptions
    "MasterArtError",
    "MetadataUnavailable",
    "MetadataInvalid",
    "FetchError",
    "LayerFetchFailed",
    "MissingAnchor",
    "StaleGeneration",
    # primary namespace entrypoints
    "foundation",
    "interfaces",
    "runtime",
]

_MODULE_MAP: Mapping[str, str] = {
    "foundation": "masterart.foundation",
    "interfaces": "masterart.interfaces",
    "runtime": "masterart.runtime",
}

_ATTR_MAP: Mapping[str, tuple[str, str]] = {
    "RenderSession": ("masterart.runtime.session", "RenderSession"),
    "RenderOutcome": ("masterart.runtime.session", "RenderOutcome"),
    "RenderState": ("masterart.runtime.session", "RenderState"),
    "LayerFetcher": ("masterart.runtime.fetcher", "LayerFetcher"),
    "MetadataResolver": ("masterart.runtime.resolver", "MetadataResolver"),
    "MasterMetadata": ("masterart.runtime.metadata", "MasterMetadata"),
    "ControlValueResolver": ("masterart.runtime.controls", "ControlValueResolver"),
    "compose_layers": ("masterart.runtime.composer", "compose_layers"),
    "resolve_transform": ("masterart.runtime.transforms", "resolve_transform"),
    "MasterArtError": ("masterart.runtime.exceptions", "MasterArtError"),
    "MetadataUnavailable": ("masterart.runtime.exceptions", "MetadataUnavailable"),
    "MetadataInvalid": ("masterart.runtime.exceptions", "MetadataInvalid"),
    "FetchError": ("masterart.runtime.exceptions", "FetchError"),
    "LayerFetchFailed": ("masterart.runtime.exceptions", "LayerFetchFailed"),
    "MissingAnchor": ("masterart.runtime.exceptions", "MissingAnchor"),
    "StaleGeneration": ("masterart.runtime.exceptions", "StaleGeneration"),
}


def __getattr__(name: str) -> Any:
    if name in _MODULE_MAP:
        module = importlib.import_module(_MODULE_MAP[name])
        globals()[name] = module
        return module

    target = _ATTR_MAP.get(name)
    if target is None:
        raise AttributeError(name)
    module_path, attr = target
    value = getattr(importlib.import_module(module_path), attr)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(__all__))
