"""Process-wide configuration cache."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
import logging

from masterart.foundation.config import UnifiedConfig, find_config_file, load_config

logger = logging.getLogger(__name__)

_override: UnifiedConfig | None = None
_cached: UnifiedConfig | None = None
_loaded = False
_source_path: str | None = None


def reset_runtime_config_cache() -> None:
    """Forget the discovered config file so the next lookup searches again."""

    global _cached, _loaded, _source_path
    _cached = None
    _loaded = False
    _source_path = None


@contextmanager
def runtime_config_override(config: UnifiedConfig | None) -> Iterator[None]:
    """Serve ``config`` from the helpers below until the block exits."""

    global _override
    previous = _override
    _override = config
    try:
        yield
    finally:
        _override = previous


def get_runtime_config() -> UnifiedConfig | None:
    """Return the override, else the discovered ``masterart.yml``, else ``None``."""

    if _override is not None:
        return _override

    global _cached, _loaded, _source_path
    if not _loaded:
        path = find_config_file()
        try:
            _cached = load_config(path) if path else None
            _source_path = path
        finally:
            _loaded = True
        if path is None:
            logger.debug("No masterart config file discovered; using defaults")
    return _cached


def get_runtime_config_path() -> str | None:
    """Path of the discovered config file; ``None`` under an override."""

    if _override is not None:
        return None
    get_runtime_config()
    return _source_path


def get_unified_config(*, reload: bool = False) -> UnifiedConfig:
    if reload:
        reset_runtime_config_cache()
    return get_runtime_config() or UnifiedConfig()


__all__ = [
    "get_runtime_config",
    "get_runtime_config_path",
    "get_unified_config",
    "reset_runtime_config_cache",
    "runtime_config_override",
]
