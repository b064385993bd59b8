"""Foundation layer for shared infrastructure modules."""

from . import common
from .config import UnifiedConfig, load_config

__all__ = [
    "common",
    "UnifiedConfig",
    "load_config",
]
