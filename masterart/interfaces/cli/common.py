from __future__ import annotations

import argparse
from dataclasses import replace

from masterart.foundation.config import UnifiedConfig, load_config
from masterart.foundation.configuration import get_unified_config


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to configuration file (defaults to masterart.yml in CWD)")
    parser.add_argument("--network", help="Override network.mode (mainnet or testnet)")
    parser.add_argument("--gateway", help="Custom gateway tried before the configured list")


def resolve_config(args: argparse.Namespace) -> UnifiedConfig:
    """Load configuration and apply command line overrides."""

    cfg = load_config(args.config) if args.config else get_unified_config()
    if args.network:
        cfg = replace(cfg, network=replace(cfg.network, mode=args.network))
    if args.gateway:
        cfg = replace(cfg, gateways=replace(cfg.gateways, custom=args.gateway))
    return cfg


def parse_viewport(value: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT``; used as an argparse ``type``."""

    width, sep, height = value.lower().partition("x")
    try:
        if not sep:
            raise ValueError(value)
        parsed = int(width), int(height)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from None
    if parsed[0] <= 0 or parsed[1] <= 0:
        raise argparse.ArgumentTypeError(f"viewport must be positive, got {value!r}")
    return parsed


def parse_override(value: str) -> tuple[str, float | int]:
    """Parse ``KEY=VALUE`` where ``KEY`` is an absolute ``token-lever`` key."""

    key, sep, raw = value.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    try:
        number: float | int = float(raw) if any(c in raw for c in ".eE") else int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"override value must be numeric, got {raw!r}") from None
    return key, number


__all__ = [
    "add_config_arguments",
    "parse_override",
    "parse_viewport",
    "resolve_config",
]
