from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from typing import List

from masterart.foundation.configuration import get_runtime_config_path

from .common import add_config_arguments, resolve_config


def cmd_config(argv: List[str]) -> int:
    """Show the effective configuration after file and flag overrides."""
    parser = argparse.ArgumentParser(
        prog="masterart config",
        description="Show the effective configuration",
    )
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    cfg = resolve_config(args)
    source = args.config or get_runtime_config_path() or "<defaults>"
    payload = {
        "source": source,
        "network": asdict(cfg.network),
        "gateways": {
            **asdict(cfg.gateways),
            "ordered": cfg.gateways.ordered_domains(cfg.network),
        },
        "render": asdict(cfg.render),
        "test": asdict(cfg.test),
    }
    print(json.dumps(payload, indent=2))
    return 0
