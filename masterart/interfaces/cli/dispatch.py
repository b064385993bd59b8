"""Command dispatcher for the ``masterart`` executable."""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from importlib.metadata import PackageNotFoundError, version as pkg_version
from typing import Callable, List

from .config import cmd_config
from .layers import cmd_layers

CommandHandler = Callable[[List[str]], int]


def cmd_version(argv: List[str]) -> int:
    """Show version information."""
    print(f"masterart version {_resolve_version()}")
    return 0


def _resolve_version() -> str:
    try:
        return pkg_version("masterart")
    except PackageNotFoundError:
        return "unknown"


COMMANDS: dict[str, CommandHandler] = {
    "layers": cmd_layers,
    "config": cmd_config,
    "version": cmd_version,
}


def _build_top_help_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="masterart",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.description = textwrap.dedent("""
        Available commands:
          layers   Compose a master document and list its rendered layers
          config   Show the effective configuration
          version  Show version information
    """)
    parser.add_argument("command", nargs="?", help="Command to run")
    return parser


def main(argv: List[str] | None = None) -> int:
    """Main CLI entry point."""
    argv = list(argv) if argv is not None else sys.argv[1:]
    if not argv or argv[0] in {"-h", "--help"}:
        _build_top_help_parser().print_help()
        return 0

    logging.basicConfig(level=logging.INFO)
    cmd, rest = argv[0], argv[1:]
    handler = COMMANDS.get(cmd)
    if handler is None:
        print(f"Error: Unknown command '{cmd}'", file=sys.stderr)
        print("Run 'masterart --help' for available commands.", file=sys.stderr)
        return 2
    return _dispatch_command(handler, rest)


def _dispatch_command(handler: CommandHandler, rest: List[str]) -> int:
    try:
        return handler(rest)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
