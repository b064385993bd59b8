"""Top level command line interface for masterart.

Commands:
  layers   Compose a master document and list its rendered layers
  config   Show the effective configuration
  version  Show version information
"""

from __future__ import annotations

from masterart.interfaces.cli.dispatch import main

__all__ = ["main"]


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
