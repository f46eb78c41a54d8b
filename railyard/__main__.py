# File: railyard/__main__.py
"""
RailYard - Module entry point.

Allows running the tool directly via::

    python -m railyard --schema blog.json --output ./output

This module simply delegates to the CLI entry point defined in ``railyard.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from railyard.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
