"""
cli — command-line interface for abiogenesis.

Entry points
────────────
  python -m abiogenesis   (via abiogenesis/__main__.py)
  ergo                    (via pyproject.toml [project.scripts])
"""

from abiogenesis.cli.main import build_parser, build_router, main

__all__ = ["build_parser", "build_router", "main"]
