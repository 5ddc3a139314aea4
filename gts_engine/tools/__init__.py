"""
CLI tools for the GTS engine.

- gts: every facade operation as a subcommand, plus `server`

Invariants:
    - Tools work offline against the configured roots
    - Output is the same JSON the HTTP API returns
"""

from .gts_cli import build_parser, main

__all__ = ["build_parser", "main"]
