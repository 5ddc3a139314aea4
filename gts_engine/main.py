"""
GTS Engine HTTP server - main entry point.

Usage:
    python -m gts_engine.main

Configuration is entirely via environment variables (GTS_ prefix).
See config.py for all available settings.

Invariants:
    - The store is fully built before the server accepts requests
    - An unusable config document aborts startup with exit code 1
"""

from __future__ import annotations

import logging
import sys

from .api import run_http_server
from .config import Settings
from .errors import ConfigError
from .logging_setup import setup_logging
from .ops import GtsOps

logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point."""
    settings = Settings()
    setup_logging(settings)
    settings.log_config()

    try:
        ops = GtsOps.from_settings(settings)
    except ConfigError as e:
        logger.error(f"Startup failed: {e.message}")
        sys.exit(1)

    try:
        run_http_server(ops, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
