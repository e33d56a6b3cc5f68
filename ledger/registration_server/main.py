"""
Registration Ledger Server - Main entry point.

This module starts the HTTP API over the local SQLite ledger.

Usage:
    python -m ledger.registration_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The database schema is created before requests are accepted
    - Logging is configured before any component logs
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(config)

    logger.info(f"Starting ledger server on {config.http.host}:{config.http.port}")
    # log_config=None keeps the handlers installed by setup_logging
    uvicorn.run(app, host=config.http.host, port=config.http.port, log_config=None)


if __name__ == "__main__":
    main()
