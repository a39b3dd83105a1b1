#!/usr/bin/env python3
"""
Self-Check Sidecar - Main Entry Point

Registers this process with the service registry, keeps its TTL check
passing, and deregisters on SIGTERM/SIGINT or when the liveness probe
fails.

Usage:
    selfcheck                      # Default config search + SELFCHECK_* env
    selfcheck --config my.yaml     # Use custom config file
    selfcheck --verbose            # Enable debug logging
"""

import argparse
import asyncio
import sys

from selfcheck import __version__
from selfcheck.common.config import SidecarConfig, find_config_path, load_config
from selfcheck.common.exceptions import ConfigError, RegistrationError
from selfcheck.common.logging_setup import configure_all, get_service_logger
from selfcheck.services.heartbeat import SidecarService

logger = get_service_logger("main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="selfcheck",
        description="TTL self-health-check sidecar",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: $SELFCHECK_CONFIG or /etc/selfcheck/config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging in plain text",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"selfcheck {__version__}",
    )
    return parser.parse_args(argv)


async def main_async(config: SidecarConfig) -> int:
    service = SidecarService(config)
    return await service.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(find_config_path(args.config))
    except ConfigError as e:
        logger.error(str(e), extra={"errors": e.errors})
        return 1

    if args.verbose:
        configure_all("DEBUG", json_format=False)
    else:
        configure_all(config.logging.level, json_format=config.logging.format == "json")

    try:
        return asyncio.run(main_async(config))
    except RegistrationError as e:
        logger.critical(f"Startup aborted: {e}", extra={"category": e.category.value})
        return 1
    except KeyboardInterrupt:
        # Interrupted before the shutdown controller was installed
        logger.info("Interrupted during startup")
        return 1


if __name__ == "__main__":
    sys.exit(main())
