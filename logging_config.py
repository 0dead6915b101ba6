"""
Logging configuration for cleaner output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Records go to stderr so stdout stays clean JSON for pair queries
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    - Suppresses verbose aiohttp and asyncio logs
    """

    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.client").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    # Application loggers follow the requested level and log only through root
    logging.getLogger("__main__").setLevel(level)
    _route_to_root(level)


def _route_to_root(level):
    # get_logger() attaches its own handler; drop it so records are not printed twice
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name.split(".")[0] in ("__main__", "run_dex", "dex", "dexter_kupo"):
            logger.handlers.clear()
            logger.setLevel(level)


def setup_minimal():
    """
    Even more minimal logging - only warnings and errors.
    Good for batch exports when you only care about problems.
    """
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows everything including aiohttp client logs.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("aiohttp.client").setLevel(logging.DEBUG)
