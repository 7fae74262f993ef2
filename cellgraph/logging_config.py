"""Logging setup for the cellgraph command line."""

import logging
import sys

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(log_level: str = "INFO", log_format: str = "simple") -> int:
    """Configure the root logger and the cellgraph logger.

    Args:
        log_level: Level name, case-insensitive. Unknown names fall back to INFO.
        log_format: "simple" for level + message, anything else for the
            detailed format with timestamps and logger names.

    Returns:
        The numeric level that was applied.
    """
    level = LEVEL_MAP.get(log_level.upper(), logging.INFO)

    if log_format == "simple":
        format_str = "%(levelname)s: %(message)s"
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        stream=sys.stderr,
    )
    logging.getLogger("cellgraph").setLevel(level)
    return level
