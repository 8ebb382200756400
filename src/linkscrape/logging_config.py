"""Logging setup for the command-line entry point."""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty below WARNING: per-request lines from the HTTP stack and the driver
_QUIET_LOGGERS = ('httpx', 'httpcore', 'asyncio', 'playwright', 'readability')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """Route log records to stderr and, optionally, a file.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Also write to this file, creating parent directories
        format_string: Record format, DEFAULT_FORMAT if omitted
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
