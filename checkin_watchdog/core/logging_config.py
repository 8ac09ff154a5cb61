"""Unified logging configuration for checkin-watchdog.

All modules log through ``logging.getLogger(__name__)``; entry points call
``setup_logging`` once to attach handlers.

Usage:
    from checkin_watchdog.core.logging_config import setup_logging, get_logger

    logger = setup_logging("checkin_watchdog", level="DEBUG")
    logger.info("Applied schedule")
"""

from __future__ import annotations

import logging
import sys

__all__ = [
    "DEFAULT_FORMAT",
    "configure_third_party_loggers",
    "get_logger",
    "setup_logging",
]

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Packages that log too much at INFO for a one-shot CLI
NOISY_PACKAGES = ("urllib3", "asyncio", "yaml")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(
    name: str,
    level: int | str = logging.INFO,
    propagate: bool = False,
) -> logging.Logger:
    """Configure and return a named logger writing to stderr.

    Calling this twice for the same name does not add a second handler.

    Args:
        name: Logger name
        level: Log level as int or name ("DEBUG", "INFO", ...)
        propagate: Propagate records to the root logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    logger.propagate = propagate

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` without touching its handlers."""
    return logging.getLogger(name)


def configure_third_party_loggers(
    quiet: bool = True,
    verbose_packages: list[str] | None = None,
) -> None:
    """Raise noisy third-party loggers to WARNING unless listed as verbose."""
    if not quiet:
        return
    keep = set(verbose_packages or [])
    for package in NOISY_PACKAGES:
        if package in keep:
            continue
        logging.getLogger(package).setLevel(logging.WARNING)
