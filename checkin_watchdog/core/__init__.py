"""Shared infrastructure (logging) for checkin-watchdog."""

from checkin_watchdog.core.logging_config import (
    configure_third_party_loggers,
    get_logger,
    setup_logging,
)

__all__ = [
    "configure_third_party_loggers",
    "get_logger",
    "setup_logging",
]
