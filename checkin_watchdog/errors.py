"""
checkin-watchdog Error Hierarchy

Unified exception hierarchy for configuration, scheduling and apply-time
failures. All custom exceptions inherit from CheckinWatchdogError so the CLI
can catch them in one place and turn them into an exit code.

Usage:
    from checkin_watchdog.errors import ConfigurationError, CrontabError

    try:
        install_entry(schedule, command)
    except CrontabError as e:
        logger.error(f"Cron install failed: {e.message}")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    # Base error
    "CheckinWatchdogError",
    # Validation errors
    "ConfigurationError",
    "SchedulingError",
    "ValidationError",
    # Apply-time errors
    "ApplyError",
    "CrontabError",
    "DeployError",
    "ProvisioningError",
]


class CheckinWatchdogError(Exception):
    """Base exception for all checkin-watchdog errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "CHECKIN_WATCHDOG_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(CheckinWatchdogError):
    """Base class for validation errors."""
    code: str = "VALIDATION_ERROR"


class ConfigurationError(ValidationError):
    """Invalid configuration.

    Raised at load time for structurally invalid settings, e.g. a
    non-numeric maxruntime or a minute outside 0-59. Values that are merely
    too small are clamped instead.
    """
    code: str = "CONFIGURATION_ERROR"


class SchedulingError(ValidationError):
    """A schedule could not be built from the given minutes."""
    code: str = "SCHEDULING_ERROR"


# =============================================================================
# Apply-time Errors
# =============================================================================


class ApplyError(CheckinWatchdogError):
    """Base class for failures while applying configuration to the node."""
    code: str = "APPLY_ERROR"


class CrontabError(ApplyError):
    """Reading or writing the crontab failed.

    Attributes:
        returncode: Exit status of the crontab command, when known
    """
    code: str = "CRONTAB_ERROR"

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.returncode = returncode
        if returncode is not None:
            self.context["returncode"] = returncode
        if stderr:
            self.context["stderr"] = stderr.strip()[:200]


class ProvisioningError(ApplyError):
    """Creating the service account or group failed."""
    code: str = "PROVISIONING_ERROR"


class DeployError(ApplyError):
    """Writing the watchdog script to disk failed."""
    code: str = "DEPLOY_ERROR"
