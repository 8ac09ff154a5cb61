"""Configuration for the check-in watchdog.

Settings come from three layers, later ones winning:

1. dataclass defaults
2. a YAML file (``config/checkin_watchdog.yaml`` style, flat mapping)
3. ``CHECKIN_WATCHDOG_<SETTING>`` environment variables

Example YAML:

    interval: 60
    minute_base: foo
    maxruntime: 10
    config_timeout: 120
    run_command: /usr/bin/checkin-agent --onetime

Everything is read once at apply time; nothing is reloaded while running.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from checkin_watchdog.errors import ConfigurationError
from checkin_watchdog.watchdog import (
    DEFAULT_AGENT_PATTERN,
    DEFAULT_DISABLE_LOCK_PATH,
    DEFAULT_MAX_DISABLE_MINUTES,
    DEFAULT_SCRIPT_PATH,
    DEFAULT_SYSTEM_MIN_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHECKIN_WATCHDOG_"
DEFAULT_CONFIG_PATH = Path("/etc/checkin-watchdog/config.yaml")

RANDOM_MINUTE = "rand"
_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off", ""}


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer", context={name: value})
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{name} must be an integer", context={name: value}
        ) from None


def _to_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean", context={name: value})


def _to_minutes(value: Any) -> tuple[int, ...] | None:
    """Parse the ``minute`` setting: "rand" or a list of minutes."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ("", RANDOM_MINUTE):
            return None
        value = text.split(",")
    elif isinstance(value, int):
        value = [value]

    minutes = tuple(_to_int("minute", item) for item in value)
    for minute in minutes:
        if not 0 <= minute <= 59:
            raise ConfigurationError(
                "minute values must be in 0-59", context={"minute": minute}
            )
    return minutes or None


@dataclass
class WatchdogConfig:
    """Static deployment configuration for one node."""

    # Check-in cycle length in minutes; sizes the default maxruntime
    interval: int = 60
    # Identity hashed into the schedule offset; None uses the node's own
    minute_base: str | None = None
    # Explicit minutes; None means computed from minute_base
    minute: tuple[int, ...] | None = None
    # Allowed runtime of one check-in in minutes; None falls back to interval
    maxruntime: int | None = None
    # System-wide minimum timeout of one check-in, in seconds
    config_timeout: int = DEFAULT_SYSTEM_MIN_TIMEOUT

    script_path: str = DEFAULT_SCRIPT_PATH
    cron_name: str = "checkin-agent"
    agent_pattern: str = DEFAULT_AGENT_PATTERN
    run_command: str | None = None

    break_disable_lock: bool = False
    disable_lock_path: str = DEFAULT_DISABLE_LOCK_PATH
    max_disable_minutes: int = DEFAULT_MAX_DISABLE_MINUTES

    service_user: str = "checkin"
    service_group: str = "checkin"

    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ConfigurationError(
                "interval must be positive", context={"interval": self.interval}
            )
        if self.config_timeout < 0:
            raise ConfigurationError(
                "config_timeout must not be negative",
                context={"config_timeout": self.config_timeout},
            )

    @property
    def effective_maxruntime(self) -> int:
        """Runtime budget in minutes used for the watchdog threshold."""
        if self.maxruntime is None:
            return self.interval
        return self.maxruntime

    @property
    def effective_disable_lock_path(self) -> str | None:
        return self.disable_lock_path if self.break_disable_lock else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WatchdogConfig":
        """Build a config from a flat mapping of raw (string or typed) values."""
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                extra[key] = value
                continue
            kwargs[key] = value

        if extra:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(extra))}")

        for name in ("interval", "config_timeout", "max_disable_minutes"):
            if kwargs.get(name) is not None:
                kwargs[name] = _to_int(name, kwargs[name])
            else:
                kwargs.pop(name, None)

        if kwargs.get("maxruntime") is not None:
            kwargs["maxruntime"] = _to_int("maxruntime", kwargs["maxruntime"])

        if "minute" in kwargs:
            kwargs["minute"] = _to_minutes(kwargs["minute"])

        if "break_disable_lock" in kwargs:
            kwargs["break_disable_lock"] = _to_bool(
                "break_disable_lock", kwargs["break_disable_lock"]
            )

        if "minute_base" in kwargs:
            raw = kwargs["minute_base"]
            if raw is not None and not isinstance(raw, str):
                logger.warning(
                    f"minute_base must be a string, got {raw!r}; "
                    "falling back to the node identity"
                )
                raw = None
            kwargs["minute_base"] = (raw or "").strip() or None

        for name in ("script_path", "cron_name", "agent_pattern",
                     "disable_lock_path", "service_user", "service_group"):
            if name in kwargs:
                if not kwargs[name]:
                    kwargs.pop(name)
                else:
                    kwargs[name] = str(kwargs[name])

        if kwargs.get("run_command") is not None:
            kwargs["run_command"] = str(kwargs["run_command"]).strip() or None

        return cls(extra=extra, **kwargs)

    @staticmethod
    def read_yaml(path: str | Path) -> dict[str, Any]:
        """Read a YAML settings file into a plain dict."""
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(
                "Missing config file", context={"path": str(config_path)}
            )
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML: {e}", context={"path": str(config_path)}
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a mapping",
                context={"path": str(config_path)},
            )
        return data

    @staticmethod
    def read_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
        """Collect CHECKIN_WATCHDOG_* overrides."""
        env = os.environ if environ is None else environ
        known = {f.name for f in fields(WatchdogConfig)} - {"extra"}
        overrides: dict[str, str] = {}
        for key, value in env.items():
            if not key.startswith(ENV_PREFIX):
                continue
            name = key[len(ENV_PREFIX):].lower()
            if name in known:
                overrides[name] = value
        return overrides

    @classmethod
    def from_yaml(cls, path: str | Path) -> "WatchdogConfig":
        return cls.from_dict(cls.read_yaml(path))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "WatchdogConfig":
        return cls.from_dict(cls.read_env(environ))

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "WatchdogConfig":
        """Load defaults, then the YAML file (if any), then the environment.

        Without an explicit path the default location is read only when it
        exists.
        """
        data: dict[str, Any] = {}
        if path is not None:
            data.update(cls.read_yaml(path))
        elif DEFAULT_CONFIG_PATH.exists():
            data.update(cls.read_yaml(DEFAULT_CONFIG_PATH))
        data.update(cls.read_env(environ))
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extra"}
        if self.minute is not None:
            result["minute"] = list(self.minute)
        return result
