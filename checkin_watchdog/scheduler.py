"""Offset scheduler - staggers each node's watchdog across the hour.

Every node in a fleet runs the check-in watchdog twice an hour. To keep
thousands of nodes from contacting the coordinator in the same minute, the
first minute is derived from a per-node identity and the second one follows
30 minutes later:

    10.0.2.15 -> 27,57 * * * *
    foo       -> 29,59 * * * *

The mapping is a pure function of the identity string. IP addresses are
reduced by their integer value so consecutive addresses land on consecutive
minutes; any other string goes through CRC32. Only the minute field of the
resulting schedule is ever constrained.
"""

from __future__ import annotations

import ipaddress
import logging
import zlib
from dataclasses import dataclass
from typing import Iterable, Sequence

from checkin_watchdog.errors import SchedulingError

logger = logging.getLogger(__name__)

# Spacing between the two runs in one hour
RUN_SPACING_MINUTES = 30

# Base minute used when no usable identity is available
DEFAULT_BASE_MINUTE = 27

WILDCARD = "*"


@dataclass(frozen=True)
class ScheduleOffsets:
    """The two minutes past the hour at which the watchdog fires."""
    minute_a: int
    minute_b: int

    @property
    def minutes(self) -> tuple[int, int]:
        return (self.minute_a, self.minute_b)


@dataclass(frozen=True)
class PeriodicSchedule:
    """Cron-equivalent schedule. Only ``minute`` is ever constrained."""
    minute: tuple[int, ...]
    hour: str = WILDCARD
    monthday: str = WILDCARD
    month: str = WILDCARD
    weekday: str = WILDCARD

    @classmethod
    def at_minutes(cls, minutes: Iterable[int]) -> "PeriodicSchedule":
        """Build an hourly schedule firing at each of ``minutes``."""
        values = tuple(minutes)
        if not values:
            raise SchedulingError("Schedule needs at least one minute")
        for value in values:
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 59:
                raise SchedulingError(
                    "Minute must be an integer in 0-59",
                    context={"minute": value},
                )
        return cls(minute=values)

    def cron_fields(self) -> dict[str, object]:
        """Fields as accepted by a cron resource (minutes as strings)."""
        return {
            "minute": [str(m) for m in self.minute],
            "hour": self.hour,
            "monthday": self.monthday,
            "month": self.month,
            "weekday": self.weekday,
        }

    def cron_expression(self) -> str:
        """The five-field crontab time expression."""
        minute = ",".join(str(m) for m in self.minute)
        return f"{minute} {self.hour} {self.monthday} {self.month} {self.weekday}"


def _usable_identity(identity: object) -> str | None:
    if not isinstance(identity, str):
        return None
    identity = identity.strip()
    return identity or None


def minute_base_to_int(identity: str | None) -> int:
    """Reduce an identity string to a base minute in [0, 30).

    Returns DEFAULT_BASE_MINUTE when the identity is empty or missing.
    """
    value = _usable_identity(identity)
    if value is None:
        return DEFAULT_BASE_MINUTE

    try:
        numeric = int(ipaddress.ip_address(value))
    except ValueError:
        numeric = zlib.crc32(value.encode("utf-8")) & 0xffffffff

    return numeric % RUN_SPACING_MINUTES


def compute_offsets(identity: str | None) -> ScheduleOffsets:
    """Compute the two watchdog minutes for ``identity``."""
    base = minute_base_to_int(identity)
    return ScheduleOffsets(minute_a=base, minute_b=base + RUN_SPACING_MINUTES)


class OffsetScheduler:
    """Derives a node's watchdog schedule from its identity.

    Args:
        default_identity: The node's own identity (usually its primary
            address), used whenever no valid override is supplied.
    """

    def __init__(self, default_identity: str | None = None):
        self.default_identity = _usable_identity(default_identity)

    def resolve_identity(self, minute_base: object = None) -> str | None:
        """Pick the override when usable, the node default otherwise."""
        override = _usable_identity(minute_base)
        if override is not None:
            return override
        if minute_base is not None and not isinstance(minute_base, str):
            logger.warning(
                f"Ignoring non-string minute_base {minute_base!r}, "
                f"using node identity {self.default_identity!r}"
            )
        return self.default_identity

    def offsets(self, minute_base: object = None) -> ScheduleOffsets:
        identity = self.resolve_identity(minute_base)
        offsets = compute_offsets(identity)
        logger.debug(
            f"Watchdog offsets for {identity!r}: "
            f"{offsets.minute_a},{offsets.minute_b}"
        )
        return offsets

    def schedule(
        self,
        minute_base: object = None,
        minute: Sequence[int] | None = None,
    ) -> PeriodicSchedule:
        """Build the hourly schedule.

        An explicit ``minute`` list replaces the computed offsets; the other
        fields stay wildcards either way.
        """
        if minute:
            return PeriodicSchedule.at_minutes(minute)
        return PeriodicSchedule.at_minutes(self.offsets(minute_base).minutes)
