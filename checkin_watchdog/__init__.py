"""Staggered watchdog scheduling for a fleet's check-in agent.

Usage:
    from checkin_watchdog import compute_offsets, render_threshold

    compute_offsets("foo")            # ScheduleOffsets(minute_a=29, minute_b=59)
    render_threshold(10, 120)         # 600
"""

from checkin_watchdog.scheduler import (
    OffsetScheduler,
    PeriodicSchedule,
    ScheduleOffsets,
    compute_offsets,
    minute_base_to_int,
)
from checkin_watchdog.watchdog import (
    WatchdogScriptGenerator,
    render_script,
    render_threshold,
)

__version__ = "0.1.0"

__all__ = [
    "OffsetScheduler",
    "PeriodicSchedule",
    "ScheduleOffsets",
    "WatchdogScriptGenerator",
    "compute_offsets",
    "minute_base_to_int",
    "render_script",
    "render_threshold",
]
