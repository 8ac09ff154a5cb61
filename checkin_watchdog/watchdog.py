"""Watchdog script generator.

Produces the shell script that cron runs at the scheduled minutes. The script
looks up running check-in agent processes, reads their elapsed time and kills
any run older than the threshold:

    if [ "$age" -gt 3600 ]; then kill -9 "$pid"; fi

The threshold is ``maxruntime * 60`` seconds but never less than the
system-wide minimum timeout of a single check-in. A watchdog that fires
earlier than that would kill runs that have not yet had a chance to time
out on their own.

Rendering is a pure function of its inputs, so re-applying the same
configuration produces a byte-identical file.
"""

from __future__ import annotations

import logging
import shlex

logger = logging.getLogger(__name__)

DEFAULT_MAX_RUNTIME_MINUTES = 60

# Lower bound for a single check-in, in seconds
DEFAULT_SYSTEM_MIN_TIMEOUT = 120

DEFAULT_AGENT_PATTERN = "checkin-agent"
DEFAULT_SCRIPT_PATH = "/usr/local/bin/checkin_agent_cron.sh"
DEFAULT_DISABLE_LOCK_PATH = "/var/lib/checkin-agent/agent_disabled.lock"
DEFAULT_MAX_DISABLE_MINUTES = 4320

SYSLOG_TAG = "checkin-watchdog"

_HEADER = """#!/bin/sh
# Managed by checkin-watchdog. Local changes will be overwritten.
#
# Kills check-in agent runs that have been alive for more than
# {threshold} seconds.
"""

_SWEEP = """
PATTERN={pattern}

for pid in $(pgrep -f "$PATTERN"); do
    [ "$pid" = "$$" ] && continue
    age=$(ps -o etimes= -p "$pid" 2>/dev/null | tr -d ' ')
    [ -n "$age" ] || continue
    if [ "$age" -gt {threshold} ]; then
        logger -t {tag} "Killing stale check-in process $pid (age ${{age}}s)" 2>/dev/null
        kill -9 "$pid" 2>/dev/null
    fi
done
"""

_BREAK_LOCK = """
LOCK={lock}
if [ -f "$LOCK" ]; then
    lock_age=$(( $(date +%s) - $(stat -c %Y "$LOCK") ))
    if [ "$lock_age" -gt {max_disable} ]; then
        logger -t {tag} "Removing agent disable lock older than {max_disable}s" 2>/dev/null
        rm -f "$LOCK"
    fi
fi
"""

_RUN = """
{command}
"""


def render_threshold(
    max_runtime_minutes: int | None,
    system_min_timeout_seconds: int = DEFAULT_SYSTEM_MIN_TIMEOUT,
) -> int:
    """Return the stale-process age threshold in seconds.

    Args:
        max_runtime_minutes: Allowed runtime of one check-in. None selects
            DEFAULT_MAX_RUNTIME_MINUTES.
        system_min_timeout_seconds: Floor for the result.

    Returns:
        ``max(max_runtime_minutes * 60, system_min_timeout_seconds)``
    """
    if max_runtime_minutes is None:
        max_runtime_minutes = DEFAULT_MAX_RUNTIME_MINUTES

    requested = max_runtime_minutes * 60
    if requested < system_min_timeout_seconds:
        logger.debug(
            f"maxruntime of {max_runtime_minutes}m is below the system minimum, "
            f"clamping threshold to {system_min_timeout_seconds}s"
        )
        return system_min_timeout_seconds
    return requested


def render_script(
    threshold_seconds: int,
    agent_pattern: str = DEFAULT_AGENT_PATTERN,
    run_command: str | None = None,
    disable_lock_path: str | None = None,
    max_disable_minutes: int = DEFAULT_MAX_DISABLE_MINUTES,
) -> str:
    """Render the watchdog script text.

    Args:
        threshold_seconds: Literal used in the ``-gt`` age comparison.
        agent_pattern: ``pgrep -f`` pattern matching check-in processes.
        run_command: Shell command launched after the sweep, if any.
        disable_lock_path: When set, the agent's disable lock at this path
            is removed once older than ``max_disable_minutes``.
    """
    parts = [
        _HEADER.format(threshold=threshold_seconds),
        _SWEEP.format(
            pattern=shlex.quote(agent_pattern),
            threshold=threshold_seconds,
            tag=SYSLOG_TAG,
        ),
    ]
    if disable_lock_path:
        parts.append(
            _BREAK_LOCK.format(
                lock=shlex.quote(disable_lock_path),
                max_disable=max_disable_minutes * 60,
                tag=SYSLOG_TAG,
            )
        )
    if run_command:
        parts.append(_RUN.format(command=run_command.strip()))
    return "".join(parts)


class WatchdogScriptGenerator:
    """Renders the watchdog for one node.

    The system minimum timeout is injected here rather than read from a
    global, so the clamping rule can be exercised with any floor.
    """

    def __init__(
        self,
        system_min_timeout_seconds: int = DEFAULT_SYSTEM_MIN_TIMEOUT,
        agent_pattern: str = DEFAULT_AGENT_PATTERN,
        run_command: str | None = None,
        disable_lock_path: str | None = None,
        max_disable_minutes: int = DEFAULT_MAX_DISABLE_MINUTES,
    ):
        self.system_min_timeout_seconds = system_min_timeout_seconds
        self.agent_pattern = agent_pattern
        self.run_command = run_command
        self.disable_lock_path = disable_lock_path
        self.max_disable_minutes = max_disable_minutes

    def threshold(self, max_runtime_minutes: int | None = None) -> int:
        return render_threshold(max_runtime_minutes, self.system_min_timeout_seconds)

    def render(self, max_runtime_minutes: int | None = None) -> str:
        return render_script(
            self.threshold(max_runtime_minutes),
            agent_pattern=self.agent_pattern,
            run_command=self.run_command,
            disable_lock_path=self.disable_lock_path,
            max_disable_minutes=self.max_disable_minutes,
        )
