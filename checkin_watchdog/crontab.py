"""Crontab management for the watchdog job.

Each managed job occupies two lines in the user's crontab:

    # checkin-watchdog: checkin-agent
    27,57 * * * * /usr/local/bin/checkin_agent_cron.sh

The marker line lets a re-apply replace the job in place instead of appending
a duplicate. Lines we do not own are preserved verbatim, and the crontab is
read and written with ``surrogateescape`` so non-UTF-8 bytes survive.
"""

from __future__ import annotations

import logging
import re
import subprocess
from typing import Callable

from checkin_watchdog.errors import CrontabError
from checkin_watchdog.scheduler import PeriodicSchedule

logger = logging.getLogger(__name__)

MARKER_PREFIX = "# checkin-watchdog: "

# Minute list followed by four wildcard fields and a command
_MANAGED_JOB_RE = re.compile(r"^\s*\d{1,2}(,\d{1,2})*(\s+\*){4}\s+\S")

Runner = Callable[..., subprocess.CompletedProcess]


def marker_for(name: str) -> str:
    return f"{MARKER_PREFIX}{name}"


def render_entry(name: str, schedule: PeriodicSchedule, command: str) -> list[str]:
    """Render the marker and job lines for one managed entry."""
    return [marker_for(name), f"{schedule.cron_expression()} {command}"]


def is_managed_job(line: str) -> bool:
    """True when ``line`` has the shape of a job written by render_entry."""
    return bool(_MANAGED_JOB_RE.match(line))


def strip_entry(text: str, name: str) -> list[str]:
    """Return crontab lines with the managed entry ``name`` removed.

    The line after a marker is only dropped when it looks like a managed job;
    a stray marker never takes a foreign job down with it.
    """
    marker = marker_for(name)
    kept: list[str] = []
    after_marker = False
    for line in text.splitlines():
        if after_marker:
            after_marker = False
            if is_managed_job(line):
                continue
        if line.strip() == marker:
            after_marker = True
            continue
        kept.append(line)
    return kept


def merge_entry(text: str, name: str, schedule: PeriodicSchedule, command: str) -> str:
    """Replace (or add) the managed entry in crontab ``text``."""
    lines = strip_entry(text, name)
    while lines and not lines[-1].strip():
        lines.pop()
    lines.extend(render_entry(name, schedule, command))
    return "\n".join(lines) + "\n"


class CrontabManager:
    """Reads and writes a crontab through the ``crontab`` command.

    Args:
        user: Crontab owner; None edits the invoking user's crontab.
        runner: subprocess.run-compatible callable, replaceable in tests.
    """

    def __init__(self, user: str | None = None, runner: Runner | None = None):
        self.user = user
        self.runner = runner or subprocess.run

    def _base_cmd(self) -> list[str]:
        cmd = ["crontab"]
        if self.user:
            cmd.extend(["-u", self.user])
        return cmd

    def read(self) -> str:
        """Return the current crontab, or an empty string when none exists."""
        try:
            result = self.runner(
                self._base_cmd() + ["-l"],
                capture_output=True,
                text=True,
                errors="surrogateescape",
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise CrontabError(f"Failed to run crontab: {e}") from e

        if result.returncode == 0:
            return result.stdout
        if "no crontab" in (result.stderr or "").lower():
            return ""
        raise CrontabError(
            "crontab -l failed",
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def write(self, text: str) -> None:
        try:
            result = self.runner(
                self._base_cmd() + ["-"],
                input=text,
                capture_output=True,
                text=True,
                errors="surrogateescape",
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise CrontabError(f"Failed to run crontab: {e}") from e

        if result.returncode != 0:
            raise CrontabError(
                "crontab install failed",
                returncode=result.returncode,
                stderr=result.stderr,
            )

    def install(
        self,
        name: str,
        schedule: PeriodicSchedule,
        command: str,
        dry_run: bool = False,
    ) -> bool:
        """Ensure the managed entry exists. Returns True when it changed."""
        current = self.read()
        updated = merge_entry(current, name, schedule, command)
        if updated == current:
            logger.debug(f"Cron entry {name} already up to date")
            return False
        if dry_run:
            logger.info(f"[dry-run] Would install cron entry {name}: {schedule.cron_expression()}")
            return True
        self.write(updated)
        logger.info(f"Installed cron entry {name}: {schedule.cron_expression()} {command}")
        return True

    def remove(self, name: str, dry_run: bool = False) -> bool:
        """Drop the managed entry. Returns True when something was removed."""
        current = self.read()
        if marker_for(name) not in (line.strip() for line in current.splitlines()):
            return False
        lines = strip_entry(current, name)
        updated = "\n".join(lines) + "\n" if lines else ""
        if dry_run:
            logger.info(f"[dry-run] Would remove cron entry {name}")
            return True
        self.write(updated)
        logger.info(f"Removed cron entry {name}")
        return True
