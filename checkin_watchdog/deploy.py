"""Apply the watchdog configuration to the local node.

Steps:
1. Resolve the node identity and compute the schedule offsets
2. Render the watchdog script and write it if the content changed
3. Install or update the crontab entry pointing at the script

Re-applying an unchanged configuration touches nothing. Dry-run mode reports
what would change without writing.
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from checkin_watchdog.config import WatchdogConfig
from checkin_watchdog.crontab import CrontabManager
from checkin_watchdog.errors import DeployError
from checkin_watchdog.facts import NodeFacts
from checkin_watchdog.scheduler import OffsetScheduler, PeriodicSchedule
from checkin_watchdog.watchdog import WatchdogScriptGenerator

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o750


@dataclass
class ApplyResult:
    identity: str | None
    schedule: PeriodicSchedule
    threshold_seconds: int
    script_path: str
    script_changed: bool = False
    cron_changed: bool = False
    dry_run: bool = False
    messages: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.script_changed or self.cron_changed

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "schedule": self.schedule.cron_fields(),
            "threshold_seconds": self.threshold_seconds,
            "script_path": self.script_path,
            "script_changed": self.script_changed,
            "cron_changed": self.cron_changed,
            "dry_run": self.dry_run,
        }


def build_scheduler(config: WatchdogConfig, facts: NodeFacts | None = None) -> OffsetScheduler:
    facts = facts or NodeFacts.gather()
    return OffsetScheduler(default_identity=facts.canonical_identity)


def build_generator(config: WatchdogConfig) -> WatchdogScriptGenerator:
    return WatchdogScriptGenerator(
        system_min_timeout_seconds=config.config_timeout,
        agent_pattern=config.agent_pattern,
        run_command=config.run_command,
        disable_lock_path=config.effective_disable_lock_path,
        max_disable_minutes=config.max_disable_minutes,
    )


def write_script(path: str | Path, content: str, dry_run: bool = False) -> bool:
    """Write ``content`` to ``path`` atomically if it differs.

    The existing file is compared byte for byte, so a file that is not valid
    UTF-8 is simply replaced. Returns True when the file was (or, in dry-run,
    would be) changed.
    """
    target = Path(path)
    data = content.encode("utf-8")
    try:
        if target.exists() and target.read_bytes() == data:
            if (target.stat().st_mode & 0o777) == SCRIPT_MODE:
                return False
            if not dry_run:
                os.chmod(target, SCRIPT_MODE)
            return True
    except OSError as e:
        raise DeployError(f"Cannot read {target}: {e}", context={"path": str(target)}) from e

    if dry_run:
        logger.info(f"[dry-run] Would write {target}")
        return True

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, SCRIPT_MODE)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise DeployError(f"Cannot write {target}: {e}", context={"path": str(target)}) from e

    logger.info(f"Wrote watchdog script {target}")
    return True


def apply(
    config: WatchdogConfig,
    facts: NodeFacts | None = None,
    crontab: CrontabManager | None = None,
    dry_run: bool = False,
) -> ApplyResult:
    """Render and install the watchdog script and its cron entry."""
    scheduler = build_scheduler(config, facts)
    generator = build_generator(config)

    identity = scheduler.resolve_identity(config.minute_base)
    schedule = scheduler.schedule(config.minute_base, minute=config.minute)
    threshold = generator.threshold(config.effective_maxruntime)
    script = generator.render(config.effective_maxruntime)

    result = ApplyResult(
        identity=identity,
        schedule=schedule,
        threshold_seconds=threshold,
        script_path=config.script_path,
        dry_run=dry_run,
    )

    result.script_changed = write_script(config.script_path, script, dry_run=dry_run)
    if result.script_changed:
        result.messages.append(f"script {config.script_path} updated")

    crontab = crontab or CrontabManager()
    result.cron_changed = crontab.install(
        config.cron_name, schedule, shlex.quote(config.script_path), dry_run=dry_run
    )
    if result.cron_changed:
        result.messages.append(f"cron {config.cron_name} set to {schedule.cron_expression()}")

    logger.info(
        f"Watchdog for {identity!r}: minutes={','.join(str(m) for m in schedule.minute)} "
        f"threshold={threshold}s changed={result.changed}"
    )
    return result
