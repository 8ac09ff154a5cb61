"""Coordinator baseline: the system account the coordinating service runs as.

Create-if-absent only. Existing accounts are never modified.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from typing import Callable

from checkin_watchdog.errors import ProvisioningError

logger = logging.getLogger(__name__)

SERVICE_USER = "checkin"
SERVICE_GROUP = "checkin"
SERVICE_HOME = "/var/lib/checkin"
NOLOGIN_SHELL = "/sbin/nologin"

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class ProvisionResult:
    group_created: bool = False
    user_created: bool = False
    actions: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.group_created or self.user_created


class CoordinatorBaseline:
    """Ensures the coordinator's service user and group exist."""

    def __init__(
        self,
        user: str = SERVICE_USER,
        group: str = SERVICE_GROUP,
        home: str = SERVICE_HOME,
        shell: str = NOLOGIN_SHELL,
        runner: Runner | None = None,
    ):
        self.user = user
        self.group = group
        self.home = home
        self.shell = shell
        self.runner = runner or subprocess.run

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return self.runner(cmd, capture_output=True, text=True, timeout=30)
        except (OSError, subprocess.SubprocessError) as e:
            raise ProvisioningError(
                f"Failed to run {cmd[0]}: {e}", context={"command": " ".join(cmd)}
            ) from e

    def _exists(self, database: str, name: str) -> bool:
        # getent exits 2 when the key is not found
        result = self._run(["getent", database, name])
        if result.returncode == 0:
            return True
        if result.returncode == 2:
            return False
        raise ProvisioningError(
            f"getent {database} failed",
            context={"name": name, "returncode": result.returncode},
        )

    def group_exists(self) -> bool:
        return self._exists("group", self.group)

    def user_exists(self) -> bool:
        return self._exists("passwd", self.user)

    def _create(self, cmd: list[str]) -> None:
        result = self._run(cmd)
        if result.returncode != 0:
            raise ProvisioningError(
                f"{cmd[0]} failed",
                context={
                    "command": " ".join(cmd),
                    "returncode": result.returncode,
                    "stderr": (result.stderr or "").strip()[:200],
                },
            )

    def ensure(self, dry_run: bool = False) -> ProvisionResult:
        """Create the group, then the user, when either is missing."""
        result = ProvisionResult()

        if not self.group_exists():
            cmd = ["groupadd", "--system", self.group]
            result.actions.append(" ".join(cmd))
            if dry_run:
                logger.info(f"[dry-run] Would create group {self.group}")
            else:
                self._create(cmd)
                logger.info(f"Created group {self.group}")
            result.group_created = True

        if not self.user_exists():
            cmd = [
                "useradd", "--system",
                "--gid", self.group,
                "--home-dir", self.home,
                "--shell", self.shell,
                "--comment", "check-in coordinator",
                self.user,
            ]
            result.actions.append(" ".join(cmd))
            if dry_run:
                logger.info(f"[dry-run] Would create user {self.user}")
            else:
                self._create(cmd)
                logger.info(f"Created user {self.user}")
            result.user_created = True

        if not result.changed:
            logger.debug(f"User {self.user} and group {self.group} already present")
        return result
