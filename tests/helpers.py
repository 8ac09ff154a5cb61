"""Test doubles for the external commands the package shells out to."""

from __future__ import annotations

import subprocess
from typing import Callable


class FakeRunner:
    """subprocess.run stand-in that records commands.

    ``handler`` maps a command list (and keyword args) to
    ``(returncode, stdout, stderr)``; the default succeeds with no output.
    """

    def __init__(self, handler: Callable[..., tuple[int, str, str]] | None = None):
        self.handler = handler
        self.calls: list[tuple[list[str], dict]] = []

    def __call__(self, cmd, **kwargs) -> subprocess.CompletedProcess:
        self.calls.append((list(cmd), kwargs))
        returncode, stdout, stderr = (0, "", "")
        if self.handler is not None:
            returncode, stdout, stderr = self.handler(list(cmd), **kwargs)
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    @property
    def commands(self) -> list[list[str]]:
        return [cmd for cmd, _ in self.calls]


class FakeCrontabRunner(FakeRunner):
    """Keeps an in-memory crontab behind ``crontab -l`` / ``crontab -``."""

    def __init__(self, initial: str | None = None):
        super().__init__(self._handle)
        self.content = initial
        self.writes = 0

    def _handle(self, cmd, **kwargs):
        if cmd[-1] == "-l":
            if self.content is None:
                return (1, "", "no crontab for root\n")
            return (0, self.content, "")
        if cmd[-1] == "-":
            self.content = kwargs["input"]
            self.writes += 1
            return (0, "", "")
        return (1, "", f"unexpected command {cmd}")
