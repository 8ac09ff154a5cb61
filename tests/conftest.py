"""
Shared pytest fixtures for checkin-watchdog tests.

Node facts mirror the reference deployment (primary address 10.0.2.15),
and external commands go through recording fakes instead of subprocess.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

# Make the package importable when pytest runs from a checkout without install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from checkin_watchdog.facts import NodeFacts  # noqa: E402
from tests.helpers import FakeCrontabRunner, FakeRunner  # noqa: E402

REFERENCE_IP = "10.0.2.15"
REFERENCE_FQDN = "foo.example.com"


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers/propagation set by CLI tests so caplog keeps working."""
    yield
    package_logger = logging.getLogger("checkin_watchdog")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def reference_facts() -> NodeFacts:
    """Facts of the reference node."""
    return NodeFacts(fqdn=REFERENCE_FQDN, ipaddress=REFERENCE_IP)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def crontab_runner() -> FakeCrontabRunner:
    return FakeCrontabRunner()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove CHECKIN_WATCHDOG_* variables from the environment."""
    for key in list(os.environ):
        if key.startswith("CHECKIN_WATCHDOG_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
