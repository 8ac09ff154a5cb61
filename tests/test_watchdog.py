"""Tests for checkin_watchdog.watchdog - threshold and script rendering."""

import re

import pytest

from checkin_watchdog.watchdog import (
    DEFAULT_MAX_RUNTIME_MINUTES,
    DEFAULT_SYSTEM_MIN_TIMEOUT,
    WatchdogScriptGenerator,
    render_script,
    render_threshold,
)


def comparison_literals(script: str) -> list[int]:
    """All integers used in ``[ "$age" -gt N ]`` tests."""
    return [int(n) for n in re.findall(r'\[ "\$age" -gt (\d+) \]', script)]


class TestRenderThreshold:
    """Tests for render_threshold."""

    def test_nominal(self):
        assert render_threshold(10, DEFAULT_SYSTEM_MIN_TIMEOUT) == 600

    def test_default_budget(self):
        assert DEFAULT_MAX_RUNTIME_MINUTES == 60
        assert render_threshold(None, DEFAULT_SYSTEM_MIN_TIMEOUT) == 3600

    def test_too_short_clamped_to_floor(self):
        """One minute is below the system minimum, so the floor wins."""
        assert render_threshold(1, 120) == 120
        assert render_threshold(1, 900) == 900

    def test_floor_equal_to_request(self):
        assert render_threshold(2, 120) == 120

    def test_zero_and_negative_clamped(self):
        assert render_threshold(0, 120) == 120
        assert render_threshold(-5, 120) == 120

    def test_floor_above_default(self):
        assert render_threshold(None, 7200) == 7200

    @pytest.mark.parametrize("minutes", [0, 1, 2, 5, 10, 30, 60, 90, 1440])
    @pytest.mark.parametrize("floor", [0, 60, 120, 300, 3600])
    def test_max_of_request_and_floor(self, minutes, floor):
        result = render_threshold(minutes, floor)
        assert result == max(minutes * 60, floor)
        assert result >= floor


class TestRenderScript:
    """Tests for the generated shell script."""

    def test_default_comparison(self):
        script = render_script(render_threshold(None))
        assert "-gt 3600" in script
        assert comparison_literals(script) == [3600]

    def test_set_max_age(self):
        script = render_script(render_threshold(10))
        assert comparison_literals(script) == [600]

    def test_too_short_max_age_uses_floor(self):
        script = render_script(render_threshold(1, 300))
        assert comparison_literals(script) == [300]
        assert "-gt 60 " not in script

    def test_is_shell_script(self):
        script = render_script(600)
        assert script.startswith("#!/bin/sh\n")
        assert script.endswith("\n")

    def test_uses_process_primitives(self):
        script = render_script(600, agent_pattern="checkin-agent")
        assert "pgrep -f \"$PATTERN\"" in script
        assert "ps -o etimes= -p \"$pid\"" in script
        assert "kill -9 \"$pid\"" in script
        assert "PATTERN=checkin-agent\n" in script

    def test_pattern_quoted(self):
        script = render_script(600, agent_pattern="puppet agent; rm -rf /")
        assert "PATTERN='puppet agent; rm -rf /'" in script

    def test_skips_own_pid(self):
        assert '[ "$pid" = "$$" ] && continue' in render_script(600)

    def test_idempotent(self):
        kwargs = dict(
            agent_pattern="checkin-agent",
            run_command="/usr/bin/checkin-agent --onetime",
            disable_lock_path="/var/lib/agent.lock",
            max_disable_minutes=60,
        )
        assert render_script(600, **kwargs) == render_script(600, **kwargs)

    def test_no_optional_sections_by_default(self):
        script = render_script(600)
        assert "LOCK=" not in script
        assert script.rstrip().endswith("done")

    def test_run_command_after_sweep(self):
        script = render_script(600, run_command="  /usr/bin/checkin-agent --onetime \n")
        assert script.index("/usr/bin/checkin-agent --onetime") > script.index("done")
        assert script.endswith("/usr/bin/checkin-agent --onetime\n")

    def test_break_disable_lock(self):
        script = render_script(
            600, disable_lock_path="/var/lib/agent_disabled.lock", max_disable_minutes=4320
        )
        assert "LOCK=/var/lib/agent_disabled.lock" in script
        assert '[ "$lock_age" -gt 259200 ]' in script
        assert 'rm -f "$LOCK"' in script
        # The age comparison is unaffected
        assert comparison_literals(script) == [600]


class TestWatchdogScriptGenerator:
    """Tests for the generator with an injected system minimum."""

    def test_default_floor(self):
        generator = WatchdogScriptGenerator()
        assert generator.system_min_timeout_seconds == DEFAULT_SYSTEM_MIN_TIMEOUT == 120

    def test_threshold_uses_injected_floor(self):
        generator = WatchdogScriptGenerator(system_min_timeout_seconds=900)
        assert generator.threshold(10) == 900
        assert generator.threshold(20) == 1200

    def test_render_embeds_threshold(self):
        generator = WatchdogScriptGenerator(system_min_timeout_seconds=120)
        assert comparison_literals(generator.render(10)) == [600]
        assert comparison_literals(generator.render()) == [3600]
        assert comparison_literals(generator.render(1)) == [120]

    def test_render_idempotent(self):
        generator = WatchdogScriptGenerator(run_command="/usr/bin/checkin-agent")
        assert generator.render(15) == generator.render(15)

    def test_threshold_change_changes_script(self):
        generator = WatchdogScriptGenerator()
        assert generator.render(10) != generator.render(11)
