"""LoadTestRunner: script loading, overrides and a blocking run."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import pytest

from conduitload._internal.config import ConduitLoadConfig
from conduitload._internal.errors import ConfigError, ScenarioError
from conduitload.engine.runner import LoadTestRunner, override_pattern
from conduitload.patterns.constant import ConstantPattern

if TYPE_CHECKING:
    from pathlib import Path

    from conduitload.metrics.models import MetricSnapshot
    from tests.conftest import FakeConduit


class TestOverridePattern:
    def test_none_without_overrides(self):
        assert override_pattern(None, None) is None

    def test_constant_pattern(self):
        pattern = override_pattern(5, "30s")
        assert isinstance(pattern, ConstantPattern)
        assert pattern.duration_seconds == 30.0
        assert pattern.target_at(0.0) == 5

    def test_bare_number_duration(self):
        assert override_pattern(2, "45").duration_seconds == 45.0

    @pytest.mark.parametrize(("users", "duration"), [(5, None), (None, "30s")])
    def test_both_required(self, users, duration):
        with pytest.raises(ConfigError, match="must be given together"):
            override_pattern(users, duration)


class TestLoadTestRunner:
    def test_unknown_script_fails_before_running(self):
        with pytest.raises(ScenarioError, match="Unknown scenario"):
            LoadTestRunner("nonexistent", config=ConduitLoadConfig())

    def test_base_url_precedence(self):
        config = ConduitLoadConfig(base_url="http://from-env")
        assert LoadTestRunner("load", config=config).base_url == "http://from-env"
        assert (
            LoadTestRunner("load", base_url="http://cli", config=config).base_url == "http://cli"
        )

    def test_run_script_file(self, quick_script: Path, sync_conduit_server: FakeConduit):
        snapshots: list[MetricSnapshot] = []
        runner = LoadTestRunner(
            quick_script,
            base_url=sync_conduit_server.url,
            tick_interval=0.1,
            on_snapshot=snapshots.append,
            log_level=logging.WARNING,
            config=ConduitLoadConfig(),
        )
        result = runner.run()

        assert result.scenario_name == "quick"
        assert result.total_iterations == 3
        assert result.thresholds_passed
        assert snapshots
        events = sys.modules["conduitload_script_quick_script"].EVENTS
        assert events == ["setup", "teardown:3"]
        assert ("GET", "/api/articles") in sync_conduit_server.requests

    def test_users_duration_override(self, quick_script: Path, sync_conduit_server: FakeConduit):
        runner = LoadTestRunner(
            quick_script,
            base_url=sync_conduit_server.url,
            users=2,
            duration="1",
            tick_interval=0.25,
            log_level=logging.WARNING,
            config=ConduitLoadConfig(),
        )
        assert runner.session().describe() == "Constant: 2 users for 1s"
        result = runner.run()
        assert result.total_iterations > 3
        assert max(s.active_users for s in result.snapshots) == 2
