"""TestSession end to end against the fake Conduit server."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from conduitload import (
    SetupData,
    Stage,
    VirtualUser,
    iteration,
    scenario,
    setup,
    teardown,
)
from conduitload._internal.config import ConduitLoadConfig
from conduitload.api.data import generate_user_credential
from conduitload.engine.session import SessionState, TestSession
from conduitload.patterns.constant import ConstantPattern

if TYPE_CHECKING:
    from conduitload.metrics.models import MetricSnapshot, TestResult
    from tests.conftest import FakeConduit


def _make_definition(**overrides):
    events: list[str] = []
    options = {
        "name": "tiny",
        "iterations": 4,
        "thresholds": {"http_req_failed": ["rate<0.1"], "checks": ["rate>0.9"]},
        "tags": {"testType": "tiny"},
        "think_time": (0.0, 0.0),
    }
    options.update(overrides)

    @scenario(**options)
    class Tiny:
        @setup
        async def prepare(self, vu: VirtualUser) -> SetupData:
            events.append(f"setup:{vu.vu_id}")
            token = await vu.api.authenticate(generate_user_credential(vu.rng))
            assert token is not None
            return SetupData()

        @iteration
        async def run(self, vu: VirtualUser, data: SetupData) -> None:
            events.append(f"iteration:{vu.vu_id}:{vu.iteration}")
            with vu.group("Browse"):
                await vu.api.fetch_articles(5, 0)

        @teardown
        async def finish(self, data: SetupData, result: TestResult) -> None:
            events.append(f"teardown:{result.total_iterations}:{result.thresholds_passed}")

    return Tiny, events


class TestIterationsMode:
    async def test_runs_setup_iterations_and_teardown(self, conduit_server: FakeConduit):
        definition, events = _make_definition()
        snapshots: list[MetricSnapshot] = []
        session = TestSession(
            definition,
            base_url=conduit_server.url,
            tick_interval=0.1,
            on_snapshot=snapshots.append,
        )
        assert session.describe() == "1 user x 4 iterations"

        result = await session.run()

        assert session.state is SessionState.COMPLETED
        assert events[0] == "setup:0"
        assert events[1:5] == [f"iteration:1:{i}" for i in range(1, 5)]
        assert events[-1] == "teardown:4:True"
        assert result.total_iterations == 4
        assert result.thresholds_passed
        assert result.tags == {"testType": "tiny"}
        assert result.final_summary is not None
        # Setup traffic (register + login) counts alongside the iterations.
        assert result.final_summary.total_requests == 6
        assert result.final_summary.iterations == 4
        assert snapshots
        assert {c.group for c in result.checks} >= {"", "::Browse"}

    async def test_setup_failure_falls_back_to_empty_data(self, conduit_server: FakeConduit):
        @scenario(name="broken-setup", iterations=2, think_time=(0.0, 0.0))
        class BrokenSetup:
            @setup
            async def prepare(self, vu: VirtualUser) -> SetupData:
                raise RuntimeError("no users")

            @iteration
            async def run(self, vu: VirtualUser, data: SetupData) -> None:
                assert data.users == ()
                await vu.api.fetch_tags()

        result = await TestSession(
            BrokenSetup, base_url=conduit_server.url, tick_interval=0.1
        ).run()
        assert result.total_iterations == 2
        assert all(c.fails == 0 for c in result.checks)

    async def test_iteration_errors_do_not_stop_the_user(self, conduit_server: FakeConduit):
        @scenario(name="flaky", iterations=3, think_time=(0.0, 0.0))
        class Flaky:
            @iteration
            async def run(self, vu: VirtualUser, data: SetupData) -> None:
                if vu.iteration == 2:
                    raise ValueError("bad iteration")
                await vu.api.fetch_tags()

        result = await TestSession(Flaky, base_url=conduit_server.url, tick_interval=0.1).run()
        assert result.total_iterations == 3
        assert result.final_summary.total_requests == 2

    async def test_crossed_threshold_fails_verdict(self, conduit_server: FakeConduit):
        conduit_server.fail_status = 500
        definition, events = _make_definition(name="failing")
        result = await TestSession(
            definition, base_url=conduit_server.url, tick_interval=0.1
        ).run()
        assert not result.thresholds_passed
        assert {t.threshold.key for t in result.failed_thresholds} == {
            "http_req_failed",
            "checks",
        }
        # Teardown still runs and sees the verdict.
        assert events[-1] == "teardown:4:False"


class TestStagesMode:
    async def test_ramps_users_and_stops(self, conduit_server: FakeConduit):
        definition, _events = _make_definition(
            name="ramp",
            iterations=None,
            stages=[Stage("1s", 3), Stage("0.5s", 0)],
        )
        session = TestSession(definition, base_url=conduit_server.url, tick_interval=0.25)
        result = await session.run()

        assert session.state is SessionState.COMPLETED
        assert session.active_user_count == 0
        assert result.total_iterations > 0
        assert result.duration_seconds == pytest.approx(1.5, abs=1.0)
        assert max(s.active_users for s in result.snapshots) == 3
        assert result.pattern_description.startswith("Stages")

    async def test_pattern_override(self, conduit_server: FakeConduit):
        definition, _events = _make_definition(name="override")
        session = TestSession(
            definition,
            pattern=ConstantPattern(2, 0.5),
            base_url=conduit_server.url,
            tick_interval=0.1,
        )
        assert session.describe() == "Constant: 2 users for 0.5s"
        result = await session.run()
        assert result.total_iterations > 0
        assert max(s.active_users for s in result.snapshots) == 2


class TestBaseUrlResolution:
    def test_precedence(self):
        definition, _ = _make_definition(base_url="http://from-script")
        config = ConduitLoadConfig(base_url="http://from-env")
        assert TestSession(definition, config=config).base_url == "http://from-script"
        assert (
            TestSession(definition, base_url="http://from-cli", config=config).base_url
            == "http://from-cli"
        )
        plain, _ = _make_definition()
        assert TestSession(plain, config=config).base_url == "http://from-env"
