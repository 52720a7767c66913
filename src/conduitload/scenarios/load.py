"""Load test: normal expected traffic.

Ramps to 10 users, holds, ramps to 20, holds, then ramps down. Establishes
baseline response times and throughput under typical conditions. Run with:

    conduitload run load
"""

from __future__ import annotations

from enum import Enum, auto
from typing import TYPE_CHECKING

from conduitload import (
    SetupData,
    Stage,
    VirtualUser,
    WeightedDispatcher,
    iteration,
    scenario,
    setup,
    teardown,
)
from conduitload._internal.logging import get_logger
from conduitload.scenarios.common import log_section, provision_users

if TYPE_CHECKING:
    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.load")


class Behavior(Enum):
    BROWSE = auto()
    BROWSE_WITH_TAGS = auto()
    AUTHENTICATED_SESSION = auto()


LOAD_MIX = WeightedDispatcher([
    (0.6, Behavior.BROWSE),
    (0.8, Behavior.BROWSE_WITH_TAGS),
    (1.0, Behavior.AUTHENTICATED_SESSION),
])


async def browse(vu: VirtualUser) -> None:
    """First page of articles; 30% of users scroll on to the second."""
    result = await vu.api.fetch_articles(10, 0)
    vu.checks.check(result, {"Browse articles - successful": lambda r: r.status == 200})
    if vu.chance(0.3):
        await vu.pause(1)
        await vu.api.fetch_articles(10, 10)


async def browse_with_tags(vu: VirtualUser) -> None:
    result = await vu.api.fetch_tags()
    vu.checks.check(result, {"Browse tags - successful": lambda r: r.status == 200})
    await vu.pause(0.5)
    await browse(vu)


async def authenticated_session(vu: VirtualUser, token: str) -> None:
    """Browse, then look at the own profile.

    The occasional content branch only pauses. Steady load never writes
    articles so repeated runs do not pile data onto a shared target.
    """
    await browse(vu)
    await vu.pause(1)
    profile = await vu.api.current_user(token)
    vu.checks.check(profile, {"Get user profile - successful": lambda r: r.status == 200})
    if vu.chance(0.1):
        await vu.pause(2)


@scenario(
    name="load",
    title="Load Test",
    description="Normal expected traffic with gradual ramp-up",
    purpose="Baseline performance metrics",
    users_summary="10-20",
    stages=[
        Stage("2m", 10),
        Stage("5m", 10),
        Stage("2m", 20),
        Stage("5m", 20),
        Stage("2m", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<2000"],
        "http_req_failed": ["rate<0.1"],
        "http_reqs": ["rate>10"],
    },
    tags={"testType": "load", "environment": "demo"},
    think_time=(1.0, 4.0),
)
class LoadTest:
    """Normal expected traffic with gradual ramp-up."""

    @setup
    async def provision(self, vu: VirtualUser) -> SetupData:
        log_section(logger, "Starting load test setup", ["Simulating normal user traffic patterns"])
        users = await provision_users(vu, 1, logger=logger)
        if users:
            logger.info("Test user %s created and authenticated", users[0].credential.username)
        else:
            logger.warning("Could not create test user, continuing without authentication")
        return SetupData(users=users)

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        match LOAD_MIX.choose(vu.rng):
            case Behavior.BROWSE:
                await browse(vu)
            case Behavior.BROWSE_WITH_TAGS:
                await browse_with_tags(vu)
            case Behavior.AUTHENTICATED_SESSION:
                if data.token:
                    await authenticated_session(vu, data.token)
                else:
                    await browse(vu)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        log_section(
            logger,
            "Load test complete. Key metrics to review:",
            [
                "http_req_duration: how long requests took",
                "http_req_failed: share of failed requests",
                "http_reqs: requests per second",
            ],
        )
