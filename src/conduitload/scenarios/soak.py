"""Soak test: steady load over a long period.

Ramps to 20 users over 5 minutes, holds for 30 minutes, and ramps down over
5 minutes. Exposes slow degradation: memory leaks, resource accumulation,
creeping latency. The behavior mix changes with the phase of the run. Run
with:

    conduitload run soak
"""

from __future__ import annotations

import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from conduitload import (
    BatchRequest,
    SetupData,
    Stage,
    VirtualUser,
    WeightedDispatcher,
    iteration,
    json_field,
    scenario,
    setup,
    teardown,
)
from conduitload._internal.logging import get_logger
from conduitload.api import endpoints
from conduitload.scenarios.common import log_section, provision_users

if TYPE_CHECKING:
    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.soak")

RAMP_UP_MINUTES = 5.0
SOAK_END_MINUTES = 35.0
PROGRESS_EVERY = 500


class Behavior(Enum):
    STEADY_BROWSING = auto()
    AUTHENTICATED_SESSION = auto()
    MIXED_LOAD = auto()


RAMP_UP_MIX = WeightedDispatcher([
    (0.7, Behavior.STEADY_BROWSING),
    (1.0, Behavior.MIXED_LOAD),
])
STEADY_MIX = WeightedDispatcher([
    (0.4, Behavior.STEADY_BROWSING),
    (0.7, Behavior.AUTHENTICATED_SESSION),
    (1.0, Behavior.MIXED_LOAD),
])
RAMP_DOWN_MIX = WeightedDispatcher([
    (1.0, Behavior.STEADY_BROWSING),
])


def soak_weights(elapsed_minutes: float) -> WeightedDispatcher[Behavior]:
    """Behavior mix for the phase the run is in.

    Ramp-up favors simple browsing, the steady phase mixes all three
    behaviors, and ramp-down only browses.
    """
    if elapsed_minutes < RAMP_UP_MINUTES:
        return RAMP_UP_MIX
    if elapsed_minutes < SOAK_END_MINUTES:
        return STEADY_MIX
    return RAMP_DOWN_MIX


async def steady_browsing(vu: VirtualUser) -> None:
    result = await vu.api.fetch_articles(10, vu.rng.randrange(100))
    vu.checks.check(result, {"Soak - steady browse success": lambda r: r.status == 200})
    if vu.chance(0.2):
        await vu.pause(0.5)
        tags = await vu.api.fetch_tags()
        vu.checks.check(tags, {"Soak - tags fetch success": lambda r: r.status == 200})


async def authenticated_session(vu: VirtualUser, token: str) -> None:
    """Validate the long-lived session, then browse as that user."""
    profile = await vu.api.current_user(token)
    vu.checks.check(
        profile,
        {
            "Soak - session profile check": lambda r: r.status == 200,
            "Soak - session still valid": lambda r: bool(json_field(r, "user", "email")),
        },
    )
    await vu.pause(1)
    articles = await vu.client.get(
        endpoints.articles_page(15, 0),
        headers=endpoints.auth_headers(token),
        name="List Articles",
    )
    vu.checks.check(articles, {"Soak - authenticated browse": lambda r: r.status == 200})


async def mixed_load(vu: VirtualUser) -> None:
    results = await vu.client.batch([
        BatchRequest("GET", endpoints.articles_page(10, 0), name="List Articles"),
        BatchRequest("GET", endpoints.TAGS, name="List Tags"),
    ])
    successes = sum(
        vu.checks.check(
            result,
            {
                f"Soak - mixed load {i} success": lambda r: r.status == 200,
                f"Soak - mixed load {i} performance": lambda r: r.duration_ms < 4000,
            },
        )
        for i, result in enumerate(results, start=1)
    )
    vu.checks.assert_that("Soak - mixed load batch success", successes >= len(results) * 0.8)


@scenario(
    name="soak",
    title="Soak Test",
    description="Extended steady load",
    purpose="Long-term stability and leaks",
    users_summary="20",
    stages=[
        Stage("5m", 20),
        Stage("30m", 20),
        Stage("5m", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<2000"],
        "http_req_failed": ["rate<0.05"],
        "http_reqs": ["rate>8"],
        "http_req_duration{scenario:soak}": ["p(99)<5000"],
        "checks{scenario:soak}": ["rate>0.95"],
    },
    tags={"testType": "soak", "environment": "demo", "scenario": "soak"},
    think_time=(1.0, 3.0),
    cloud_name="Soak Test - RealWorld Demo",
)
class SoakTest:
    """Extended steady load."""

    @setup
    async def provision(self, vu: VirtualUser) -> SetupData:
        log_section(
            logger,
            "Starting soak test setup",
            [
                "Ramp-up: 5 minutes to reach 20 users",
                "Soak period: 30 minutes at a steady 20 users",
                "Ramp-down: 5 minutes to 0 users",
                "Watching for memory leaks, resource accumulation and slow degradation",
            ],
        )
        started_at = time.time()
        users = await provision_users(vu, 3, 1.0, logger=logger)
        logger.info("Created %d users for soak testing", len(users))
        return SetupData(users=users, started_at=started_at)

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        elapsed_minutes = (time.time() - data.started_at) / 60
        if vu.iteration % PROGRESS_EVERY == 0:
            logger.info(
                "Soak progress: %d minutes, user %d at iteration %d",
                round(elapsed_minutes),
                vu.vu_id,
                vu.iteration,
                extra={"vu": vu.vu_id, "iteration": vu.iteration},
            )

        match soak_weights(elapsed_minutes).choose(vu.rng):
            case Behavior.STEADY_BROWSING:
                await steady_browsing(vu)
            case Behavior.AUTHENTICATED_SESSION:
                if data.users:
                    user = data.users[vu.iteration % len(data.users)]
                    await authenticated_session(vu, user.token)
                else:
                    await steady_browsing(vu)
            case Behavior.MIXED_LOAD:
                await mixed_load(vu)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        total_minutes = (time.time() - data.started_at) / 60
        logger.info("Soak test complete after %d minutes", round(total_minutes))
        logger.info("Total iterations completed: %d", result.total_iterations)
        log_section(
            logger,
            "Areas to investigate:",
            [
                "Response time trends: gradual increase or sawtooth patterns",
                "Memory: steady increases point to leaks",
                "Resources: connection pools, file handles, threads",
                "Logs: error patterns that emerge over time",
                "For production systems, soak for 4 to 24+ hours",
            ],
        )
