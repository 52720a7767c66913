"""Stress test: push beyond normal capacity to find the breaking point.

Ramps gradually to 100 concurrent users with short think times, holds,
then ramps down quickly to observe recovery. Run with:

    conduitload run stress
"""

from __future__ import annotations

from enum import Enum, auto
from typing import TYPE_CHECKING

from conduitload import (
    BatchRequest,
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
from conduitload.api import endpoints
from conduitload.scenarios.common import log_section, pick_user, provision_users

if TYPE_CHECKING:
    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.stress")


class Behavior(Enum):
    RAPID_BROWSE = auto()
    MIXED_BATCH = auto()
    AUTHENTICATED_BATCH = auto()


STRESS_MIX = WeightedDispatcher([
    (0.4, Behavior.RAPID_BROWSE),
    (0.7, Behavior.MIXED_BATCH),
    (1.0, Behavior.AUTHENTICATED_BATCH),
])


async def rapid_browse(vu: VirtualUser) -> None:
    """Three pages back to back with barely a pause."""
    for page in range(3):
        result = await vu.api.fetch_articles(10, page * 10)
        vu.checks.check(
            result, {f"Rapid browse page {page + 1} - success": lambda r: r.status == 200}
        )
        await vu.pause(0.2)


async def mixed_batch(vu: VirtualUser) -> None:
    results = await vu.client.batch([
        BatchRequest("GET", endpoints.ARTICLES, name="List Articles"),
        BatchRequest("GET", endpoints.TAGS, name="List Tags"),
        BatchRequest("GET", endpoints.articles_page(5, 0), name="List Articles"),
    ])
    for i, result in enumerate(results, start=1):
        vu.checks.check(result, {f"Batch request {i} - success": lambda r: r.status == 200})


async def authenticated_batch(vu: VirtualUser, token: str) -> None:
    """Profile and two article pages at once; at least 70% must succeed."""
    headers = endpoints.auth_headers(token)
    results = await vu.client.batch([
        BatchRequest("GET", endpoints.CURRENT_USER, name="Current User", headers=headers),
        BatchRequest("GET", endpoints.ARTICLES, name="List Articles", headers=headers),
        BatchRequest(
            "GET", endpoints.articles_page(20, 0), name="List Articles", headers=headers
        ),
    ])
    successes = sum(
        vu.checks.check(
            result,
            {f"Authenticated batch {i} - success": lambda r: r.status in (200, 201)},
        )
        for i, result in enumerate(results, start=1)
    )
    vu.checks.assert_that(
        "Authenticated stress batch - majority success",
        successes >= len(results) * 0.7,
    )


@scenario(
    name="stress",
    title="Stress Test",
    description="High load to find the breaking point",
    purpose="Maximum capacity and failure behavior",
    users_summary="20-100",
    stages=[
        Stage("2m", 20),
        Stage("5m", 50),
        Stage("10m", 100),
        Stage("3m", 100),
        Stage("2m", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<5000"],
        "http_req_failed": ["rate<0.2"],
    },
    tags={"testType": "stress", "environment": "demo"},
    think_time=(0.5, 1.5),
)
class StressTest:
    """High load to find the breaking point."""

    @setup
    async def provision(self, vu: VirtualUser) -> SetupData:
        log_section(
            logger,
            "Starting stress test setup",
            [
                "Pushing the application to its limits",
                "Load increases gradually to 100 concurrent users",
            ],
        )
        users = await provision_users(vu, 5, logger=logger)
        logger.info("Created %d test users for stress testing", len(users))
        return SetupData(users=users)

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        match STRESS_MIX.choose(vu.rng):
            case Behavior.RAPID_BROWSE:
                await rapid_browse(vu)
            case Behavior.MIXED_BATCH:
                await mixed_batch(vu)
            case Behavior.AUTHENTICATED_BATCH:
                user = pick_user(vu, data)
                if user is None:
                    await rapid_browse(vu)
                else:
                    await authenticated_batch(vu, user.token)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        log_section(
            logger,
            "Stress test complete. What to look for:",
            [
                "Whether response times stayed acceptable under stress",
                "The point where error rates started increasing",
                "Whether the application recovered during ramp-down",
                "Bottlenecks: CPU, memory, database connections",
            ],
        )
