"""Spike test: sudden dramatic jumps in load.

Baseline of 10 users, a jump to 200, a drop back, a second jump to 100,
then ramp-down. A 429 counts as acceptable degradation here; a 5xx or no
response at all does not. Run with:

    conduitload run spike
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
    is_acceptable,
    iteration,
    scenario,
    setup,
    teardown,
)
from conduitload._internal.logging import get_logger
from conduitload.api import endpoints
from conduitload.scenarios.common import log_section

if TYPE_CHECKING:
    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.spike")

AGGRESSIVE_PATHS = (
    (endpoints.ARTICLES, "List Articles"),
    (endpoints.articles_page(20, 0), "List Articles"),
    (endpoints.TAGS, "List Tags"),
    (endpoints.articles_page(10, 20), "List Articles"),
)

HEAVY_BATCH = (
    BatchRequest("GET", endpoints.articles_page(50, 0), name="List Articles"),
    BatchRequest("GET", endpoints.TAGS, name="List Tags"),
    BatchRequest("GET", endpoints.articles_page(20, 50), name="List Articles"),
    BatchRequest("GET", endpoints.articles_page(20, 100), name="List Articles"),
)


class Behavior(Enum):
    AGGRESSIVE_BROWSE = auto()
    HIT_AND_RUN = auto()
    HEAVY_BATCH = auto()


SPIKE_MIX = WeightedDispatcher([
    (0.5, Behavior.AGGRESSIVE_BROWSE),
    (0.8, Behavior.HIT_AND_RUN),
    (1.0, Behavior.HEAVY_BATCH),
])


async def aggressive_browse(vu: VirtualUser) -> None:
    for i, (path, name) in enumerate(AGGRESSIVE_PATHS, start=1):
        result = await vu.client.get(path, name=name)
        vu.checks.check(
            result,
            {
                f"Aggressive browse {i} - response received": lambda r: r.status > 0,
                f"Aggressive browse {i} - success or graceful failure": lambda r: 0 < r.status < 500,
            },
        )
        await vu.pause(0.1)


async def hit_and_run(vu: VirtualUser) -> None:
    """One quick request, no lingering."""
    result = await vu.client.get(endpoints.articles_page(5, 0), name="List Articles")
    vu.checks.check(
        result,
        {
            "Quick hit - got response": lambda r: r.status > 0,
            "Quick hit - not server error": lambda r: 0 < r.status < 500,
            "Quick hit - reasonably fast": lambda r: r.duration_ms < 5000,
        },
    )


async def heavy_batch(vu: VirtualUser) -> None:
    results = await vu.client.batch(HEAVY_BATCH)
    responses = 0
    acceptable = 0
    for i, result in enumerate(results, start=1):
        if result.status > 0:
            responses += 1
        if vu.checks.check(
            result,
            {
                f"Heavy load batch {i} - got response": lambda r: r.status > 0,
                f"Heavy load batch {i} - acceptable status": is_acceptable,
            },
        ):
            acceptable += 1
    vu.checks.assert_that("Heavy load batch - got most responses", responses >= len(results) * 0.7)
    vu.checks.assert_that(
        "Heavy load batch - acceptable success rate", acceptable >= len(results) * 0.5
    )


@scenario(
    name="spike",
    title="Spike Test",
    description="Sudden traffic spikes",
    purpose="Elasticity and recovery",
    users_summary="10-200",
    stages=[
        Stage("10s", 10),
        Stage("10s", 200),
        Stage("15s", 200),
        Stage("5s", 10),
        Stage("5s", 10),
        Stage("5s", 100),
        Stage("5s", 100),
        Stage("5s", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<10000"],
        "http_req_failed": ["rate<0.3"],
    },
    tags={"testType": "spike", "environment": "demo"},
    think_time=(0.1, 0.6),
)
class SpikeTest:
    """Sudden traffic spikes."""

    @setup
    async def announce(self, vu: VirtualUser) -> SetupData:
        log_section(
            logger,
            "Starting spike test",
            [
                "Start with 10 users (normal traffic)",
                "Spike to 200 users within 10 seconds",
                "Hold the spike, then drop back to 10 users",
                "Second spike to 100 users, then ramp down",
            ],
        )
        return SetupData()

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        match SPIKE_MIX.choose(vu.rng):
            case Behavior.AGGRESSIVE_BROWSE:
                await aggressive_browse(vu)
            case Behavior.HIT_AND_RUN:
                await hit_and_run(vu)
            case Behavior.HEAVY_BATCH:
                await heavy_batch(vu)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        log_section(
            logger,
            "Spike test complete. Questions to answer:",
            [
                "How did response times change during the spike?",
                "Did the application stay available or start returning errors?",
                "How quickly did it recover after the spike ended?",
                "Good: rate limiting (HTTP 429) instead of crashes",
                "Bad: service unavailability or failures persisting after the spike",
            ],
        )
