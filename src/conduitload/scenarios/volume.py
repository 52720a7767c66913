"""Volume test: large data sets and deep pagination.

Moderate concurrency but data-heavy requests: large page sizes, high
offsets, long page-by-page scans and bulk reads by authenticated users.
Setup pre-creates users and a few articles. Run with:

    conduitload run volume
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
    json_field,
    scenario,
    setup,
    teardown,
)
from conduitload._internal.logging import get_logger
from conduitload.api import endpoints
from conduitload.api.data import generate_article
from conduitload.scenarios.common import log_section, pick_user, provision_users, seed_articles

if TYPE_CHECKING:
    import random

    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.volume")

PAGE_SIZES = (10, 20, 50)
OFFSETS = (0, 50, 100, 200, 500, 1000)

BROWSE_PAGE_SIZE = 20
MIN_BROWSE_PAGES = 3
MAX_BROWSE_PAGES = 10

BULK_PAGE_SIZE = 20
BULK_OFFSETS = range(0, 100, BULK_PAGE_SIZE)


class Behavior(Enum):
    PAGINATION_SWEEP = auto()
    EXTENSIVE_BROWSE = auto()
    BULK_OPERATIONS = auto()


VOLUME_MIX = WeightedDispatcher([
    (0.4, Behavior.PAGINATION_SWEEP),
    (0.7, Behavior.EXTENSIVE_BROWSE),
    (1.0, Behavior.BULK_OPERATIONS),
])


def pagination_choice(rng: random.Random) -> tuple[int, int]:
    """Pick ``(limit, offset)`` uniformly from the fixed candidate sets."""
    return rng.choice(PAGE_SIZES), rng.choice(OFFSETS)


async def pagination_sweep(vu: VirtualUser) -> None:
    """One fetch at a random page size and a possibly very high offset."""
    limit, offset = pagination_choice(vu.rng)
    logger.debug("Testing pagination: limit=%d, offset=%d", limit, offset)
    result = await vu.api.fetch_articles(limit, offset)
    vu.checks.check(
        result,
        {
            f"Large pagination ({limit}/{offset}) - success": lambda r: r.status == 200,
            f"Large pagination ({limit}/{offset}) - has data": lambda r: (
                json_field(r, "articles") is not None
                and json_field(r, "articlesCount") is not None
            ),
        },
    )
    await vu.pause(1)
    if vu.chance(0.3):
        await vu.api.fetch_tags()


async def extensive_browse(vu: VirtualUser) -> int:
    """Walk 3 to 10 consecutive pages, stopping at the first failed page.

    Returns:
        Number of pages requested.
    """
    pages = vu.rng.randint(MIN_BROWSE_PAGES, MAX_BROWSE_PAGES)
    logger.debug("Extensive browsing: %d pages", pages)
    offset = 0
    requested = 0
    for page in range(1, pages + 1):
        result = await vu.api.fetch_articles(BROWSE_PAGE_SIZE, offset)
        requested += 1
        if not vu.checks.check(
            result, {f"Extensive browse page {page} - success": lambda r: r.status == 200}
        ):
            logger.debug("Browse session ended at page %d due to errors", page)
            break
        offset += BROWSE_PAGE_SIZE
        await vu.pause(0.5)
    return requested


async def bulk_operations(vu: VirtualUser, token: str) -> None:
    """Profile, a sweep of article pages, and a rare write."""
    profile = await vu.api.current_user(token)
    vu.checks.check(profile, {"Bulk ops - profile fetch": lambda r: r.status == 200})
    await vu.pause(0.5)

    headers = endpoints.auth_headers(token)
    for offset in BULK_OFFSETS:
        result = await vu.client.get(
            endpoints.articles_page(BULK_PAGE_SIZE, offset),
            headers=headers,
            name="List Articles",
        )
        page = offset // BULK_PAGE_SIZE + 1
        if not vu.checks.check(
            result, {f"Bulk ops - articles page {page}": lambda r: r.status == 200}
        ):
            break
        await vu.pause(0.3)

    if vu.chance(0.1):
        created = await vu.api.create_article(token, generate_article(vu.rng))
        vu.checks.check(
            created, {"Bulk ops - content creation": lambda r: r.status in (200, 201)}
        )


@scenario(
    name="volume",
    title="Volume Test",
    description="Large data sets and deep pagination",
    purpose="Data handling at scale",
    users_summary="5-25",
    stages=[
        Stage("10s", 5),
        Stage("30s", 15),
        Stage("15s", 25),
        Stage("30s", 25),
        Stage("5s", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<3000"],
        "http_req_failed": ["rate<0.15"],
        "http_reqs": ["rate>5"],
    },
    tags={"testType": "volume", "environment": "demo"},
    think_time=(1.0, 3.0),
    cloud_name="Volume Test - RealWorld Demo",
)
class VolumeTest:
    """Large data sets and deep pagination."""

    @setup
    async def provision(self, vu: VirtualUser) -> SetupData:
        log_section(
            logger,
            "Starting volume test setup",
            [
                "Large data pagination",
                "Extensive page-by-page browsing",
                "Bulk operations by authenticated users",
            ],
        )
        users = await provision_users(vu, 10, 0.5, logger=logger)
        logger.info("Created %d authenticated users", len(users))
        if users:
            created = await seed_articles(vu, users, per_user=3, max_users=5, pause=0.3)
            logger.info("Pre-created %d articles", created)
        return SetupData(users=users)

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        match VOLUME_MIX.choose(vu.rng):
            case Behavior.PAGINATION_SWEEP:
                await pagination_sweep(vu)
            case Behavior.EXTENSIVE_BROWSE:
                await extensive_browse(vu)
            case Behavior.BULK_OPERATIONS:
                user = pick_user(vu, data)
                if user is None:
                    await pagination_sweep(vu)
                else:
                    await bulk_operations(vu, user.token)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        log_section(
            logger,
            "Volume test complete. Areas to review:",
            [
                "Pagination: did response times grow with larger offsets?",
                "Memory: watch server memory for leaks on large reads",
                "Consistency: were paginated results stable under concurrency?",
            ],
        )
        if data.users:
            logger.info(
                "Note: %d test users and their articles were created and may need cleanup",
                len(data.users),
            )
