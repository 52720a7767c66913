"""API test: functional coverage of every endpoint under moderate load.

Exercises public endpoints, the authentication flow and a complete user
workflow, each inside named groups so their durations can be held to
separate thresholds. Run with:

    conduitload run api
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
from conduitload.api.data import generate_article, generate_user_credential
from conduitload.scenarios.common import log_section

if TYPE_CHECKING:
    from conduitload.metrics.models import TestResult

logger = get_logger("scenarios.api")


class Behavior(Enum):
    PUBLIC_API = auto()
    AUTHENTICATION_FLOW = auto()
    USER_WORKFLOW = auto()


API_MIX = WeightedDispatcher([
    (0.3, Behavior.PUBLIC_API),
    (0.6, Behavior.AUTHENTICATION_FLOW),
    (1.0, Behavior.USER_WORKFLOW),
])


async def public_api(vu: VirtualUser) -> None:
    with vu.group("Public API"):
        with vu.group("Articles API"):
            basic = await vu.api.fetch_articles(20, 0)
            vu.checks.check(
                basic,
                {
                    "Public - Articles basic fetch": lambda r: r.status == 200,
                    "Public - Articles has required fields": lambda r: (
                        json_field(r, "articles") is not None
                        and json_field(r, "articlesCount") is not None
                    ),
                },
            )
            await vu.pause(0.5)

            paginated = await vu.api.fetch_articles(5, 10)
            vu.checks.check(
                paginated, {"Public - Articles pagination works": lambda r: r.status == 200}
            )
            await vu.pause(0.5)

            limited = await vu.api.fetch_articles(1, 0)
            vu.checks.check(
                limited,
                {
                    "Public - Articles with small limit": lambda r: r.status == 200,
                    "Public - Articles respects limit": lambda r: (
                        len(json_field(r, "articles")) <= 1
                    ),
                },
            )

        await vu.pause(1)

        with vu.group("Tags API"):
            tags = await vu.api.fetch_tags()
            vu.checks.check(
                tags,
                {
                    "Public - Tags fetch successful": lambda r: r.status == 200,
                    "Public - Tags is array": lambda r: isinstance(json_field(r, "tags"), list),
                },
            )


async def authentication_flow(vu: VirtualUser) -> None:
    """Register, log in and validate the token; stop at the first failure."""
    with vu.group("Authentication"):
        credential = generate_user_credential(vu.rng)

        with vu.group("User Registration"):
            registration = await vu.api.register(credential)
            registered = vu.checks.check(
                registration,
                {
                    "Auth - Registration successful": lambda r: r.status == 200,
                    "Auth - Registration returns user data": lambda r: (
                        json_field(r, "user", "email") == credential.email
                    ),
                },
            )
        if not registered:
            logger.debug("Registration failed for %s", credential.email)
            return

        await vu.pause(1)

        with vu.group("User Login"):
            login = await vu.api.login(credential.email, credential.password)
            if not vu.checks.assert_that("Auth - Login successful", login is not None):
                return
            user = login["user"]
            vu.checks.assert_that("Auth - Token received", bool(user.get("token")))
            vu.checks.assert_that(
                "Auth - User data complete",
                user.get("email") == credential.email
                and user.get("username") == credential.username,
            )
            await vu.pause(1)

            with vu.group("Token Validation"):
                profile = await vu.api.current_user(user["token"])
                vu.checks.check(
                    profile,
                    {
                        "Auth - Token validation successful": lambda r: r.status == 200,
                        "Auth - Profile data matches": lambda r: (
                            json_field(r, "user", "email") == credential.email
                        ),
                    },
                )


async def user_workflow(vu: VirtualUser) -> None:
    """Register, log in, read the profile, then create and favorite an article.

    When authentication fails the rest of the workflow is skipped. A user
    registered before a failed login is left behind on the target.
    """
    with vu.group("User Management"):
        credential = generate_user_credential(vu.rng)
        token = await vu.api.authenticate(credential)
        if token is None:
            logger.debug("User workflow skipped, authentication failed for %s", credential.email)
            return

        with vu.group("Profile Management"):
            profile = await vu.api.current_user(token)
            vu.checks.check(
                profile,
                {
                    "User - Profile access successful": lambda r: r.status == 200,
                    "User - Profile has user data": lambda r: bool(json_field(r, "user", "email")),
                },
            )

        await vu.pause(1)

        with vu.group("Article Management"):
            articles = await vu.client.get(
                endpoints.ARTICLES,
                headers=endpoints.auth_headers(token),
                name="List Articles",
            )
            vu.checks.check(
                articles, {"User - Authenticated articles access": lambda r: r.status == 200}
            )
            await vu.pause(1)

            created = await vu.api.create_article(token, generate_article(vu.rng))
            article_created = vu.checks.check(
                created,
                {
                    "User - Article creation successful": lambda r: r.status in (200, 201),
                    "User - Created article has slug": lambda r: bool(
                        json_field(r, "article", "slug")
                    ),
                },
            )
            if not article_created:
                return

            await vu.pause(1)
            favorite = await vu.api.favorite_article(token, json_field(created, "article", "slug"))
            vu.checks.check(
                favorite,
                {"User - Article favoriting works": lambda r: r.status in (200, 201)},
            )


@scenario(
    name="api",
    title="API Test",
    description="Comprehensive API functionality",
    purpose="API correctness and performance",
    users_summary="10",
    stages=[
        Stage("20s", 10),
        Stage("30s", 10),
        Stage("10s", 0),
    ],
    thresholds={
        "http_req_duration": ["p(95)<3000"],
        "http_req_failed": ["rate<0.1"],
        "group_duration{group:::Public API}": ["p(95)<2000"],
        "group_duration{group:::Authentication}": ["p(95)<3000"],
        "group_duration{group:::User Management}": ["p(95)<3000"],
        "group_duration{group:::User Management::Article Management}": ["p(95)<4000"],
    },
    tags={"testType": "api", "environment": "demo"},
    think_time=(1.0, 3.0),
)
class ApiTest:
    """Comprehensive API functionality."""

    @setup
    async def announce(self, vu: VirtualUser) -> SetupData:
        log_section(
            logger,
            "Starting API test. Coverage:",
            [
                "Public APIs: article listing, pagination, tags",
                "Authentication: registration, login, token validation",
                "User management: profile retrieval",
                "Article management: creation, favoriting",
            ],
        )
        return SetupData()

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        match API_MIX.choose(vu.rng):
            case Behavior.PUBLIC_API:
                await public_api(vu)
            case Behavior.AUTHENTICATION_FLOW:
                await authentication_flow(vu)
            case Behavior.USER_WORKFLOW:
                await user_workflow(vu)

    @teardown
    async def summarize(self, data: SetupData, result: TestResult) -> None:
        log_section(
            logger,
            "API test complete. Review:",
            [
                "Response times by endpoint: which APIs are slowest?",
                "Success rates by functionality: public, authentication, writes",
                "Token validation and authorization enforcement",
                "Response format consistency and required fields",
            ],
        )
