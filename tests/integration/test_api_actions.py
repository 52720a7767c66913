"""ConduitApi helpers against the fake Conduit server."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from conduitload._internal.logging import get_logger
from conduitload.api.actions import ConduitApi
from conduitload.api.data import UserCredential, generate_article
from conduitload.dsl.checks import CheckMetric, CheckRecorder, json_field
from conduitload.dsl.context import VirtualUser
from conduitload.dsl.http_client import HttpClient
from conduitload.dsl.scenario import SetupData
from conduitload.scenarios import api, common

if TYPE_CHECKING:
    from tests.conftest import FakeConduit

SETUP_LOGGER = get_logger("tests.setup")


async def _no_sleep(seconds: float) -> None:
    return None


class TestConduitApi:
    async def test_register_login_profile_create_favorite(self, conduit_server: FakeConduit):
        checks: list[CheckMetric] = []
        credential = UserCredential("u1", "u1@example.com", "pw123456")
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder(checks.append))

            registered = await conduit.register(credential)
            assert registered.status == 200

            login = await conduit.login("u1@example.com", "pw123456")
            assert login is not None
            token = login["user"]["token"]
            assert token

            profile = await conduit.current_user(token)
            assert json_field(profile, "user", "username") == "u1"

            created = await conduit.create_article(token, generate_article(random.Random(2)))
            assert created.status == 201
            slug = json_field(created, "article", "slug")

            favorite = await conduit.favorite_article(token, slug)
            assert favorite.status == 200
            assert json_field(favorite, "article", "favorited") is True

        assert all(c.passed for c in checks)
        assert {c.name for c in checks} >= {
            "User registration successful",
            "Response contains user data",
            "Login successful",
            "Response contains token",
            "Article created successfully",
            "Response contains article",
        }

    async def test_wrong_password_returns_none(self, conduit_server: FakeConduit):
        checks: list[CheckMetric] = []
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder(checks.append))
            await conduit.register(UserCredential("u2", "u2@example.com", "right"))
            assert await conduit.login("u2@example.com", "wrong") is None
        assert [c.passed for c in checks if c.name == "Login successful"] == [False]

    async def test_authenticate(self, conduit_server: FakeConduit):
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder())
            credential = UserCredential("u3", "u3@example.com", "pw")
            token = await conduit.authenticate(credential)
            assert token is not None
            # Registering the same email twice is rejected.
            assert await conduit.authenticate(credential) is None

    async def test_fetch_articles_and_tags(self, conduit_server: FakeConduit):
        checks: list[CheckMetric] = []
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder(checks.append))
            page = await conduit.fetch_articles(10, 20)
            tags = await conduit.fetch_tags()
        assert len(json_field(page, "articles")) == 5
        assert json_field(page, "articlesCount") == 25
        assert "welcome" in json_field(tags, "tags")
        assert all(c.passed for c in checks)

    async def test_single_article_page(self, conduit_server: FakeConduit):
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder())
            page = await conduit.fetch_articles(1, 0)
        articles = json_field(page, "articles")
        assert isinstance(articles, list)
        assert len(articles) <= 1

    async def test_server_errors_fail_checks(self, conduit_server: FakeConduit):
        conduit_server.fail_status = 500
        checks: list[CheckMetric] = []
        async with HttpClient(conduit_server.url) as client:
            conduit = ConduitApi(client, CheckRecorder(checks.append))
            await conduit.fetch_articles()
            assert await conduit.authenticate(UserCredential("u4", "u4@example.com")) is None
        assert checks
        assert not any(c.passed for c in checks)


class TestSetupHelpers:
    async def test_provision_and_seed(self, conduit_server: FakeConduit):
        async with HttpClient(conduit_server.url) as client:
            vu = VirtualUser(0, client, CheckRecorder(), sleep=_no_sleep)
            users = await common.provision_users(vu, 3, 0.5, logger=SETUP_LOGGER)
            assert len(users) == 3
            assert len({u.token for u in users}) == 3

            created = await common.seed_articles(vu, users, per_user=2, max_users=2)
            assert created == 4
            assert len(conduit_server.articles) == 29

            data = SetupData(users=users)
            assert common.pick_user(vu, data) in users
            assert common.pick_user(vu, SetupData()) is None

    async def test_provision_skips_failures(self, conduit_server: FakeConduit):
        conduit_server.fail_status = 503
        async with HttpClient(conduit_server.url) as client:
            vu = VirtualUser(0, client, CheckRecorder(), sleep=_no_sleep)
            users = await common.provision_users(vu, 2, logger=SETUP_LOGGER)
        assert users == ()


class TestUserWorkflow:
    async def test_full_workflow_favorites_the_created_article(self, conduit_server: FakeConduit):
        checks: list[CheckMetric] = []
        async with HttpClient(conduit_server.url) as client:
            vu = VirtualUser(
                1, client, CheckRecorder(checks.append), rng=random.Random(4), sleep=_no_sleep
            )
            await api.user_workflow(vu)

        assert conduit_server.requests == [
            ("POST", "/api/users"),
            ("POST", "/api/users/login"),
            ("GET", "/api/user"),
            ("GET", "/api/articles"),
            ("POST", "/api/articles"),
            ("POST", "/api/articles/article-26/favorite"),
        ]
        [favorited] = [a for a in conduit_server.articles if a["favorited"]]
        assert favorited["slug"] == "article-26"
        usernames = {u["username"] for u in conduit_server.users.values()}
        assert favorited["author"]["username"] in usernames
        assert all(c.passed for c in checks)
        assert {c.name for c in checks} >= {
            "User - Profile access successful",
            "User - Article creation successful",
            "User - Created article has slug",
            "User - Article favoriting works",
        }
