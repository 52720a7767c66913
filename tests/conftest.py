"""Shared test fixtures for the conduitload test suite."""

from __future__ import annotations

import asyncio
import itertools
import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _reset_conduitload_logger() -> Iterator[None]:
    """Drop handlers installed by setup_logging so tests stay independent."""
    yield
    logger = logging.getLogger("conduitload")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Fake Conduit API
# =============================================================================


SEEDED_TAGS = ["welcome", "implementations", "introduction", "codebaseShow"]


@dataclass
class FakeConduit:
    """In-memory stand-in for the RealWorld Conduit API.

    Attributes:
        url: Base URL once the server is started.
        users: Registered users by email.
        articles: Articles, newest last.
        fail_status: When set, every request is answered with this status.
        requests: ``(method, path)`` of every request received.
    """

    url: str = ""
    users: dict[str, dict[str, str]] = field(default_factory=dict)
    articles: list[dict[str, Any]] = field(default_factory=list)
    fail_status: int | None = None
    requests: list[tuple[str, str]] = field(default_factory=list)
    _tokens: itertools.count = field(default_factory=lambda: itertools.count(1))

    def __post_init__(self) -> None:
        for i in range(25):
            self.articles.append(
                {
                    "slug": f"seeded-article-{i}",
                    "title": f"Seeded article {i}",
                    "description": "seed",
                    "body": "seed",
                    "tagList": ["welcome"],
                    "favorited": False,
                    "favoritesCount": 0,
                    "author": {"username": "seed"},
                }
            )

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._middleware])
        app.router.add_post("/api/users", self._register)
        app.router.add_post("/api/users/login", self._login)
        app.router.add_get("/api/user", self._current_user)
        app.router.add_get("/api/articles", self._list_articles)
        app.router.add_post("/api/articles", self._create_article)
        app.router.add_post("/api/articles/{slug}/favorite", self._favorite)
        app.router.add_get("/api/tags", self._tags)
        return app

    @web.middleware
    async def _middleware(
        self,
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        self.requests.append((request.method, request.path))
        if self.fail_status is not None:
            return web.json_response({"errors": {"body": ["unavailable"]}}, status=self.fail_status)
        return await handler(request)

    def _user_for(self, request: web.Request) -> dict[str, str] | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme != "Token" or not token:
            return None
        for user in self.users.values():
            if user["token"] == token:
                return user
        return None

    @staticmethod
    def _public(user: dict[str, str]) -> dict[str, Any]:
        return {
            "user": {
                "email": user["email"],
                "username": user["username"],
                "token": user["token"],
                "bio": None,
                "image": None,
            }
        }

    async def _register(self, request: web.Request) -> web.Response:
        payload = (await request.json()).get("user", {})
        email = payload.get("email")
        if not email or not payload.get("username") or not payload.get("password"):
            return web.json_response({"errors": {"body": ["invalid"]}}, status=422)
        if email in self.users:
            return web.json_response({"errors": {"email": ["has already been taken"]}}, status=422)
        user = {
            "email": email,
            "username": payload["username"],
            "password": payload["password"],
            "token": f"token-{next(self._tokens)}",
        }
        self.users[email] = user
        return web.json_response(self._public(user))

    async def _login(self, request: web.Request) -> web.Response:
        payload = (await request.json()).get("user", {})
        user = self.users.get(payload.get("email", ""))
        if user is None or user["password"] != payload.get("password"):
            return web.json_response(
                {"errors": {"email or password": ["is invalid"]}}, status=401
            )
        return web.json_response(self._public(user))

    async def _current_user(self, request: web.Request) -> web.Response:
        user = self._user_for(request)
        if user is None:
            return web.json_response({"errors": {"token": ["is missing"]}}, status=401)
        return web.json_response(self._public(user))

    async def _list_articles(self, request: web.Request) -> web.Response:
        limit = int(request.query.get("limit", "20"))
        offset = int(request.query.get("offset", "0"))
        newest_first = list(reversed(self.articles))
        return web.json_response(
            {
                "articles": newest_first[offset : offset + limit],
                "articlesCount": len(self.articles),
            }
        )

    async def _create_article(self, request: web.Request) -> web.Response:
        user = self._user_for(request)
        if user is None:
            return web.json_response({"errors": {"token": ["is missing"]}}, status=401)
        payload = (await request.json()).get("article", {})
        article = {
            "slug": f"article-{len(self.articles) + 1}",
            "title": payload.get("title", ""),
            "description": payload.get("description", ""),
            "body": payload.get("body", ""),
            "tagList": payload.get("tagList", []),
            "favorited": False,
            "favoritesCount": 0,
            "author": {"username": user["username"]},
        }
        self.articles.append(article)
        return web.json_response({"article": article}, status=201)

    async def _favorite(self, request: web.Request) -> web.Response:
        if self._user_for(request) is None:
            return web.json_response({"errors": {"token": ["is missing"]}}, status=401)
        slug = request.match_info["slug"]
        for article in self.articles:
            if article["slug"] == slug:
                article["favorited"] = True
                article["favoritesCount"] += 1
                return web.json_response({"article": article})
        return web.json_response({"errors": {"article": ["not found"]}}, status=404)

    async def _tags(self, request: web.Request) -> web.Response:
        return web.json_response({"tags": SEEDED_TAGS})


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def conduit_server() -> AsyncIterator[FakeConduit]:
    """Fake Conduit API on the test's event loop."""
    fake = FakeConduit()
    port = _get_free_port()
    runner = web.AppRunner(fake.app())
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    fake.url = f"http://127.0.0.1:{port}"
    yield fake
    await runner.cleanup()


@pytest.fixture
def sync_conduit_server() -> Iterator[FakeConduit]:
    """Fake Conduit API running in a background thread.

    For tests where the code under test calls ``asyncio.run`` itself and
    blocks the main thread (the runner, the CLI).
    """
    fake = FakeConduit()
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(fake.app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)
    fake.url = f"http://127.0.0.1:{port}"

    yield fake

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def quick_script(tmp_path: Path) -> Path:
    """A short script with no think time, for runner and CLI tests."""
    code = '''\
from __future__ import annotations

from conduitload import SetupData, VirtualUser, iteration, scenario, setup, teardown

EVENTS: list[str] = []


@scenario(
    name="quick",
    title="Quick Check",
    iterations=3,
    thresholds={
        "http_req_failed": ["rate<0.5"],
        "checks": ["rate>0.5"],
    },
    tags={"testType": "quick"},
    think_time=(0.0, 0.0),
)
class QuickScript:
    """Fetch one page of articles per iteration."""

    @setup
    async def prepare(self, vu: VirtualUser) -> SetupData:
        EVENTS.append("setup")
        return SetupData()

    @iteration
    async def run(self, vu: VirtualUser, data: SetupData) -> None:
        await vu.api.fetch_articles(5, 0)

    @teardown
    async def finish(self, data: SetupData, result) -> None:
        EVENTS.append(f"teardown:{result.total_iterations}")
'''
    path = tmp_path / "quick_script.py"
    path.write_text(code)
    return path
