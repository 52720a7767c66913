"""Typed helpers for the Conduit API with their standard checks attached.

Every helper returns the normalized result whether or not its checks passed;
the caller inspects ``status`` or the returned value and decides whether to
continue. Nothing here raises for a bad response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from conduitload._internal.logging import get_logger
from conduitload.api import endpoints
from conduitload.dsl.checks import json_field

if TYPE_CHECKING:
    from conduitload.api.data import ArticleDraft, UserCredential
    from conduitload.dsl.checks import CheckRecorder
    from conduitload.dsl.http_client import ApiResult, HttpClient

logger = get_logger("api.actions")


def _has_list(result: ApiResult, key: str) -> bool:
    return isinstance(json_field(result, key), list)


class ConduitApi:
    """Conduit API operations bound to one virtual user's client and checks.

    Args:
        client: Open HTTP client for the virtual user.
        checks: Recorder that receives every check outcome.
    """

    def __init__(self, client: HttpClient, checks: CheckRecorder) -> None:
        self.client = client
        self.checks = checks

    async def register(self, credential: UserCredential) -> ApiResult:
        """POST a new user registration."""
        result = await self.client.post(
            endpoints.REGISTER,
            json=credential.as_registration(),
            headers=endpoints.JSON_HEADERS,
            name="Register",
        )
        self.checks.check(
            result,
            {
                "User registration successful": lambda r: r.status == 200,
                "Response contains user data": lambda r: bool(json_field(r, "user", "token")),
            },
        )
        return result

    async def login(self, email: str, password: str) -> dict[str, Any] | None:
        """Log in and return the parsed ``{"user": {...}}`` body.

        Returns:
            The parsed body when the status is 200 and a token is present,
            otherwise None: authentication is unavailable and the caller
            should degrade.
        """
        result = await self.client.post(
            endpoints.LOGIN,
            json={"user": {"email": email, "password": password}},
            headers=endpoints.JSON_HEADERS,
            name="Login",
        )
        ok = self.checks.check(
            result,
            {
                "Login successful": lambda r: r.status == 200,
                "Response contains token": lambda r: bool(json_field(r, "user", "token")),
            },
        )
        if ok:
            return result.json()
        return None

    async def authenticate(self, credential: UserCredential) -> str | None:
        """Register then log in; return the token or None if either step failed."""
        registration = await self.register(credential)
        if registration.status != 200:
            logger.debug("Registration failed for %s: status=%d", credential.email, registration.status)
            return None
        login = await self.login(credential.email, credential.password)
        if login is None:
            logger.debug("Login failed for %s", credential.email)
            return None
        return str(login["user"]["token"])

    async def fetch_articles(
        self,
        limit: int = 20,
        offset: int = 0,
        *,
        token: str | None = None,
    ) -> ApiResult:
        """GET one page of articles."""
        result = await self.client.get(
            endpoints.articles_page(limit, offset),
            headers=endpoints.auth_headers(token) if token else None,
            name="List Articles",
        )
        self.checks.check(
            result,
            {
                "Articles fetched successfully": lambda r: r.status == 200,
                "Response contains articles": lambda r: _has_list(r, "articles"),
            },
        )
        return result

    async def fetch_tags(self) -> ApiResult:
        """GET the tag list."""
        result = await self.client.get(endpoints.TAGS, name="List Tags")
        self.checks.check(
            result,
            {
                "Tags fetched successfully": lambda r: r.status == 200,
                "Response contains tags": lambda r: _has_list(r, "tags"),
            },
        )
        return result

    async def create_article(self, token: str, draft: ArticleDraft) -> ApiResult:
        """POST a new article as the token's owner."""
        result = await self.client.post(
            endpoints.ARTICLES,
            json=draft.as_payload(),
            headers=endpoints.auth_headers(token),
            name="Create Article",
        )
        self.checks.check(
            result,
            {
                "Article created successfully": lambda r: r.status in (200, 201),
                "Response contains article": lambda r: bool(json_field(r, "article", "slug")),
            },
        )
        return result

    async def current_user(self, token: str) -> ApiResult:
        """GET the authenticated user's own profile. Callers attach checks."""
        return await self.client.get(
            endpoints.CURRENT_USER,
            headers=endpoints.auth_headers(token),
            name="Current User",
        )

    async def favorite_article(self, token: str, slug: str) -> ApiResult:
        """POST a favorite for *slug*. Callers attach checks."""
        return await self.client.post(
            endpoints.favorite_article(slug),
            headers=endpoints.auth_headers(token),
            name="Favorite Article",
        )
