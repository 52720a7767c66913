"""Fixed endpoint paths of the Conduit API."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

if TYPE_CHECKING:
    from conduitload._internal.types import Headers

# Public endpoints
ARTICLES = "/api/articles"
TAGS = "/api/tags"

# Authentication
LOGIN = "/api/users/login"
REGISTER = "/api/users"

# Current user
CURRENT_USER = "/api/user"

JSON_HEADERS: Headers = {"Content-Type": "application/json"}


def articles_page(limit: int, offset: int) -> str:
    """Article listing path with pagination parameters."""
    return f"{ARTICLES}?{urlencode({'limit': limit, 'offset': offset})}"


def favorite_article(slug: str) -> str:
    return f"{ARTICLES}/{quote(slug, safe='')}/favorite"


def auth_headers(token: str) -> Headers:
    """Headers for an authenticated call (``Authorization: Token <value>``)."""
    return {"Authorization": f"Token {token}", **JSON_HEADERS}
