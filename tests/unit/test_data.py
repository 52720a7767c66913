"""Tests for synthetic data and endpoint paths."""

from __future__ import annotations

import random

from conduitload.api import endpoints
from conduitload.api.data import (
    DEFAULT_PASSWORD,
    UserCredential,
    generate_article,
    generate_user_credential,
)


class TestUserCredential:
    def test_generated_credentials_are_unique(self):
        rng = random.Random(3)
        credentials = [generate_user_credential(rng) for _ in range(10_000)]
        assert len({c.username for c in credentials}) == 10_000
        assert len({c.email for c in credentials}) == 10_000

    def test_unique_without_shared_rng(self):
        a = generate_user_credential()
        b = generate_user_credential()
        assert a.email != b.email

    def test_shape(self):
        credential = generate_user_credential(random.Random(1))
        assert credential.username.startswith("testuser_")
        assert credential.email == f"{credential.username}@example.com"
        assert credential.password == DEFAULT_PASSWORD

    def test_payloads(self):
        credential = UserCredential("u1", "u1@example.com", "pw123456")
        assert credential.as_registration() == {
            "user": {"username": "u1", "email": "u1@example.com", "password": "pw123456"}
        }


class TestArticleDraft:
    def test_payload_shape(self):
        draft = generate_article(random.Random(5))
        payload = draft.as_payload()["article"]
        assert payload["title"].startswith("Test Article ")
        assert "performance testing" in payload["body"]
        assert payload["tagList"][:3] == ["performance", "testing", "conduitload"]
        assert payload["tagList"][3].startswith("tag")


class TestEndpoints:
    def test_articles_page(self):
        assert endpoints.articles_page(10, 20) == "/api/articles?limit=10&offset=20"

    def test_favorite_quotes_slug(self):
        assert endpoints.favorite_article("a b/c") == "/api/articles/a%20b%2Fc/favorite"

    def test_auth_headers(self):
        headers = endpoints.auth_headers("abc")
        assert headers["Authorization"] == "Token abc"
        assert headers["Content-Type"] == "application/json"
