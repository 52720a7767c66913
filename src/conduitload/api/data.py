"""Synthetic users and articles."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

DEFAULT_PASSWORD = "testpassword123"  # noqa: S105


@dataclass(frozen=True)
class UserCredential:
    """A user to register and log in as. Never mutated after creation."""

    username: str
    email: str
    password: str = DEFAULT_PASSWORD

    def as_registration(self) -> dict[str, dict[str, str]]:
        return {
            "user": {
                "username": self.username,
                "email": self.email,
                "password": self.password,
            }
        }


@dataclass(frozen=True)
class ArticleDraft:
    """Content submitted once through article creation."""

    title: str
    description: str
    body: str
    tag_list: tuple[str, ...] = ()

    def as_payload(self) -> dict[str, dict[str, object]]:
        return {
            "article": {
                "title": self.title,
                "description": self.description,
                "body": self.body,
                "tagList": list(self.tag_list),
            }
        }


@dataclass(frozen=True)
class AuthenticatedUser:
    """A provisioned user whose token iterations may share read-only.

    Attributes:
        credential: The credential the user was registered with.
        token: Token obtained at login.
        created_at: Wall-clock time the user was provisioned.
    """

    credential: UserCredential
    token: str
    created_at: float = field(default_factory=time.time)


def _unique_suffix(rng: random.Random | None) -> str:
    # 48 random bits per millisecond keeps names unique within a run without
    # a counter shared between virtual users.
    source = rng or random
    return f"{int(time.time() * 1000)}_{source.getrandbits(48):012x}"


def generate_user_credential(rng: random.Random | None = None) -> UserCredential:
    """Create a fresh, practically unique user credential."""
    suffix = _unique_suffix(rng)
    return UserCredential(
        username=f"testuser_{suffix}",
        email=f"testuser_{suffix}@example.com",
    )


def generate_article(rng: random.Random | None = None) -> ArticleDraft:
    """Create synthetic article content tagged for later identification."""
    source = rng or random
    timestamp = int(time.time() * 1000)
    number = source.randrange(1000)
    created = datetime.now(tz=UTC).isoformat()
    return ArticleDraft(
        title=f"Test Article {timestamp} {number}",
        description=f"This is a test article created at {created}",
        body=(
            "This is the body of test article created during performance testing. "
            f"Timestamp: {timestamp}, Random: {number}"
        ),
        tag_list=("performance", "testing", "conduitload", f"tag{number}"),
    )
