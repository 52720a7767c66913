"""Setup and teardown helpers shared by the bundled scripts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from conduitload.api.data import AuthenticatedUser, generate_article, generate_user_credential

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable, Sequence

    from conduitload.dsl.context import VirtualUser
    from conduitload.dsl.scenario import SetupData


async def provision_users(
    vu: VirtualUser,
    count: int,
    pause: float = 0.0,
    *,
    logger: logging.Logger,
) -> tuple[AuthenticatedUser, ...]:
    """Register and log in *count* fresh users, one at a time.

    Users that fail to register or log in are skipped with a warning, so
    the result may be shorter than *count* or empty.

    Args:
        vu: Setup virtual user.
        count: Users to attempt.
        pause: Seconds to wait after each attempt.
        logger: Logger of the calling script.
    """
    users: list[AuthenticatedUser] = []
    for i in range(count):
        credential = generate_user_credential(vu.rng)
        token = await vu.api.authenticate(credential)
        if token is None:
            logger.warning("Could not provision user %d/%d (%s)", i + 1, count, credential.email)
        else:
            users.append(AuthenticatedUser(credential=credential, token=token))
        await vu.pause(pause)
    return tuple(users)


async def seed_articles(
    vu: VirtualUser,
    users: Sequence[AuthenticatedUser],
    per_user: int,
    max_users: int,
    pause: float = 0.0,
) -> int:
    """Create *per_user* articles for each of the first *max_users* users.

    Returns:
        Number of articles the API accepted.
    """
    created = 0
    for user in users[:max_users]:
        for _ in range(per_user):
            result = await vu.api.create_article(user.token, generate_article(vu.rng))
            if result.status in (200, 201):
                created += 1
            await vu.pause(pause)
    return created


def pick_user(vu: VirtualUser, data: SetupData) -> AuthenticatedUser | None:
    """A random provisioned user, or None when setup produced none."""
    if not data.users:
        return None
    return vu.rng.choice(data.users)


def log_section(logger: logging.Logger, title: str, lines: Iterable[str] = ()) -> None:
    """Log a titled block of indented lines at INFO."""
    logger.info(title)
    for line in lines:
        logger.info("  %s", line)
