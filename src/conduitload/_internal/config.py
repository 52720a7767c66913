"""Configuration loading for conduitload."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from conduitload._internal.errors import ConfigError

if TYPE_CHECKING:
    from conduitload._internal.types import Headers

DEFAULT_BASE_URL = "https://demo.realworld.show"


@dataclass(frozen=True)
class ConduitLoadConfig:
    """Global conduitload configuration.

    Attributes:
        base_url: Base URL of the Conduit API under test.
        default_headers: Headers applied to every request.
        connection_pool_size: Maximum open connections per virtual user session.
        request_timeout: Per-request timeout in seconds.
        cloud_project_id: Optional cloud reporting project. Only copied into
            exported summaries; local runs ignore it.
    """

    base_url: str = DEFAULT_BASE_URL
    default_headers: Headers = field(default_factory=dict)
    connection_pool_size: int = 100
    request_timeout: float = 30.0
    cloud_project_id: int | None = None


def load_config() -> ConduitLoadConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        CONDUITLOAD_BASE_URL: Target API (default: the public RealWorld demo).
        CONDUITLOAD_POOL_SIZE: Connection pool size (default: 100).
        CONDUITLOAD_TIMEOUT: Request timeout in seconds (default: 30.0).
        CONDUITLOAD_CLOUD_PROJECT_ID: Optional integer project identifier.

    Returns:
        Populated ConduitLoadConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    pool_size_str = os.environ.get("CONDUITLOAD_POOL_SIZE", "100")
    timeout_str = os.environ.get("CONDUITLOAD_TIMEOUT", "30.0")
    project_str = os.environ.get("CONDUITLOAD_CLOUD_PROJECT_ID", "").strip()

    try:
        pool_size = int(pool_size_str)
    except ValueError:
        msg = f"CONDUITLOAD_POOL_SIZE must be an integer, got: {pool_size_str!r}"
        raise ConfigError(msg) from None

    if pool_size < 1:
        msg = f"CONDUITLOAD_POOL_SIZE must be >= 1, got: {pool_size}"
        raise ConfigError(msg)

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"CONDUITLOAD_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"CONDUITLOAD_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    project_id: int | None = None
    if project_str:
        try:
            project_id = int(project_str)
        except ValueError:
            msg = f"CONDUITLOAD_CLOUD_PROJECT_ID must be an integer, got: {project_str!r}"
            raise ConfigError(msg) from None

    base_url = os.environ.get("CONDUITLOAD_BASE_URL", "").strip() or DEFAULT_BASE_URL

    return ConduitLoadConfig(
        base_url=base_url.rstrip("/"),
        connection_pool_size=pool_size,
        request_timeout=timeout,
        cloud_project_id=project_id,
    )
