"""Constant pattern: a fixed number of users for a fixed time."""

from __future__ import annotations

from conduitload._internal.errors import ConfigError
from conduitload.patterns.base import LoadPattern, _validate_positive


class ConstantPattern(LoadPattern):
    """Hold *users* virtual users for *duration* seconds.

    Used when a script's stages are overridden from the command line
    (``--users 5 --duration 30``).

    Args:
        users: Number of concurrent virtual users. Must be >= 1.
        duration: Run length in seconds. Must be > 0.

    Raises:
        ConfigError: If an argument is out of range.
    """

    def __init__(self, users: int, duration: float) -> None:
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise ConfigError(msg)
        _validate_positive(duration, "duration")
        self._users = users
        self._duration = float(duration)

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def target_at(self, elapsed_seconds: float) -> int:
        return self._users if elapsed_seconds < self._duration else 0

    def describe(self) -> str:
        return f"Constant: {self._users} users for {self._duration:g}s"
