"""Abstract base class for virtual user concurrency patterns."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from conduitload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """How the number of virtual users changes over a run.

    A pattern owns its total duration. Subclasses implement
    :meth:`target_at`; :meth:`iter_concurrency` samples it at a fixed tick.

    Example::

        pattern = StagesPattern([Stage("1m", 10), Stage("30s", 0)])
        for elapsed, users in pattern.iter_concurrency():
            print(f"t={elapsed:.0f}s -> {users} users")
    """

    @property
    @abstractmethod
    def duration_seconds(self) -> float:
        """Total run length in seconds."""

    @abstractmethod
    def target_at(self, elapsed_seconds: float) -> int:
        """Return the target number of virtual users at *elapsed_seconds*."""

    @abstractmethod
    def describe(self) -> str:
        """Return a short human-readable summary for logs and reports."""

    @property
    def max_users(self) -> int:
        """Highest concurrency the pattern reaches, sampled once per second."""
        return max(users for _elapsed, users in self.iter_concurrency())

    def iter_concurrency(self, tick_interval: float = 1.0) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_concurrency)`` at each tick.

        The first tick is at 0 and the last one at exactly
        :attr:`duration_seconds`.

        Args:
            tick_interval: Seconds between ticks. Defaults to 1.0.

        Raises:
            ConfigError: If *tick_interval* is not positive.
        """
        _validate_positive(tick_interval, "tick_interval")
        duration = self.duration_seconds
        ticks = math.ceil(duration / tick_interval)
        for i in range(ticks):
            elapsed = i * tick_interval
            yield (elapsed, self.target_at(elapsed))
        yield (duration, self.target_at(duration))


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is not strictly positive."""
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* is negative."""
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigError(msg)
