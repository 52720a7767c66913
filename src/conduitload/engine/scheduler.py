"""Turns a LoadPattern's concurrency curve into per-tick scale commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from conduitload.patterns.base import LoadPattern


@dataclass(frozen=True)
class ScaleCommand:
    """Bring the running virtual users to ``target_concurrency``.

    Attributes:
        elapsed_seconds: Offset from the start of the run at which to apply it.
        target_concurrency: Desired number of running virtual users.
    """

    elapsed_seconds: float
    target_concurrency: int


class Scheduler:
    """Emits one ``ScaleCommand`` per tick of a pattern.

    Args:
        pattern: The ramp schedule to follow. It owns the run length.
        tick_interval: Seconds between concurrency adjustments.
    """

    def __init__(self, pattern: LoadPattern, tick_interval: float = 1.0) -> None:
        self._pattern = pattern
        self._tick_interval = tick_interval

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield the target for each tick; the last one is the end of the run."""
        for elapsed, target in self._pattern.iter_concurrency(self._tick_interval):
            yield ScaleCommand(elapsed_seconds=elapsed, target_concurrency=target)
