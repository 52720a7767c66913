"""Weighted behavior selection from a single uniform draw.

Each script hardcodes a partition of [0, 1) as an ordered list of
``(upper_bound, behavior)`` pairs, e.g.::

    LOAD_MIX = WeightedDispatcher([
        (0.6, Behavior.BROWSE),
        (0.8, Behavior.BROWSE_WITH_TAGS),
        (1.0, Behavior.AUTHENTICATED_SESSION),
    ])

A draw of 0.65 selects ``BROWSE_WITH_TAGS``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from conduitload._internal.errors import ScenarioError

if TYPE_CHECKING:
    import random
    from collections.abc import Sequence

B = TypeVar("B")


class WeightedDispatcher(Generic[B]):
    """Map a uniform draw in [0, 1) onto a fixed partition of behaviors.

    Args:
        partition: ``(upper_bound, behavior)`` pairs. Bounds must be strictly
            increasing, lie in (0, 1] and the last one must be 1.0.

    Raises:
        ScenarioError: If the partition is empty or malformed.
    """

    def __init__(self, partition: Sequence[tuple[float, B]]) -> None:
        if not partition:
            msg = "partition must contain at least one (upper_bound, behavior) entry"
            raise ScenarioError(msg)
        previous = 0.0
        for i, (bound, _behavior) in enumerate(partition):
            if not previous < bound <= 1.0:
                msg = (
                    f"partition[{i}] upper bound must be in ({previous}, 1.0], got {bound}"
                )
                raise ScenarioError(msg)
            previous = bound
        if previous != 1.0:
            msg = f"partition must end at 1.0, ends at {previous}"
            raise ScenarioError(msg)
        self._partition = tuple(partition)

    @property
    def partition(self) -> tuple[tuple[float, B], ...]:
        """The ordered ``(upper_bound, behavior)`` pairs."""
        return self._partition

    @property
    def behaviors(self) -> set[B]:
        """Behaviors reachable by some draw."""
        return {behavior for _bound, behavior in self._partition}

    def select(self, draw: float) -> B:
        """Return the behavior whose range contains *draw*.

        Raises:
            ValueError: If *draw* is outside [0, 1).
        """
        if not 0.0 <= draw < 1.0:
            msg = f"draw must be in [0, 1), got {draw}"
            raise ValueError(msg)
        for bound, behavior in self._partition:
            if draw < bound:
                return behavior
        # Unreachable: the last bound is 1.0 and draw < 1.0.
        return self._partition[-1][1]

    def choose(self, rng: random.Random) -> B:
        """Draw once from *rng* and select a behavior."""
        return self.select(rng.random())

    def probability(self, behavior: B) -> float:
        """Share of the interval assigned to *behavior*."""
        total = 0.0
        lower = 0.0
        for bound, candidate in self._partition:
            if candidate == behavior:
                total += bound - lower
            lower = bound
        return total

    def __repr__(self) -> str:
        pairs = ", ".join(f"<{bound}: {behavior}" for bound, behavior in self._partition)
        return f"WeightedDispatcher({pairs})"
