"""Per-virtual-user execution context handed to scenario code."""

from __future__ import annotations

import asyncio
import contextlib
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from conduitload.api.actions import ConduitApi

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from conduitload.dsl.checks import CheckRecorder
    from conduitload.dsl.http_client import HttpClient


@dataclass(frozen=True)
class GroupMetric:
    """Duration of one pass through a named group.

    Attributes:
        timestamp: Monotonic time the group was entered.
        path: Nested group path, e.g. ``"::User Management::Article Management"``.
        duration_ms: Time spent inside the group in milliseconds.
    """

    timestamp: float
    path: str
    duration_ms: float


def _noop_group_callback(metric: GroupMetric) -> None:
    """Default no-op group callback."""


class VirtualUser:
    """Everything one virtual user needs to run an iteration.

    State lives here rather than at module level so that concurrent virtual
    users never share counters. Nothing on this object is shared between
    users except read-only setup data passed alongside it.

    Attributes:
        vu_id: Identifier of the virtual user (0 for setup/teardown).
        iteration: Number of iterations this user has started, counting the
            current one.
        rng: The user's own random source.
        client: Open HTTP client.
        checks: Check recorder for this user.
        api: Conduit API helpers bound to ``client`` and ``checks``.
    """

    def __init__(
        self,
        vu_id: int,
        client: HttpClient,
        checks: CheckRecorder,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        group_callback: Callable[[GroupMetric], None] | None = None,
    ) -> None:
        self.vu_id = vu_id
        self.iteration = 0
        self.rng = rng or random.Random()  # noqa: S311
        self.client = client
        self.checks = checks
        self.api = ConduitApi(client, checks)
        self._sleep = sleep
        self._group_callback = group_callback or _noop_group_callback
        self._groups: list[str] = []

    @property
    def group_path(self) -> str:
        """Current nested group path, "" outside any group."""
        return "".join(f"::{name}" for name in self._groups)

    async def pause(self, low: float, high: float | None = None) -> None:
        """Think time: sleep *low* seconds, or uniformly in [low, high]."""
        seconds = low if high is None else self.rng.uniform(low, high)
        if seconds > 0:
            await self._sleep(seconds)

    def chance(self, probability: float) -> bool:
        """Return True with the given probability."""
        return self.rng.random() < probability

    @contextlib.contextmanager
    def group(self, name: str) -> Iterator[None]:
        """Tag checks and requests made inside the block with a group path.

        Groups nest; the duration of each is recorded on exit, including
        when the block returns early.
        """
        self._groups.append(name)
        self._apply_group()
        start = time.monotonic()
        path = self.group_path
        try:
            yield
        finally:
            duration_ms = (time.monotonic() - start) * 1000
            self._groups.pop()
            self._apply_group()
            self._group_callback(
                GroupMetric(timestamp=start, path=path, duration_ms=duration_ms)
            )

    def _apply_group(self) -> None:
        path = self.group_path
        self.client.group = path
        self.checks.group = path
