"""Scenario definition dataclasses."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from conduitload.patterns.stages import StagesPattern, format_duration

if TYPE_CHECKING:
    from conduitload._internal.types import Tags, ThinkTime, ThresholdSpec
    from conduitload.api.data import AuthenticatedUser
    from conduitload.dsl.context import VirtualUser
    from conduitload.metrics.models import TestResult
    from conduitload.metrics.thresholds import Threshold
    from conduitload.patterns.base import LoadPattern
    from conduitload.patterns.stages import Stage


class IterationMethod(Protocol):
    """Unbound ``async def run(self, vu, data) -> None``."""

    __name__: str

    async def __call__(self, instance: object, vu: VirtualUser, data: SetupData) -> None: ...


class SetupMethod(Protocol):
    """Unbound ``async def setup(self, vu) -> SetupData``."""

    __name__: str

    async def __call__(self, instance: object, vu: VirtualUser) -> SetupData: ...


class TeardownMethod(Protocol):
    """Unbound ``async def teardown(self, data, result) -> None``."""

    __name__: str

    async def __call__(self, instance: object, data: SetupData, result: TestResult) -> None: ...


@dataclass(frozen=True)
class SetupData:
    """What setup hands to every iteration. Read-only for virtual users.

    Attributes:
        users: Users provisioned before the timed run, possibly empty.
        started_at: Wall-clock time (``time.time()``) captured in setup.
    """

    users: tuple[AuthenticatedUser, ...] = ()
    started_at: float = field(default_factory=time.time)

    @property
    def token(self) -> str | None:
        """Token of the first provisioned user, if any."""
        return self.users[0].token if self.users else None


@dataclass
class ScenarioDefinition:
    """Complete definition of a load test script.

    Created by the ``@scenario`` class decorator.

    Attributes:
        name: Short name used on the command line (``load``, ``soak``, ...).
        cls: The decorated class.
        iteration_func: Coroutine run once per virtual-user iteration.
        stages: Ramp stages; empty for iteration-count scripts.
        iterations: Fixed iteration count run by a single user, or None.
        thresholds: Metric key -> threshold expressions.
        tags: Tags stamped on every metric of the run.
        think_time: Pause range after each iteration, in seconds.
        setup_func: Optional coroutine run once before the timed run.
        teardown_func: Optional coroutine run once after it.
        title: Display title.
        description: One-line description.
        purpose: What the script is for.
        users_summary: Human description of the VU range.
        cloud_name: Name used when exporting to cloud reporting.
        base_url: Overrides the configured base URL when set.
        parsed_thresholds: Thresholds parsed at definition time.
    """

    name: str
    cls: type
    iteration_func: IterationMethod
    stages: list[Stage] = field(default_factory=list)
    iterations: int | None = None
    thresholds: ThresholdSpec = field(default_factory=dict)
    tags: Tags = field(default_factory=dict)
    think_time: ThinkTime = (1.0, 3.0)
    setup_func: SetupMethod | None = None
    teardown_func: TeardownMethod | None = None
    title: str = ""
    description: str = ""
    purpose: str = ""
    users_summary: str = ""
    cloud_name: str | None = None
    base_url: str | None = None
    parsed_thresholds: list[Threshold] = field(default_factory=list)

    def pattern(self) -> LoadPattern | None:
        """The ramp schedule, or None for iteration-count scripts."""
        if not self.stages:
            return None
        return StagesPattern(self.stages)

    @property
    def duration_label(self) -> str:
        """Approximate run length for listings."""
        pattern = self.pattern()
        if pattern is None:
            return f"{self.iterations} iterations"
        return f"~{format_duration(pattern.duration_seconds)}"
