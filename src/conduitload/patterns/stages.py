"""Ramping stages: the declarative VU schedule each script ships with."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from conduitload._internal.errors import ConfigError
from conduitload.patterns.base import LoadPattern, _validate_non_negative

if TYPE_CHECKING:
    from collections.abc import Sequence

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_BARE_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str | float) -> float:
    """Convert ``"2m"``, ``"1m30s"``, ``"500ms"``, ``"45"`` or a number to seconds.

    Raises:
        ConfigError: If the string is not a sequence of ``<number><unit>``
            parts or the result is negative.
    """
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        text = value.strip()
        if not text:
            msg = "duration must not be empty"
            raise ConfigError(msg)
        if _BARE_NUMBER.fullmatch(text):
            return parse_duration(float(text))
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            msg = f"invalid duration {value!r}; expected e.g. '30s', '2m', '1m30s'"
            raise ConfigError(msg)
    _validate_non_negative(seconds, "duration")
    return seconds


def format_duration(seconds: float) -> str:
    """Render seconds the way stage durations are written (``"1m30s"``)."""
    total = round(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    parts = [f"{n}{unit}" for n, unit in ((hours, "h"), (minutes, "m"), (secs, "s")) if n]
    return "".join(parts) or "0s"


@dataclass(frozen=True)
class Stage:
    """Ramp from the previous target to *target* over *duration*.

    Attributes:
        duration: Stage length, as a duration string or seconds.
        target: Virtual users at the end of the stage.
    """

    duration: str | float
    target: int

    @property
    def seconds(self) -> float:
        return parse_duration(self.duration)


class StagesPattern(LoadPattern):
    """Piecewise-linear concurrency defined by ordered stages.

    The run starts at 0 users. Within each stage concurrency moves linearly
    from the previous stage's target to this stage's target, so a stage with
    the same target as its predecessor is a hold.

    Args:
        stages: At least one stage. Targets must be >= 0 and the total
            duration must be > 0.

    Raises:
        ConfigError: If *stages* is empty or a stage is invalid.

    Example::

        pattern = StagesPattern([Stage("2m", 10), Stage("5m", 10), Stage("2m", 0)])
        assert pattern.target_at(60.0) == 5
        assert pattern.target_at(200.0) == 10
    """

    def __init__(self, stages: Sequence[Stage]) -> None:
        if not stages:
            msg = "stages must contain at least one stage"
            raise ConfigError(msg)
        spans: list[tuple[float, float, int, int]] = []
        start = 0.0
        previous_target = 0
        for i, stage in enumerate(stages):
            _validate_non_negative(stage.target, f"stages[{i}] target")
            seconds = stage.seconds
            spans.append((start, seconds, previous_target, stage.target))
            start += seconds
            previous_target = stage.target
        if start <= 0:
            msg = "stages must have a positive total duration"
            raise ConfigError(msg)
        self._stages = tuple(stages)
        self._spans = spans
        self._duration = start

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def target_at(self, elapsed_seconds: float) -> int:
        for start, seconds, from_users, to_users in self._spans:
            if elapsed_seconds < start + seconds:
                if seconds == 0:
                    return to_users
                fraction = max(elapsed_seconds - start, 0.0) / seconds
                return round(from_users + (to_users - from_users) * fraction)
        return self._spans[-1][3]

    def describe(self) -> str:
        steps = " -> ".join(
            f"{stage.target}@{format_duration(stage.seconds)}" for stage in self._stages
        )
        return f"Stages ({format_duration(self._duration)}): {steps}"
