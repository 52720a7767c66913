"""Decorators for defining load test scripts."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, TypeVar

from conduitload._internal.errors import ScenarioError
from conduitload.dsl.scenario import ScenarioDefinition
from conduitload.metrics.thresholds import parse_thresholds
from conduitload.patterns.stages import StagesPattern

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from conduitload._internal.types import Tags, ThinkTime, ThresholdSpec
    from conduitload.patterns.stages import Stage

F = TypeVar("F", bound="Callable[..., object]")

# Marker attribute names set on decorated methods.
_ITERATION_MARKER = "_conduitload_iteration"
_SETUP_MARKER = "_conduitload_setup"
_TEARDOWN_MARKER = "_conduitload_teardown"


def _find_hook(cls: type, marker: str, kind: str) -> Callable[..., object] | None:
    found: Callable[..., object] | None = None
    for attr_name, attr in vars(cls).items():
        if attr_name.startswith("__") or not getattr(attr, marker, False):
            continue
        if not inspect.iscoroutinefunction(attr):
            msg = f"{kind} method {cls.__name__}.{attr_name} must be an async function"
            raise ScenarioError(msg)
        if found is not None:
            msg = f"Scenario {cls.__name__} has multiple @{kind} methods"
            raise ScenarioError(msg)
        found = attr
    return found


def scenario(
    *,
    name: str,
    stages: Sequence[Stage] = (),
    iterations: int | None = None,
    thresholds: ThresholdSpec | None = None,
    tags: Tags | None = None,
    think_time: ThinkTime = (1.0, 3.0),
    title: str = "",
    description: str = "",
    purpose: str = "",
    users_summary: str = "",
    cloud_name: str | None = None,
    base_url: str | None = None,
) -> Callable[[type], ScenarioDefinition]:
    """Decorate a class as a load test script.

    The class must define exactly one ``@iteration`` coroutine and may define
    one ``@setup`` and one ``@teardown`` coroutine.

    Args:
        name: Short name used to run the script from the command line.
        stages: Ramp stages. Mutually exclusive with *iterations*.
        iterations: Run a single virtual user for this many iterations.
        thresholds: Pass/fail expressions, e.g.
            ``{"http_req_duration": ["p(95)<2000"]}``.
        tags: Tags attached to every metric, e.g. ``{"testType": "load"}``.
        think_time: Pause range (min, max) in seconds after each iteration.
        title: Display title. Defaults to *name*.
        description: One-line description for listings.
        purpose: What the script is meant to reveal.
        users_summary: Human summary of the virtual user range.
        cloud_name: Name used in exported summaries for cloud reporting.
        base_url: Target override; the configured base URL is used if None.

    Returns:
        A class decorator producing a ``ScenarioDefinition``.

    Raises:
        ScenarioError: If the class has no ``@iteration`` method, hooks are
            not coroutines, or neither/both of *stages* and *iterations*
            are given.
        ConfigError: If a stage or threshold expression is malformed.
    """
    if bool(stages) == (iterations is not None):
        msg = f"Scenario {name!r} must define exactly one of stages or iterations"
        raise ScenarioError(msg)
    if iterations is not None and iterations < 1:
        msg = f"iterations must be >= 1, got {iterations}"
        raise ScenarioError(msg)
    low, high = think_time
    if low < 0 or high < low:
        msg = f"think_time must satisfy 0 <= min <= max, got {think_time}"
        raise ScenarioError(msg)

    if stages:
        StagesPattern(stages)
    parsed = parse_thresholds(thresholds or {})

    def decorator(cls: type) -> ScenarioDefinition:
        iteration_func = _find_hook(cls, _ITERATION_MARKER, "iteration")
        if iteration_func is None:
            msg = f"Scenario {cls.__name__} has no @iteration method"
            raise ScenarioError(msg)

        return ScenarioDefinition(
            name=name,
            cls=cls,
            iteration_func=iteration_func,  # type: ignore[arg-type]
            stages=list(stages),
            iterations=iterations,
            thresholds=dict(thresholds or {}),
            tags=dict(tags or {}),
            think_time=think_time,
            setup_func=_find_hook(cls, _SETUP_MARKER, "setup"),  # type: ignore[arg-type]
            teardown_func=_find_hook(cls, _TEARDOWN_MARKER, "teardown"),  # type: ignore[arg-type]
            title=title or name,
            description=description or (inspect.getdoc(cls) or "").split("\n", 1)[0],
            purpose=purpose,
            users_summary=users_summary,
            cloud_name=cloud_name,
            base_url=base_url,
            parsed_thresholds=parsed,
        )

    return decorator


def iteration(func: F) -> F:
    """Mark the coroutine run once per virtual-user iteration."""
    setattr(func, _ITERATION_MARKER, True)
    return func


def setup(func: F) -> F:
    """Mark the coroutine run once before the timed run.

    It receives a setup-only ``VirtualUser`` and returns ``SetupData``.
    """
    setattr(func, _SETUP_MARKER, True)
    return func


def teardown(func: F) -> F:
    """Mark the coroutine run once after the timed run.

    It receives the ``SetupData`` and the ``TestResult``. Output only; it
    cannot change the verdict.
    """
    setattr(func, _TEARDOWN_MARKER, True)
    return func
