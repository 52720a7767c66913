"""Pass/fail thresholds over aggregate run metrics.

A threshold set maps a metric key to expressions::

    {
        "http_req_duration": ["p(95)<2000"],
        "http_req_failed": ["rate<0.1"],
        "http_reqs": ["rate>10"],
        "checks{scenario:soak}": ["rate>0.95"],
        "group_duration{group:::Public API}": ["p(95)<2000"],
    }

Keys may carry ``{tag:value,...}`` filters; only samples whose tags match
every filter are aggregated. The first colon separates tag from value, so
``group:::Public API`` filters on the group path ``::Public API``.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

import numpy as np

from conduitload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from conduitload._internal.types import ThresholdSpec
    from conduitload.metrics.collector import MetricCollector


class MetricKind(Enum):
    """How a built-in metric aggregates."""

    TREND = auto()
    RATE = auto()
    COUNTER = auto()


METRICS: dict[str, MetricKind] = {
    "http_req_duration": MetricKind.TREND,
    "http_req_failed": MetricKind.RATE,
    "http_reqs": MetricKind.COUNTER,
    "checks": MetricKind.RATE,
    "group_duration": MetricKind.TREND,
    "iterations": MetricKind.COUNTER,
    "iteration_duration": MetricKind.TREND,
}

_ALLOWED_AGGREGATIONS: dict[MetricKind, frozenset[str]] = {
    MetricKind.TREND: frozenset({"p", "avg", "min", "max", "med", "count"}),
    MetricKind.RATE: frozenset({"rate", "count"}),
    MetricKind.COUNTER: frozenset({"rate", "count"}),
}

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_KEY_RE = re.compile(r"^(?P<metric>\w+)(?:\{(?P<tags>.*)\})?$")
_EXPR_RE = re.compile(
    r"^\s*(?:p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\)|(?P<agg>avg|min|max|med|rate|count))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)\s*$"
)


@dataclass(frozen=True)
class Threshold:
    """One parsed threshold expression.

    Attributes:
        key: Metric key as written, tags included.
        metric: Built-in metric name.
        tags: Tag filters as ``(tag, value)`` pairs.
        expression: Expression as written, e.g. ``"p(95)<2000"``.
        aggregation: ``"p"``, ``"avg"``, ``"min"``, ``"max"``, ``"med"``,
            ``"rate"`` or ``"count"``.
        percentile: Percentile for ``"p"`` aggregations, else None.
        op: Comparison operator.
        value: Right-hand side of the comparison.
    """

    key: str
    metric: str
    tags: tuple[tuple[str, str], ...]
    expression: str
    aggregation: str
    percentile: float | None
    op: str
    value: float

    @property
    def kind(self) -> MetricKind:
        return METRICS[self.metric]


@dataclass(frozen=True)
class ThresholdResult:
    """Verdict for one threshold.

    Attributes:
        threshold: The threshold evaluated.
        observed: Aggregated value, None when no sample matched.
        passed: Whether the comparison held. Thresholds without samples pass.
    """

    threshold: Threshold
    observed: float | None
    passed: bool

    def describe(self) -> str:
        observed = "no data" if self.observed is None else f"{self.observed:.4g}"
        return f"{self.threshold.key}: {self.threshold.expression} (observed {observed})"


def _parse_tags(raw: str, key: str) -> tuple[tuple[str, str], ...]:
    pairs: list[tuple[str, str]] = []
    for part in raw.split(","):
        tag, sep, value = part.partition(":")
        if not sep or not tag.strip():
            msg = f"invalid tag filter {part!r} in threshold key {key!r}; expected tag:value"
            raise ConfigError(msg)
        pairs.append((tag.strip(), value.strip()))
    return tuple(pairs)


def parse_threshold(key: str, expression: str) -> Threshold:
    """Parse one ``key`` / ``expression`` pair.

    Raises:
        ConfigError: If the metric is unknown, the expression is malformed,
            or the aggregation does not apply to the metric's kind.
    """
    key_match = _KEY_RE.match(key.strip())
    if key_match is None:
        msg = f"invalid threshold key {key!r}"
        raise ConfigError(msg)
    metric = key_match.group("metric")
    if metric not in METRICS:
        msg = f"unknown metric {metric!r} in threshold key {key!r}. Known: {', '.join(METRICS)}"
        raise ConfigError(msg)
    tags = _parse_tags(key_match.group("tags"), key) if key_match.group("tags") else ()

    expr_match = _EXPR_RE.match(expression)
    if expr_match is None:
        msg = f"invalid threshold expression {expression!r} for {key!r}"
        raise ConfigError(msg)
    pct = expr_match.group("pct")
    aggregation = "p" if pct is not None else expr_match.group("agg")
    kind = METRICS[metric]
    if aggregation not in _ALLOWED_AGGREGATIONS[kind]:
        msg = f"aggregation {aggregation!r} does not apply to {kind.name.lower()} metric {metric!r}"
        raise ConfigError(msg)
    percentile = float(pct) if pct is not None else None
    if percentile is not None and not 0.0 <= percentile <= 100.0:
        msg = f"percentile must be within 0..100, got {percentile} in {expression!r}"
        raise ConfigError(msg)

    return Threshold(
        key=key,
        metric=metric,
        tags=tags,
        expression=expression.strip(),
        aggregation=aggregation,
        percentile=percentile,
        op=expr_match.group("op"),
        value=float(expr_match.group("value")),
    )


def parse_thresholds(spec: ThresholdSpec) -> list[Threshold]:
    """Parse every expression of a threshold mapping."""
    return [
        parse_threshold(key, expression)
        for key, expressions in spec.items()
        for expression in expressions
    ]


def _matches(sample_tags: Mapping[str, str], filters: tuple[tuple[str, str], ...]) -> bool:
    return all(sample_tags.get(tag) == value for tag, value in filters)


def _aggregate_trend(values: list[float], threshold: Threshold) -> float | None:
    if not values:
        return None
    arr = np.asarray(values, dtype=np.float64)
    match threshold.aggregation:
        case "p":
            return float(np.percentile(arr, threshold.percentile))
        case "med":
            return float(np.median(arr))
        case "avg":
            return float(np.mean(arr))
        case "min":
            return float(np.min(arr))
        case "max":
            return float(np.max(arr))
        case _:
            return float(arr.size)


def _observe(
    threshold: Threshold,
    collector: MetricCollector,
    duration_seconds: float,
) -> float | None:
    filters = threshold.tags
    metric = threshold.metric

    if metric in ("http_req_duration", "http_req_failed", "http_reqs"):
        requests = [m for m in collector.requests if _matches(collector.request_tags(m), filters)]
        if metric == "http_req_duration":
            return _aggregate_trend([m.latency_ms for m in requests], threshold)
        if metric == "http_req_failed":
            flags = [m.failed for m in requests]
            return _aggregate_rate(flags, threshold)
        return _aggregate_counter(len(requests), duration_seconds, threshold)

    if metric == "checks":
        checks = [c for c in collector.checks if _matches(collector.check_tags(c), filters)]
        return _aggregate_rate([c.passed for c in checks], threshold)

    if metric == "group_duration":
        groups = [g for g in collector.groups if _matches(collector.group_tags(g), filters)]
        return _aggregate_trend([g.duration_ms for g in groups], threshold)

    run_tags = collector.tags
    iterations = collector.iterations if _matches(run_tags, filters) else []
    if metric == "iterations":
        return _aggregate_counter(len(iterations), duration_seconds, threshold)
    return _aggregate_trend([i.duration_ms for i in iterations], threshold)


def _aggregate_rate(flags: list[bool], threshold: Threshold) -> float | None:
    if not flags:
        return None
    if threshold.aggregation == "count":
        return float(sum(flags))
    return sum(flags) / len(flags)


def _aggregate_counter(count: int, duration_seconds: float, threshold: Threshold) -> float | None:
    if threshold.aggregation == "count":
        return float(count)
    if duration_seconds <= 0:
        return None
    return count / duration_seconds


def evaluate_thresholds(
    thresholds: list[Threshold],
    collector: MetricCollector,
    duration_seconds: float,
) -> list[ThresholdResult]:
    """Evaluate *thresholds* against everything *collector* recorded.

    Args:
        thresholds: Parsed thresholds.
        collector: Collector holding the run's samples.
        duration_seconds: Run length, used for per-second rates of counters.

    Returns:
        One result per threshold, in input order.
    """
    results: list[ThresholdResult] = []
    for threshold in thresholds:
        observed = _observe(threshold, collector, duration_seconds)
        passed = observed is None or _OPERATORS[threshold.op](observed, threshold.value)
        results.append(ThresholdResult(threshold=threshold, observed=observed, passed=passed))
    return results
