"""Tests for threshold parsing and evaluation."""

from __future__ import annotations

import time

import pytest

from conduitload._internal.errors import ConfigError
from conduitload.dsl.checks import CheckMetric
from conduitload.dsl.context import GroupMetric
from conduitload.dsl.http_client import RequestMetric
from conduitload.metrics.collector import MetricCollector
from conduitload.metrics.thresholds import (
    MetricKind,
    evaluate_thresholds,
    parse_threshold,
    parse_thresholds,
)


def _request(
    latency_ms: float,
    status_code: int = 200,
    *,
    name: str = "List Articles",
    group: str = "",
) -> RequestMetric:
    return RequestMetric(
        timestamp=time.monotonic(),
        name=name,
        method="GET",
        url="http://localhost/api/articles",
        status_code=status_code,
        latency_ms=latency_ms,
        content_length=0,
        group=group,
    )


def _check(name: str, passed: bool, group: str = "") -> CheckMetric:
    return CheckMetric(timestamp=time.monotonic(), name=name, passed=passed, group=group)


class TestParseThreshold:
    def test_percentile(self):
        threshold = parse_threshold("http_req_duration", "p(95)<2000")
        assert threshold.metric == "http_req_duration"
        assert threshold.aggregation == "p"
        assert threshold.percentile == 95.0
        assert threshold.op == "<"
        assert threshold.value == 2000.0
        assert threshold.kind is MetricKind.TREND
        assert threshold.tags == ()

    def test_rate_with_spaces(self):
        threshold = parse_threshold("http_req_failed", " rate < 0.1 ")
        assert threshold.aggregation == "rate"
        assert threshold.expression == "rate < 0.1"
        assert threshold.value == pytest.approx(0.1)

    def test_tag_filter(self):
        threshold = parse_threshold("checks{scenario:soak}", "rate>0.95")
        assert threshold.tags == (("scenario", "soak"),)
        assert threshold.op == ">"

    def test_group_path_filter_splits_on_first_colon(self):
        threshold = parse_threshold(
            "group_duration{group:::User Management::Article Management}", "p(95)<4000"
        )
        assert threshold.tags == (("group", "::User Management::Article Management"),)

    def test_parse_mapping(self):
        parsed = parse_thresholds(
            {"http_req_duration": ["p(95)<2000", "avg<500"], "http_reqs": ["rate>10"]}
        )
        assert [t.expression for t in parsed] == ["p(95)<2000", "avg<500", "rate>10"]

    @pytest.mark.parametrize(
        ("key", "expression", "message"),
        [
            ("http_req_latency", "p(95)<1", "unknown metric"),
            ("http_req_duration", "p95<1", "invalid threshold expression"),
            ("http_req_duration", "rate<0.1", "does not apply"),
            ("http_req_failed", "p(95)<1", "does not apply"),
            ("http_req_duration", "p(101)<1", "percentile must be within"),
            ("checks{scenario}", "rate>0.9", "invalid tag filter"),
            ("checks{", "rate>0.9", "invalid threshold key"),
        ],
    )
    def test_malformed(self, key: str, expression: str, message: str):
        with pytest.raises(ConfigError, match=message):
            parse_threshold(key, expression)


class TestEvaluateThresholds:
    def _collector(self) -> MetricCollector:
        collector = MetricCollector(tags={"testType": "soak", "scenario": "soak"})
        for latency in range(1, 101):
            collector.record(_request(float(latency)))
        collector.record(_request(5000.0, status_code=500, name="Login"))
        collector.record_check(_check("ok", True))
        collector.record_check(_check("ok", True))
        collector.record_check(_check("ok", False))
        collector.record_check(_check("group ok", True, group="::Public API"))
        collector.record_group(GroupMetric(time.monotonic(), "::Public API", 150.0))
        collector.record_group(GroupMetric(time.monotonic(), "::Public API", 250.0))
        collector.record_group(GroupMetric(time.monotonic(), "::Authentication", 9000.0))
        collector.record_iteration(1, time.monotonic(), 300.0)
        collector.record_iteration(1, time.monotonic(), 500.0)
        collector.get_cumulative_snapshot(elapsed_seconds=10.0, active_users=0)
        return collector

    def _evaluate(self, key: str, expression: str, duration: float = 10.0):
        [result] = evaluate_thresholds(
            [parse_threshold(key, expression)], self._collector(), duration
        )
        return result

    def test_latency_percentile(self):
        result = self._evaluate("http_req_duration{name:List Articles}", "p(95)<100")
        assert result.observed == pytest.approx(95.05)
        assert result.passed

    def test_crossed_threshold(self):
        result = self._evaluate("http_req_duration", "max<1000")
        assert result.observed == 5000.0
        assert not result.passed

    def test_failure_rate(self):
        result = self._evaluate("http_req_failed", "rate<0.1")
        assert result.observed == pytest.approx(1 / 101)
        assert result.passed

    def test_failure_count_by_status_tag(self):
        result = self._evaluate("http_req_failed{status:500}", "count==1")
        assert result.observed == 1.0
        assert result.passed

    def test_request_rate(self):
        result = self._evaluate("http_reqs", "rate>10")
        assert result.observed == pytest.approx(10.1)
        assert result.passed

    def test_checks_rate_with_run_tag(self):
        result = self._evaluate("checks{scenario:soak}", "rate>0.95")
        assert result.observed == pytest.approx(0.75)
        assert not result.passed

    def test_checks_filtered_by_group(self):
        result = self._evaluate("checks{group:::Public API}", "rate==1")
        assert result.observed == 1.0

    def test_group_duration(self):
        result = self._evaluate("group_duration{group:::Public API}", "avg<2000")
        assert result.observed == pytest.approx(200.0)
        assert result.passed

    def test_iterations(self):
        assert self._evaluate("iterations", "count==2").passed
        assert self._evaluate("iteration_duration", "max<=500").passed

    def test_iterations_filtered_out_by_run_tags(self):
        result = self._evaluate("iterations{testType:load}", "count>0")
        assert result.observed == 0.0
        assert not result.passed

    def test_no_matching_samples_passes(self):
        result = self._evaluate("http_req_duration{name:Nope}", "p(95)<1")
        assert result.observed is None
        assert result.passed
        assert "no data" in result.describe()

    def test_rate_without_duration(self):
        result = self._evaluate("http_reqs", "rate>10", duration=0.0)
        assert result.observed is None
        assert result.passed
