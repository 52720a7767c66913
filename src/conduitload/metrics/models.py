"""Metric aggregation dataclasses for conduitload."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

# Raw per-event metrics live next to the code that emits them. Re-exported
# here so consumers can import every metric type from one place.
from conduitload.dsl.checks import CheckMetric
from conduitload.dsl.context import GroupMetric
from conduitload.dsl.http_client import RequestMetric

if TYPE_CHECKING:
    from conduitload.metrics.thresholds import ThresholdResult

__all__ = [
    "CheckMetric",
    "CheckSummary",
    "EndpointMetrics",
    "GroupMetric",
    "IterationMetric",
    "MetricSnapshot",
    "RequestMetric",
    "TestResult",
]


@dataclass(frozen=True)
class IterationMetric:
    """One completed virtual-user iteration.

    Attributes:
        timestamp: Monotonic time the iteration started.
        vu_id: Virtual user that ran it.
        duration_ms: Iteration time in milliseconds, think time excluded.
    """

    timestamp: float
    vu_id: int
    duration_ms: float


@dataclass
class EndpointMetrics:
    """Aggregated metrics for a single logical request name.

    Attributes:
        name: Logical request name (e.g., "List Articles").
        request_count: Number of requests.
        error_count: Requests with no response or status >= 400.
        error_rate: Fraction of requests that failed (0.0 to 1.0).
        requests_per_second: Throughput for this name.
        latency_avg: Mean response time in milliseconds.
        latency_p50: Median response time in milliseconds.
        latency_p95: 95th percentile response time in milliseconds.
        latency_p99: 99th percentile response time in milliseconds.
        latency_max: Slowest response in milliseconds.
    """

    name: str
    request_count: int = 0
    error_count: int = 0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0


@dataclass
class MetricSnapshot:
    """Aggregated metrics over one interval (a tick, or the whole run).

    Attributes:
        timestamp: Monotonic timestamp of the snapshot.
        elapsed_seconds: Seconds since the run started.
        active_users: Number of running virtual users.
        total_requests: Requests in the interval.
        requests_per_second: Throughput in the interval.
        latency_avg: Mean latency (ms).
        latency_p50: Median latency (ms).
        latency_p90: 90th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        latency_max: Slowest request (ms).
        run_latency_p95: 95th percentile since the start of the run (ms).
        total_errors: Failed requests in the interval.
        error_rate: Fraction of failed requests (0.0 to 1.0).
        errors_by_status: Failed request count per status code (0 = no response).
        checks_passed: Checks that passed in the interval.
        checks_failed: Checks that failed in the interval.
        iterations: Iterations completed in the interval.
        endpoints: Per-request-name metrics.
    """

    timestamp: float
    elapsed_seconds: float
    active_users: int
    total_requests: int = 0
    requests_per_second: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0
    run_latency_p95: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    errors_by_status: dict[int, int] = field(default_factory=dict)
    checks_passed: int = 0
    checks_failed: int = 0
    iterations: int = 0
    endpoints: dict[str, EndpointMetrics] = field(default_factory=dict)

    @property
    def checks_rate(self) -> float:
        """Fraction of checks that passed, 1.0 when none ran."""
        total = self.checks_passed + self.checks_failed
        return self.checks_passed / total if total else 1.0


@dataclass
class CheckSummary:
    """Pass/fail tally of one named check within one group."""

    name: str
    group: str = ""
    passes: int = 0
    fails: int = 0

    @property
    def rate(self) -> float:
        total = self.passes + self.fails
        return self.passes / total if total else 0.0


@dataclass
class TestResult:
    """Complete result of a run.

    Attributes:
        scenario_name: Name of the script that ran.
        start_time: Monotonic time the timed run started.
        end_time: Monotonic time it ended.
        duration_seconds: Wall-clock length of the timed run.
        pattern_description: Human-readable schedule description.
        snapshots: One MetricSnapshot per tick.
        final_summary: Snapshot over the whole run.
        checks: Per-check tallies in first-seen order.
        thresholds: Threshold verdicts.
        total_iterations: Iterations completed by all virtual users.
        tags: Run-level tags.
    """

    __test__ = False

    scenario_name: str
    start_time: float
    end_time: float
    duration_seconds: float
    pattern_description: str
    snapshots: list[MetricSnapshot] = field(default_factory=list)
    final_summary: MetricSnapshot | None = None
    checks: list[CheckSummary] = field(default_factory=list)
    thresholds: list[ThresholdResult] = field(default_factory=list)
    total_iterations: int = 0
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def thresholds_passed(self) -> bool:
        """True when every threshold held."""
        return all(t.passed for t in self.thresholds)

    @property
    def failed_thresholds(self) -> list[ThresholdResult]:
        return [t for t in self.thresholds if not t.passed]
