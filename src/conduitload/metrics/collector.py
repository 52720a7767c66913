"""In-memory metric collection for a single run."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import TYPE_CHECKING

import numpy as np

from conduitload._internal.logging import get_logger
from conduitload.metrics.histogram import LatencyHistogram
from conduitload.metrics.models import (
    CheckSummary,
    EndpointMetrics,
    IterationMetric,
    MetricSnapshot,
)

if TYPE_CHECKING:
    from conduitload._internal.types import Tags
    from conduitload.metrics.models import CheckMetric, GroupMetric, RequestMetric

logger = get_logger("metrics.collector")


def _compute_percentiles(
    latencies: list[float],
) -> tuple[float, float, float, float, float, float]:
    """Compute latency statistics from a list of latency values.

    Args:
        latencies: List of latency values in milliseconds.

    Returns:
        Tuple of (avg, p50, p90, p95, p99, max).
    """
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.array(latencies, dtype=np.float64)
    percentiles = np.percentile(arr, [50.0, 90.0, 95.0, 99.0])

    return (
        float(np.mean(arr)),
        float(percentiles[0]),
        float(percentiles[1]),
        float(percentiles[2]),
        float(percentiles[3]),
        float(np.max(arr)),
    )


class MetricCollector:
    """Collects request, check, group and iteration samples for one run.

    The ``record*`` methods are meant to be passed as callbacks to
    ``HttpClient``, ``CheckRecorder`` and ``VirtualUser``. Samples land in
    per-interval deques drained by :meth:`flush`, and are also retained for
    threshold evaluation at the end of the run.

    The retained lists hold every sample until the collector is discarded,
    so memory grows linearly with request volume. A 40 minute soak at 20
    users keeps a few hundred thousand small dataclasses.

    Attributes:
        tags: Run-level tags used when matching threshold filters.
    """

    def __init__(self, tags: Tags | None = None) -> None:
        self.tags: dict[str, str] = dict(tags or {})
        self._request_buffer: deque[RequestMetric] = deque()
        self._check_buffer: deque[CheckMetric] = deque()
        self._iteration_buffer: deque[IterationMetric] = deque()
        self.requests: list[RequestMetric] = []
        self.checks: list[CheckMetric] = []
        self.groups: list[GroupMetric] = []
        self.iterations: list[IterationMetric] = []
        self._histogram = LatencyHistogram()
        self._last_flush_time: float = time.monotonic()

    def record(self, metric: RequestMetric) -> None:
        """Record one request. Used as ``HttpClient.metric_callback``."""
        self._request_buffer.append(metric)
        self._histogram.record(metric.latency_ms)

    def record_check(self, metric: CheckMetric) -> None:
        """Record one check outcome. Used as ``CheckRecorder`` callback."""
        self._check_buffer.append(metric)
        self.checks.append(metric)

    def record_group(self, metric: GroupMetric) -> None:
        self.groups.append(metric)

    def record_iteration(self, vu_id: int, started: float, duration_ms: float) -> None:
        metric = IterationMetric(timestamp=started, vu_id=vu_id, duration_ms=duration_ms)
        self._iteration_buffer.append(metric)
        self.iterations.append(metric)

    def request_tags(self, metric: RequestMetric) -> dict[str, str]:
        """Tags a request sample matches against threshold filters."""
        return {
            **self.tags,
            **metric.tags,
            "group": metric.group,
            "name": metric.name,
            "method": metric.method,
            "status": str(metric.status_code),
        }

    def check_tags(self, metric: CheckMetric) -> dict[str, str]:
        return {**self.tags, "group": metric.group, "check": metric.name}

    def group_tags(self, metric: GroupMetric) -> dict[str, str]:
        return {**self.tags, "group": metric.path}

    def flush(
        self,
        elapsed_seconds: float,
        active_users: int,
    ) -> MetricSnapshot:
        """Drain the interval buffers and compute an aggregated snapshot.

        Args:
            elapsed_seconds: Seconds elapsed since the run started.
            active_users: Current number of running virtual users.

        Returns:
            A MetricSnapshot summarizing the samples flushed in this call.
        """
        requests: list[RequestMetric] = []
        while self._request_buffer:
            requests.append(self._request_buffer.popleft())
        self.requests.extend(requests)

        checks: list[CheckMetric] = []
        while self._check_buffer:
            checks.append(self._check_buffer.popleft())

        iterations = len(self._iteration_buffer)
        self._iteration_buffer.clear()

        now = time.monotonic()
        interval = max(now - self._last_flush_time, 0.001)
        self._last_flush_time = now

        return self._build_snapshot(
            requests=requests,
            checks=checks,
            iterations=iterations,
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            interval=interval,
        )

    def get_cumulative_snapshot(
        self,
        elapsed_seconds: float,
        active_users: int,
    ) -> MetricSnapshot:
        """Return a snapshot over every sample recorded so far.

        Pending samples are flushed into the retained lists first so nothing
        recorded after the last tick is lost.
        """
        while self._request_buffer:
            self.requests.append(self._request_buffer.popleft())
        self._check_buffer.clear()
        self._iteration_buffer.clear()

        return self._build_snapshot(
            requests=self.requests,
            checks=self.checks,
            iterations=len(self.iterations),
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            interval=max(elapsed_seconds, 0.001),
        )

    def check_summaries(self) -> list[CheckSummary]:
        """Per ``(group, check)`` pass/fail tallies in first-seen order."""
        summaries: dict[tuple[str, str], CheckSummary] = {}
        for metric in self.checks:
            key = (metric.group, metric.name)
            summary = summaries.get(key)
            if summary is None:
                summary = summaries[key] = CheckSummary(name=metric.name, group=metric.group)
            if metric.passed:
                summary.passes += 1
            else:
                summary.fails += 1
        return list(summaries.values())

    def _build_snapshot(
        self,
        requests: list[RequestMetric],
        checks: list[CheckMetric],
        iterations: int,
        elapsed_seconds: float,
        active_users: int,
        interval: float,
    ) -> MetricSnapshot:
        checks_passed = sum(1 for c in checks if c.passed)
        snapshot = MetricSnapshot(
            timestamp=time.monotonic(),
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            run_latency_p95=self._histogram.percentile(95.0),
            checks_passed=checks_passed,
            checks_failed=len(checks) - checks_passed,
            iterations=iterations,
        )
        if not requests:
            return snapshot

        by_endpoint: dict[str, list[RequestMetric]] = defaultdict(list)
        errors_by_status: dict[int, int] = defaultdict(int)
        total_errors = 0

        for metric in requests:
            by_endpoint[metric.name].append(metric)
            if metric.failed:
                total_errors += 1
                errors_by_status[metric.status_code] += 1

        (
            snapshot.latency_avg,
            snapshot.latency_p50,
            snapshot.latency_p90,
            snapshot.latency_p95,
            snapshot.latency_p99,
            snapshot.latency_max,
        ) = _compute_percentiles([m.latency_ms for m in requests])

        total_requests = len(requests)
        snapshot.total_requests = total_requests
        snapshot.requests_per_second = total_requests / interval
        snapshot.total_errors = total_errors
        snapshot.error_rate = total_errors / total_requests
        snapshot.errors_by_status = dict(errors_by_status)

        for name, ep_metrics in by_endpoint.items():
            ep_count = len(ep_metrics)
            ep_errors = sum(1 for m in ep_metrics if m.failed)
            ep_avg, ep_p50, _, ep_p95, ep_p99, ep_max = _compute_percentiles(
                [m.latency_ms for m in ep_metrics]
            )
            snapshot.endpoints[name] = EndpointMetrics(
                name=name,
                request_count=ep_count,
                error_count=ep_errors,
                error_rate=ep_errors / ep_count,
                requests_per_second=ep_count / interval,
                latency_avg=ep_avg,
                latency_p50=ep_p50,
                latency_p95=ep_p95,
                latency_p99=ep_p99,
                latency_max=ep_max,
            )

        return snapshot
