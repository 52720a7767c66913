"""Run-wide latency histogram backed by HdrHistogram.

Interval snapshots compute exact percentiles with numpy over the few
seconds of samples they hold. The run-wide figures shown in the live view
would need every sample ever recorded, so they come from an HDR histogram
instead: constant memory, three significant digits.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# Range: 1 microsecond to 120 seconds (in microseconds). Requests time out
# well before the upper bound.
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 120_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Millisecond-facing wrapper around ``HdrHistogram``.

    Values are stored as integer microseconds and clamped to the trackable
    range; every accessor returns milliseconds and 0.0 when empty.
    """

    def __init__(self) -> None:
        self._histogram = HdrHistogram(
            _LOWEST_TRACKABLE_US, _HIGHEST_TRACKABLE_US, _SIGNIFICANT_DIGITS
        )

    @property
    def count(self) -> int:
        return int(self._histogram.total_count)

    def record(self, latency_ms: float) -> None:
        value_us = max(_LOWEST_TRACKABLE_US, min(int(latency_ms * 1000), _HIGHEST_TRACKABLE_US))
        self._histogram.record_value(value_us)

    def percentile(self, percentile: float) -> float:
        """Latency at *percentile* (0 to 100) in milliseconds."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0
