"""Shared type aliases for conduitload."""

from __future__ import annotations

# HTTP headers dictionary.
Headers = dict[str, str]

# Think time range (min_seconds, max_seconds).
ThinkTime = tuple[float, float]

# Metric tags, e.g. {"testType": "load", "group": "::Public API"}.
Tags = dict[str, str]

# Threshold definitions: metric key -> list of expressions.
ThresholdSpec = dict[str, list[str]]
