"""Named boolean checks and response classification.

A check records ``label -> passed`` for the run summary and the ``checks``
threshold. It never raises and never changes control flow by itself: the
caller decides what to do with the returned boolean.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, TypeVar

from conduitload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from conduitload.dsl.http_client import ApiResult

logger = get_logger("dsl.checks")

T = TypeVar("T")


@dataclass(frozen=True)
class CheckMetric:
    """Outcome of a single named check.

    Attributes:
        timestamp: Monotonic time the check was evaluated.
        name: Check label.
        passed: Whether the predicate returned a truthy value.
        group: Group path the check ran in ("" at top level).
    """

    timestamp: float
    name: str
    passed: bool
    group: str = ""


def _noop_callback(metric: CheckMetric) -> None:
    """Default no-op check callback."""


class CheckRecorder:
    """Evaluates predicates and reports each result as a ``CheckMetric``."""

    def __init__(self, callback: Callable[[CheckMetric], None] | None = None) -> None:
        self._callback = callback or _noop_callback
        self.group = ""

    def check(self, subject: T, predicates: Mapping[str, Callable[[T], Any]]) -> bool:
        """Run every predicate against *subject* and record the outcomes.

        A predicate that raises counts as failed.

        Args:
            subject: Value handed to each predicate, usually an ``ApiResult``.
            predicates: Mapping of check label to predicate.

        Returns:
            True only if every predicate passed.
        """
        all_passed = True
        for name, predicate in predicates.items():
            try:
                passed = bool(predicate(subject))
            except Exception:
                logger.debug("Check %r raised, recording as failed", name, exc_info=True)
                passed = False
            self._record(name, passed)
            all_passed = all_passed and passed
        return all_passed

    def assert_that(self, name: str, condition: bool) -> bool:
        """Record a check that has no subject (e.g. batch-level success)."""
        self._record(name, bool(condition))
        return bool(condition)

    def _record(self, name: str, passed: bool) -> None:
        self._callback(
            CheckMetric(timestamp=time.monotonic(), name=name, passed=passed, group=self.group)
        )


class ResponseClass(Enum):
    """How a response should be judged under load."""

    SUCCESS = auto()
    RATE_LIMITED = auto()
    CLIENT_ERROR = auto()
    FAILURE = auto()


def classify_response(result: ApiResult) -> ResponseClass:
    """Classify a response for spike-style acceptance rules.

    429 is the server refusing work it cannot take, which is acceptable
    during a spike. A 5xx or no response at all is not.

    Args:
        result: The response to classify.

    Returns:
        ``SUCCESS`` for 2xx/3xx, ``RATE_LIMITED`` for 429, ``CLIENT_ERROR``
        for other 4xx, ``FAILURE`` for 5xx or status 0.
    """
    status = result.status
    if status <= 0 or status >= 500:
        return ResponseClass.FAILURE
    if status == 429:
        return ResponseClass.RATE_LIMITED
    if status >= 400:
        return ResponseClass.CLIENT_ERROR
    return ResponseClass.SUCCESS


def is_acceptable(result: ApiResult) -> bool:
    """True for a success or an acceptable rate-limit refusal."""
    return classify_response(result) in (ResponseClass.SUCCESS, ResponseClass.RATE_LIMITED)


def json_field(result: ApiResult, *path: str) -> Any:
    """Walk the parsed JSON body along *path*.

    Returns None when the body does not parse, a key is missing, or an
    intermediate value is not an object.

    Example::

        token = json_field(result, "user", "token")
    """
    node = result.json()
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node
