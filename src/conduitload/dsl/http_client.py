"""Instrumented HTTP client returning normalized results.

Every request is auto-timed and emits a ``RequestMetric``. Unlike a plain
``aiohttp`` session, the client never raises for traffic outcomes: a 500, a
refused connection and a timeout are all returned as an ``ApiResult`` for
checks to inspect.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from conduitload._internal.types import Headers, Tags

_UNPARSED = object()


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


@dataclass
class RequestMetric:
    """Raw metric emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical name for metric grouping (e.g., "List Articles").
        method: HTTP method (GET, POST, etc.).
        url: Full request URL.
        status_code: HTTP response status code (0 if no response arrived).
        latency_ms: Response time in milliseconds.
        content_length: Response body size in bytes.
        error: Transport error message, None when a response arrived.
        group: Group path the request was issued in ("" at top level).
        tags: Run-level tags (testType, scenario, ...).
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    group: str = ""
    tags: Tags = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        """True when the request counts toward ``http_req_failed``."""
        return self.error is not None or self.status_code == 0 or self.status_code >= 400


@dataclass
class ApiResult:
    """Normalized outcome of one HTTP call.

    ``status`` is always present; it is 0 when no response was received.
    The body is kept as raw text and parsed lazily by :meth:`json`, which
    returns None instead of raising when the body is not valid JSON.

    Attributes:
        status: HTTP status code, or 0 on transport failure.
        body: Raw response body text ("" when there is none).
        headers: Response headers.
        duration_ms: Elapsed time in milliseconds.
        error: Transport error description, None when a response arrived.
    """

    status: int
    body: str = ""
    headers: Headers = field(default_factory=dict)
    duration_ms: float = 0.0
    error: str | None = None
    _parsed: Any = field(default=_UNPARSED, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Return the parsed JSON body, or None if it does not parse."""
        if self._parsed is _UNPARSED:
            try:
                self._parsed = json.loads(self.body) if self.body else None
            except (ValueError, RecursionError):
                self._parsed = None
        return self._parsed


@dataclass(frozen=True)
class BatchRequest:
    """One entry of a :meth:`HttpClient.batch` call."""

    method: str
    path: str
    name: str | None = None
    headers: Headers | None = None
    json: Any = None


class HttpClient:
    """Instrumented async HTTP client wrapping ``aiohttp.ClientSession``.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request.
        group: Current group path, stamped on emitted metrics. Maintained by
            :class:`~conduitload.dsl.context.VirtualUser`.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        timeout: float = 30.0,
        *,
        pool_size: int = 100,
        tags: Tags | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL prepended to all request paths.
            headers: Default headers applied to every request.
            metric_callback: Called with a ``RequestMetric`` after each request.
            timeout: Per-request timeout in seconds.
            pool_size: Connection limit for the underlying connector.
            tags: Run-level tags copied onto every metric.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = dict(headers or {})
        self.group = ""
        self._metric_callback = metric_callback or _noop_callback
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._pool_size = pool_size
        self._tags: dict[str, str] = dict(tags or {})
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=aiohttp.TCPConnector(limit=self._pool_size),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, *, name: str | None = None, **kwargs: Any) -> ApiResult:
        """Send a GET request."""
        return await self.request("GET", path, name=name, **kwargs)

    async def post(self, path: str, *, name: str | None = None, **kwargs: Any) -> ApiResult:
        """Send a POST request."""
        return await self.request("POST", path, name=name, **kwargs)

    async def batch(self, requests: Sequence[BatchRequest]) -> list[ApiResult]:
        """Issue several requests concurrently.

        Results come back in submission order once every request has
        completed or failed on its own.

        Args:
            requests: Requests to issue.

        Returns:
            One ``ApiResult`` per request, same order as *requests*.
        """
        return list(
            await asyncio.gather(
                *(
                    self.request(
                        r.method,
                        r.path,
                        name=r.name,
                        headers=r.headers,
                        json=r.json,
                    )
                    for r in requests
                )
            )
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        headers: Headers | None = None,
        **kwargs: Any,
    ) -> ApiResult:
        """Send an HTTP request with auto-timing and metric emission.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: URL path (query string allowed) appended to base_url.
            name: Logical name for metric grouping. Defaults to the path
                without its query string.
            headers: Extra headers merged over the client defaults.
            **kwargs: Passed to ``aiohttp.ClientSession.request``
                (``json``, ``params``, ...).

        Returns:
            The normalized result. Status is 0 if no response arrived.

        Raises:
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"
        metric_name = name or path.split("?", 1)[0]
        merged_headers = {**self.headers, **(headers or {})}
        if kwargs.get("json") is None:
            kwargs.pop("json", None)

        start = time.monotonic()
        result: ApiResult

        try:
            async with self._session.request(
                method,
                url,
                headers=merged_headers,
                **kwargs,
            ) as resp:
                body = await resp.text(errors="replace")
                result = ApiResult(
                    status=resp.status,
                    body=body,
                    headers=dict(resp.headers),
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            result = ApiResult(status=0, error=f"{type(exc).__name__}: {exc}")

        result.duration_ms = (time.monotonic() - start) * 1000
        self._metric_callback(
            RequestMetric(
                timestamp=start,
                name=metric_name,
                method=method,
                url=url,
                status_code=result.status,
                latency_ms=result.duration_ms,
                content_length=len(result.body.encode()),
                error=result.error,
                group=self.group,
                tags=self._tags,
            )
        )
        return result
