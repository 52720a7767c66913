"""Run lifecycle: setup, scaled virtual users, teardown, threshold verdict."""

from __future__ import annotations

import asyncio
import random
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from conduitload._internal.config import ConduitLoadConfig
from conduitload._internal.errors import EngineError
from conduitload._internal.logging import get_logger
from conduitload.dsl.checks import CheckRecorder
from conduitload.dsl.context import VirtualUser
from conduitload.dsl.http_client import HttpClient
from conduitload.dsl.scenario import SetupData
from conduitload.engine._user_utils import shutdown_all_users, stop_user
from conduitload.engine.scheduler import Scheduler
from conduitload.metrics.collector import MetricCollector
from conduitload.metrics.models import MetricSnapshot, TestResult
from conduitload.metrics.thresholds import evaluate_thresholds

if TYPE_CHECKING:
    from collections.abc import Callable

    from conduitload.dsl.scenario import ScenarioDefinition
    from conduitload.patterns.base import LoadPattern

logger = get_logger("engine.session")


class SessionState(Enum):
    """State machine for a run."""

    CREATED = auto()
    SETUP = auto()
    RUNNING = auto()
    STOPPING = auto()
    TEARDOWN = auto()
    COMPLETED = auto()
    FAILED = auto()


class TestSession:
    """Executes one script in the current event loop.

    State machine: CREATED -> SETUP -> RUNNING -> STOPPING -> TEARDOWN
    -> COMPLETED, or FAILED when the engine itself breaks. Failures inside
    scenario code never fail the session: setup falls back to empty
    ``SetupData`` and iteration errors are logged and skipped.

    Attributes:
        definition: The script being executed.
    """

    __test__ = False

    def __init__(
        self,
        definition: ScenarioDefinition,
        *,
        pattern: LoadPattern | None = None,
        base_url: str | None = None,
        config: ConduitLoadConfig | None = None,
        tick_interval: float = 1.0,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
    ) -> None:
        """Initialize a run.

        Args:
            definition: The script to execute.
            pattern: Concurrency override. Defaults to the script's stages;
                iteration-count scripts run without one.
            base_url: Target override. Falls back to the script's own
                base URL, then to the configured one.
            config: Client settings. Defaults to ``ConduitLoadConfig()``.
            tick_interval: Seconds between concurrency adjustments and
                snapshots.
            on_snapshot: Called with every interval snapshot.
        """
        self.definition = definition
        self._config = config or ConduitLoadConfig()
        self._pattern = pattern or definition.pattern()
        self._base_url = base_url or definition.base_url or self._config.base_url
        self._tick_interval = tick_interval
        self._on_snapshot = on_snapshot

        self._state = SessionState.CREATED
        self._collector = MetricCollector(tags=definition.tags)
        self._user_tasks: list[tuple[int, asyncio.Task[None]]] = []
        self._next_user_id = 1
        self._total_iterations = 0
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_user_count(self) -> int:
        return sum(1 for _, t in self._user_tasks if not t.done())

    @property
    def base_url(self) -> str:
        return self._base_url

    def describe(self) -> str:
        """Human-readable schedule description."""
        if self._pattern is None:
            return f"1 user x {self.definition.iterations} iterations"
        return self._pattern.describe()

    async def run(self) -> TestResult:
        """Execute setup, the timed run, threshold evaluation and teardown.

        Returns:
            TestResult with snapshots, check tallies and threshold verdicts.

        Raises:
            EngineError: If the engine fails while driving virtual users.
        """
        logger.info(
            "Starting run: scenario=%s, target=%s, schedule=%s",
            self.definition.name,
            self._base_url,
            self.describe(),
        )
        self._install_signal_handlers()
        try:
            self._state = SessionState.SETUP
            data = await self._run_setup()

            self._state = SessionState.RUNNING
            start_time = time.monotonic()
            snapshots: list[MetricSnapshot] = []
            try:
                if self._pattern is None:
                    await self._run_iterations(data, start_time, snapshots)
                else:
                    await self._run_stages(self._pattern, data, start_time, snapshots)
            except Exception as exc:
                self._state = SessionState.FAILED
                logger.exception("Run failed")
                msg = "Run failed"
                raise EngineError(msg) from exc
            finally:
                if self._state != SessionState.FAILED:
                    self._state = SessionState.STOPPING
                await shutdown_all_users(self._user_tasks, self._stop_event)

            end_time = time.monotonic()
            result = self._build_result(start_time, end_time, snapshots)

            self._state = SessionState.TEARDOWN
            await self._run_teardown(data, result)
        finally:
            self._remove_signal_handlers()

        self._state = SessionState.COMPLETED
        summary = result.final_summary
        if summary is not None:
            logger.info(
                "Run completed: duration=%.1fs, requests=%d, iterations=%d, "
                "p95=%.1fms, error_rate=%.2f%%, thresholds=%s",
                result.duration_seconds,
                summary.total_requests,
                result.total_iterations,
                summary.latency_p95,
                summary.error_rate * 100,
                "passed" if result.thresholds_passed else "FAILED",
            )
        return result

    async def stop(self) -> None:
        """Request a graceful stop after the current tick."""
        if self._state == SessionState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._state = SessionState.STOPPING
            self._stop_event.set()

    def _client(self) -> HttpClient:
        return HttpClient(
            base_url=self._base_url,
            headers=dict(self._config.default_headers),
            metric_callback=self._collector.record,
            timeout=self._config.request_timeout,
            pool_size=self._config.connection_pool_size,
            tags=self.definition.tags,
        )

    def _virtual_user(self, vu_id: int, client: HttpClient) -> VirtualUser:
        return VirtualUser(
            vu_id,
            client,
            CheckRecorder(self._collector.record_check),
            rng=random.Random(),  # noqa: S311
            group_callback=self._collector.record_group,
        )

    async def _run_setup(self) -> SetupData:
        setup_func = self.definition.setup_func
        if setup_func is None:
            return SetupData()
        instance = self.definition.cls()
        async with self._client() as client:
            vu = self._virtual_user(0, client)
            try:
                data = await setup_func(instance, vu)
            except Exception:
                logger.warning(
                    "Setup failed for %s, continuing without setup data",
                    self.definition.name,
                    exc_info=True,
                )
                return SetupData()
        if not isinstance(data, SetupData):
            logger.warning(
                "Setup for %s returned %s instead of SetupData, ignoring it",
                self.definition.name,
                type(data).__name__,
            )
            return SetupData()
        return data

    async def _run_teardown(self, data: SetupData, result: TestResult) -> None:
        teardown_func = self.definition.teardown_func
        if teardown_func is None:
            return
        try:
            await teardown_func(self.definition.cls(), data, result)
        except Exception:
            logger.warning("Teardown failed for %s", self.definition.name, exc_info=True)

    async def _run_stages(
        self,
        pattern: LoadPattern,
        data: SetupData,
        start_time: float,
        snapshots: list[MetricSnapshot],
    ) -> None:
        scheduler = Scheduler(pattern, self._tick_interval)
        for command in scheduler.iter_commands():
            if self._stop_event.is_set():
                break

            target_time = start_time + command.elapsed_seconds
            now = time.monotonic()
            if target_time > now:
                await asyncio.sleep(target_time - now)

            if self._stop_event.is_set():
                break

            await self._scale_users(command.target_concurrency, data)
            self._tick(start_time, snapshots)

    async def _run_iterations(
        self,
        data: SetupData,
        start_time: float,
        snapshots: list[MetricSnapshot],
    ) -> None:
        iterations = self.definition.iterations or 1
        task = self._spawn_user(data, max_iterations=iterations)
        while not task.done() and not self._stop_event.is_set():
            await asyncio.wait({task}, timeout=self._tick_interval)
            self._tick(start_time, snapshots)

    def _tick(self, start_time: float, snapshots: list[MetricSnapshot]) -> None:
        elapsed = time.monotonic() - start_time
        snapshot = self._collector.flush(
            elapsed_seconds=elapsed,
            active_users=self.active_user_count,
        )
        snapshots.append(snapshot)
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

        logger.debug(
            "Tick %.1fs: users=%d, rps=%.1f, p95=%.1fms, errors=%d",
            elapsed,
            snapshot.active_users,
            snapshot.requests_per_second,
            snapshot.latency_p95,
            snapshot.total_errors,
        )

    def _spawn_user(self, data: SetupData, max_iterations: int | None = None) -> asyncio.Task[None]:
        vu_id = self._next_user_id
        self._next_user_id += 1
        task = asyncio.create_task(
            self._run_virtual_user(vu_id, data, max_iterations),
            name=f"virtual-user-{vu_id}",
        )
        self._user_tasks.append((vu_id, task))
        return task

    async def _run_virtual_user(
        self,
        vu_id: int,
        data: SetupData,
        max_iterations: int | None,
    ) -> None:
        instance = self.definition.cls()
        iteration_func = self.definition.iteration_func
        low, high = self.definition.think_time
        async with self._client() as client:
            vu = self._virtual_user(vu_id, client)
            try:
                while not self._stop_event.is_set():
                    if max_iterations is not None and vu.iteration >= max_iterations:
                        break
                    vu.iteration += 1
                    started = time.monotonic()
                    try:
                        await iteration_func(instance, vu, data)
                    except asyncio.CancelledError:
                        raise
                    except Exception:
                        logger.debug(
                            "Iteration %d failed for user %d",
                            vu.iteration,
                            vu_id,
                            exc_info=True,
                            extra={"vu": vu_id, "iteration": vu.iteration},
                        )
                    self._collector.record_iteration(
                        vu_id, started, (time.monotonic() - started) * 1000
                    )
                    self._total_iterations += 1

                    await vu.pause(low, high)
            except asyncio.CancelledError:
                pass

    async def _scale_users(self, target: int, data: SetupData) -> None:
        self._user_tasks = [(uid, t) for uid, t in self._user_tasks if not t.done()]
        current = len(self._user_tasks)

        if target > current:
            for _ in range(target - current):
                self._spawn_user(data)
        elif target < current:
            # Most recently started users leave first.
            for _ in range(current - target):
                _uid, task = self._user_tasks.pop()
                await stop_user(task)

    def _build_result(
        self,
        start_time: float,
        end_time: float,
        snapshots: list[MetricSnapshot],
    ) -> TestResult:
        duration = end_time - start_time
        final_summary = self._collector.get_cumulative_snapshot(
            elapsed_seconds=duration,
            active_users=0,
        )
        thresholds = evaluate_thresholds(
            self.definition.parsed_thresholds, self._collector, duration
        )
        for verdict in thresholds:
            if not verdict.passed:
                logger.warning("Threshold crossed: %s", verdict.describe())

        return TestResult(
            scenario_name=self.definition.name,
            start_time=start_time,
            end_time=end_time,
            duration_seconds=duration,
            pattern_description=self.describe(),
            snapshots=snapshots,
            final_summary=final_summary,
            checks=self._collector.check_summaries(),
            thresholds=thresholds,
            total_iterations=self._total_iterations,
            tags=dict(self.definition.tags),
        )

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self._state = SessionState.STOPPING
            self._stop_event.set()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows event loops do not support add_signal_handler.
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
