"""Top-level run orchestrator used by the CLI."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from conduitload._internal.config import load_config
from conduitload._internal.errors import ConfigError
from conduitload._internal.logging import get_logger, setup_logging
from conduitload.dsl.loader import load_scenario
from conduitload.engine.session import TestSession
from conduitload.patterns.constant import ConstantPattern
from conduitload.patterns.stages import parse_duration

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from conduitload._internal.config import ConduitLoadConfig
    from conduitload.metrics.models import MetricSnapshot, TestResult
    from conduitload.patterns.base import LoadPattern

logger = get_logger("engine.runner")


def override_pattern(users: int | None, duration: str | float | None) -> LoadPattern | None:
    """Build the constant pattern for a ``--users``/``--duration`` override.

    Returns:
        None when neither is given.

    Raises:
        ConfigError: If only one of the two is given, or a value is invalid.
    """
    if users is None and duration is None:
        return None
    if users is None or duration is None:
        msg = "--users and --duration must be given together"
        raise ConfigError(msg)
    return ConstantPattern(users, parse_duration(duration))


class LoadTestRunner:
    """Loads a script, wires configuration and logging, and runs it.

    The script is resolved eagerly so that unknown names, missing files and
    malformed definitions fail before any traffic is sent.

    Attributes:
        definition: The loaded script.
        config: Configuration read from the environment.
    """

    def __init__(
        self,
        target: str | Path,
        *,
        base_url: str | None = None,
        users: int | None = None,
        duration: str | float | None = None,
        tick_interval: float = 1.0,
        on_snapshot: Callable[[MetricSnapshot], None] | None = None,
        log_level: int = logging.INFO,
        json_logs: bool = False,
        config: ConduitLoadConfig | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            target: Built-in script name or path to a ``.py`` script.
            base_url: Target override; beats the script and the environment.
            users: Constant virtual users, replacing the script's stages.
            duration: Run length for the *users* override.
            tick_interval: Seconds between snapshots.
            on_snapshot: Optional callback invoked with each MetricSnapshot.
            log_level: Logging level.
            json_logs: Emit JSON log lines instead of Rich output.
            config: Configuration. Defaults to :func:`load_config`.

        Raises:
            ScenarioError: If the script cannot be loaded.
            ConfigError: If the environment or the override is invalid.
        """
        self._log_level = log_level
        self._json_logs = json_logs
        self.config = config or load_config()
        self.definition = load_scenario(target)
        self._pattern = override_pattern(users, duration)
        self._base_url = base_url
        self._tick_interval = tick_interval
        self._on_snapshot = on_snapshot

    @property
    def base_url(self) -> str:
        """The target the run will hit."""
        return self._base_url or self.definition.base_url or self.config.base_url

    def session(self) -> TestSession:
        return TestSession(
            self.definition,
            pattern=self._pattern,
            base_url=self._base_url,
            config=self.config,
            tick_interval=self._tick_interval,
            on_snapshot=self._on_snapshot,
        )

    def run(self) -> TestResult:
        """Execute the run and block until it completes or is interrupted.

        Raises:
            EngineError: If the engine fails while running.
        """
        setup_logging(level=self._log_level, json_format=self._json_logs)
        return asyncio.run(self.session().run())
