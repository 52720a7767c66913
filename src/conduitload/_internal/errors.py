"""Custom exception hierarchy for conduitload."""

from __future__ import annotations


class ConduitLoadError(Exception):
    """Base exception for all conduitload errors.

    Traffic outcomes (bad status codes, timeouts, malformed bodies) are never
    raised. These exceptions signal mistakes in scripts, configuration, or
    the engine itself.
    """


class ScenarioError(ConduitLoadError):
    """Raised when a scenario definition is invalid.

    Examples:
        - A class decorated with @scenario has no @iteration method.
        - A hook method is not a coroutine function.
        - A dispatcher partition does not cover [0, 1).
        - A scenario name or file cannot be resolved.
    """


class ConfigError(ConduitLoadError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Environment variable has an invalid value.
        - A stage duration cannot be parsed.
        - A threshold expression is malformed.
    """


class EngineError(ConduitLoadError):
    """Raised when a test session fails unrecoverably."""
