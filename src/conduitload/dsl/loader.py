"""Resolve a script by built-in name or load it from a ``.py`` file."""

from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType

from conduitload._internal.errors import ScenarioError
from conduitload.dsl.scenario import ScenarioDefinition

BUILTIN_PACKAGE = "conduitload.scenarios"


def _definitions_in(module: ModuleType) -> list[ScenarioDefinition]:
    return [obj for obj in vars(module).values() if isinstance(obj, ScenarioDefinition)]


def load_builtin(name: str) -> ScenarioDefinition:
    """Load one of the bundled scripts (``load``, ``stress``, ``soak``, ...).

    Raises:
        ScenarioError: If no bundled script has that name.
    """
    from conduitload.scenarios import CATALOG

    if name not in CATALOG:
        msg = f"Unknown scenario {name!r}. Available: {', '.join(CATALOG)}"
        raise ScenarioError(msg)
    module = importlib.import_module(f"{BUILTIN_PACKAGE}.{name}")
    definitions = _definitions_in(module)
    if not definitions:
        msg = f"Built-in module {module.__name__} defines no @scenario class"
        raise ScenarioError(msg)
    return definitions[0]


def load_scenario(target: str | Path) -> ScenarioDefinition:
    """Load a script by built-in name or from a Python file.

    Args:
        target: A bundled script name or a path to a ``.py`` file.

    Returns:
        The first ``ScenarioDefinition`` found.

    Raises:
        ScenarioError: If the name is unknown, the file does not exist or
            cannot be imported, or it contains no ``@scenario`` class.
    """
    path = Path(target)
    if path.suffix != ".py":
        return load_builtin(str(target))

    if not path.exists():
        msg = f"Scenario file not found: {path}"
        raise ScenarioError(msg)

    module_name = f"conduitload_script_{path.stem}"

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        msg = f"Could not create module spec for: {path}"
        raise ScenarioError(msg)

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module

    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        msg = f"Failed to import scenario file {path}: {exc}"
        raise ScenarioError(msg) from exc

    definitions = _definitions_in(module)
    if not definitions:
        sys.modules.pop(module_name, None)
        msg = f"No @scenario-decorated class found in {path}."
        raise ScenarioError(msg)

    return definitions[0]
