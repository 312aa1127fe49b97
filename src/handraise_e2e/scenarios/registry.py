"""Scenario registry backed by a directory of scenario modules.

Every `*.py` file in the scenario directory whose name does not start with an
underscore is a scenario module. A scenario module defines:

    NAME = "Handraise Load"
    DESCRIPTION = "Tests loading the Handraise login page"

    async def run(session):
        ...

Modules are re-imported from disk on every load so edits take effect on the
next run without restarting the server.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from handraise_e2e.exceptions import ConfigurationError, ScenarioLoadError, ScenarioNotFoundError
from handraise_e2e.models import ScenarioDescriptor

logger = logging.getLogger(__name__)

MODULE_PREFIX = "handraise_e2e_scenario_"


def _scenario_files(directory: Path) -> List[Path]:
    return sorted(
        path
        for path in directory.glob("*.py")
        if path.is_file() and not path.name.startswith("_")
    )


def load_scenario_module(path: Path) -> ScenarioDescriptor:
    """
    Import one scenario module from disk and build its descriptor.

    Args:
        path: Path to the scenario module

    Returns:
        ScenarioDescriptor for the module

    Raises:
        ScenarioLoadError: If the module cannot be imported or is malformed
    """
    spec = importlib.util.spec_from_file_location(f"{MODULE_PREFIX}{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ScenarioLoadError(str(path), "not an importable Python module")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ScenarioLoadError(str(path), f"{type(e).__name__}: {e}") from e

    name = getattr(module, "NAME", None)
    description = getattr(module, "DESCRIPTION", None)
    run = getattr(module, "run", None)

    if not isinstance(name, str) or not name.strip():
        raise ScenarioLoadError(str(path), "missing NAME")
    if not isinstance(description, str) or not description.strip():
        raise ScenarioLoadError(str(path), "missing DESCRIPTION")
    if not inspect.iscoroutinefunction(run):
        raise ScenarioLoadError(str(path), "run must be an async function")

    return ScenarioDescriptor(
        name=name.strip(),
        description=description.strip(),
        run=run,
        source=path,
    )


class ScenarioRegistry:
    """Discovers scenarios and resolves them by name."""

    def __init__(self, scenarios_dir: Union[str, Path]):
        self.scenarios_dir = Path(scenarios_dir)

    def load(self) -> List[ScenarioDescriptor]:
        """
        Load every scenario module from the scenario directory.

        Invalid modules and duplicate names are skipped with a warning; the
        first module (in file name order) to claim a name keeps it.

        Returns:
            Descriptors in registry order (sorted file name order)

        Raises:
            ConfigurationError: If the directory is missing or yields no scenarios
        """
        if not self.scenarios_dir.is_dir():
            raise ConfigurationError(f"Scenario directory not found: {self.scenarios_dir}")

        descriptors: List[ScenarioDescriptor] = []
        seen: Dict[str, Path] = {}

        for path in _scenario_files(self.scenarios_dir):
            try:
                descriptor = load_scenario_module(path)
            except ScenarioLoadError as e:
                logger.warning(f"Skipping invalid scenario module {path.name}: {e.reason}")
                continue

            if descriptor.name in seen:
                logger.warning(
                    f"Skipping duplicate scenario '{descriptor.name}' in {path.name} "
                    f"(already defined in {seen[descriptor.name].name})"
                )
                continue

            seen[descriptor.name] = path
            descriptors.append(descriptor)

        if not descriptors:
            raise ConfigurationError(f"No scenario modules found in {self.scenarios_dir}")

        logger.debug(f"Loaded {len(descriptors)} scenarios from {self.scenarios_dir}")
        return descriptors

    def list(self) -> List[Dict[str, str]]:
        """Scenario metadata (name and description) in registry order."""
        return [descriptor.metadata() for descriptor in self.load()]

    def get(self, name: str) -> Optional[ScenarioDescriptor]:
        """Look up a scenario by exact name over a fresh load."""
        for descriptor in self.load():
            if descriptor.name == name:
                return descriptor
        return None

    def require(self, name: str) -> ScenarioDescriptor:
        """Like get(), but raises ScenarioNotFoundError for an unknown name."""
        descriptor = self.get(name)
        if descriptor is None:
            raise ScenarioNotFoundError(name)
        return descriptor
