"""Suite orchestration: resolve a selector against the registry and run scenarios in order."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from handraise_e2e.browser.session import PlaywrightSessionProvider
from handraise_e2e.exceptions import ScenarioNotFoundError
from handraise_e2e.models import ExecutionResult, ScenarioDescriptor, Selector
from handraise_e2e.runner.artifacts import ArtifactStore
from handraise_e2e.runner.engine import ExecutionEngine
from handraise_e2e.scenarios.registry import ScenarioRegistry
from handraise_e2e.settings import RunnerSettings

logger = logging.getLogger(__name__)

EventCallback = Callable[[Dict[str, Any]], None]

SELECT_ALL = "all"


def step_event(message: str) -> Dict[str, Any]:
    return {
        "type": "step",
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def complete_event(result: ExecutionResult) -> Dict[str, Any]:
    return {"type": "complete", "result": result.to_dict()}


def all_complete_event(results: Iterable[ExecutionResult]) -> Dict[str, Any]:
    return {"type": "all-complete", "results": [r.to_dict() for r in results]}


class SuiteOrchestrator:
    """
    Runs scenarios strictly one after another.

    Every run reloads the registry so newly added or edited scenario modules
    are picked up. Unknown names never raise; they produce a failed
    "Test case not found" result in their position.
    """

    def __init__(self, registry: ScenarioRegistry, engine: ExecutionEngine):
        self.registry = registry
        self.engine = engine

    async def run_all(self, on_event: Optional[EventCallback] = None) -> List[ExecutionResult]:
        """Run every registered scenario in registry order."""
        descriptors = self.registry.load()
        results = [await self._execute(d, on_event) for d in descriptors]
        self._emit(on_event, all_complete_event(results))
        return results

    async def run_one(
        self, name: str, on_event: Optional[EventCallback] = None
    ) -> ExecutionResult:
        """Run a single scenario by name."""
        try:
            descriptor = self.registry.require(name)
        except ScenarioNotFoundError:
            descriptor = None
        return await self._run_named(name, descriptor, on_event)

    async def run_selected(
        self, selector: Selector, on_event: Optional[EventCallback] = None
    ) -> List[ExecutionResult]:
        """
        Run "all" or an explicit list of names.

        Explicit names run in the order given; unknown ones yield not-found
        results so the result count always equals the number requested.
        """
        if selector == SELECT_ALL:
            return await self.run_all(on_event)
        if isinstance(selector, str):
            raise ValueError(f'Selector must be "{SELECT_ALL}" or a list of names, got {selector!r}')

        index = self._index(self.registry.load())
        results = [await self._run_named(name, index.get(name), on_event) for name in selector]
        self._emit(on_event, all_complete_event(results))
        return results

    async def _run_named(
        self,
        name: str,
        descriptor: Optional[ScenarioDescriptor],
        on_event: Optional[EventCallback],
    ) -> ExecutionResult:
        if descriptor is None:
            logger.warning(f"Requested scenario not found: {name}")
            result = ExecutionResult.not_found(name)
            self._emit(on_event, complete_event(result))
            return result
        return await self._execute(descriptor, on_event)

    async def _execute(
        self, descriptor: ScenarioDescriptor, on_event: Optional[EventCallback]
    ) -> ExecutionResult:
        on_step = None
        if on_event is not None:

            def on_step(message: str) -> None:
                self._emit(on_event, step_event(message))

        result = await self.engine.execute(descriptor, on_step=on_step)
        self._emit(on_event, complete_event(result))
        return result

    @staticmethod
    def _index(descriptors: List[ScenarioDescriptor]) -> Dict[str, ScenarioDescriptor]:
        return {d.name: d for d in descriptors}

    @staticmethod
    def _emit(on_event: Optional[EventCallback], event: Dict[str, Any]) -> None:
        if on_event is None:
            return
        try:
            on_event(event)
        except Exception as e:
            logger.warning(f"Event listener failed for {event.get('type')} event: {e}")


def build_orchestrator(settings: RunnerSettings) -> SuiteOrchestrator:
    """Wire registry, Playwright sessions, artifact store and engine from settings."""
    engine = ExecutionEngine(
        session_provider=PlaywrightSessionProvider(settings),
        store=ArtifactStore(settings.artifacts_dir),
        timeout_seconds=settings.scenario_timeout_seconds,
        handraise_url=settings.handraise_url,
    )
    return SuiteOrchestrator(ScenarioRegistry(settings.scenarios_dir), engine)
