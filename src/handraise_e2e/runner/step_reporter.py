"""Progress sink shared by a scenario, its browser session and the engine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from handraise_e2e.logging_config import StructuredLogger

logger = logging.getLogger(__name__)

StepCallback = Callable[[str], None]


class StepReporter:
    """
    Fans every progress line out to the structured log and an optional callback.

    Lines are also buffered (with their UTC timestamp) so they can be written
    to the error log artifact when the scenario fails.
    """

    def __init__(
        self,
        scenario_name: str,
        slogger: StructuredLogger,
        on_step: Optional[StepCallback] = None,
    ):
        self.scenario_name = scenario_name
        self.slogger = slogger
        self.on_step = on_step
        self._lines: List[str] = []

    def emit(self, message: str) -> None:
        """Record one progress line."""
        message = str(message)
        timestamp = datetime.now(timezone.utc).isoformat()
        self._lines.append(f"[{timestamp}] {message}")
        self.slogger.scenario_activity(self.scenario_name, "step", {"message": message})

        if self.on_step is None:
            return
        try:
            self.on_step(message)
        except Exception as e:
            # Listener errors never reach the scenario
            logger.warning(f"Step callback failed for '{self.scenario_name}': {e}")

    __call__ = emit

    @property
    def lines(self) -> List[str]:
        """Buffered progress lines in emission order."""
        return list(self._lines)
