"""Scenario discovery."""

from handraise_e2e.scenarios.registry import ScenarioRegistry, load_scenario_module

__all__ = ["ScenarioRegistry", "load_scenario_module"]
