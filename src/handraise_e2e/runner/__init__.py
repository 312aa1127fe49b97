"""Scenario execution: progress reporting, artifact capture, engine and suite orchestration."""
