"""Handraise browser end-to-end test runner."""

__version__ = "1.0.0"
