"""Bundled Handraise scenarios. Modules starting with an underscore are shared helpers."""
