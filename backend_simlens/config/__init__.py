"""
Configuration management for Backend SimLens.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for the simulation API and history settings.
"""

from backend_simlens.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
