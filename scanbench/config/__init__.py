"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

Usage:
------
    from scanbench.config import get_settings, Settings

    settings = get_settings()
    print(settings.default_engine)
    print(settings.retry_max_attempts)

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
