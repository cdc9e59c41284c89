"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- session: Session lifecycle control
- devices: Camera enumeration
- capabilities: Quality tiers, focus modes and engines
- preferences: Stored scanning defaults

==============================================================================
"""

from . import health, session, devices, capabilities, preferences

__all__ = ["health", "session", "devices", "capabilities", "preferences"]
