"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers.

Handlers:
---------
- scanner: Session notifications, start/stop commands and remote frames

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
