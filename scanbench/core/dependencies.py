"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency injection for the scan runtime.

Dependency Hierarchy:
--------------------
                    ┌─────────────────┐
                    │  get_runtime()  │
                    └────────┬────────┘
                             │
        ┌────────────────────┼────────────────────┐
        │                    │                    │
┌───────▼────────┐  ┌────────▼───────┐  ┌────────▼────────┐
│get_scan_service│  │ get_feed_hub   │  │get_broadcast_sink│
└────────────────┘  └────────────────┘  └─────────────────┘

Tests replace any of these through app.dependency_overrides.

Usage Examples:
--------------
    @router.get("/session")
    async def get_session(service: ScanService = Depends(get_scan_service)):
        return service.get_snapshot().to_dict()

==============================================================================
"""

from __future__ import annotations

from scanbench.engines import FrameFeedHub
from scanbench.notifications import BroadcastNotificationSink
from scanbench.services import ScanService, get_runtime


def get_scan_service() -> ScanService:
    """FastAPI dependency providing the ScanService."""
    return get_runtime().service


def get_feed_hub() -> FrameFeedHub:
    """FastAPI dependency providing the remote frame feed hub."""
    return get_runtime().feed_hub


def get_broadcast_sink() -> BroadcastNotificationSink:
    """FastAPI dependency providing the broadcast notification sink."""
    return get_runtime().broadcast
