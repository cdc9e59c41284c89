"""
==============================================================================
Scan Runtime Module
==============================================================================

Wires the capture subsystem, engines, notification sinks, preferences and
session controller into one process-wide runtime.

Composition:
------------
    Settings ──► RetryPolicy ──┐
    OpenCVCaptureSubsystem ────┤
    EngineRegistry (+ hub) ────┼──► SessionController ──► ScanService
    Logging + Broadcast sinks ─┘

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from scanbench.catalog import get_capability_catalog
from scanbench.config import Settings, get_settings
from scanbench.devices import CaptureSubsystem, OpenCVCaptureSubsystem
from scanbench.engines import EngineRegistry, FrameFeedHub, build_default_registry
from scanbench.notifications import (
    BroadcastNotificationSink,
    CompositeNotificationSink,
    LoggingNotificationSink,
)
from scanbench.preferences import InMemoryPreferenceStore, PreferenceStore
from scanbench.session import SessionController, RetryPolicy
from .scan_service import ScanService


# Module logger
logger = logging.getLogger(__name__)


@dataclass
class ScanRuntime:
    """Process-wide collaborators shared by routes and the WebSocket."""

    settings: Settings
    capture: CaptureSubsystem
    feed_hub: FrameFeedHub
    engines: EngineRegistry
    broadcast: BroadcastNotificationSink
    preferences: PreferenceStore
    controller: SessionController
    service: ScanService

    async def shutdown(self) -> None:
        await self.controller.shutdown()


def build_runtime(
    settings: Settings,
    capture: Optional[CaptureSubsystem] = None,
    preferences: Optional[PreferenceStore] = None,
) -> ScanRuntime:
    """
    Build a runtime from settings.

    Args:
        settings: Application settings
        capture: Capture subsystem override (defaults to OpenCV)
        preferences: Preference store override (defaults to in-memory)

    Returns:
        Fully wired ScanRuntime
    """
    capture = capture or OpenCVCaptureSubsystem(max_probe=settings.max_probe_devices)
    preferences = preferences or InMemoryPreferenceStore()
    feed_hub = FrameFeedHub()
    engines = build_default_registry(settings, feed_hub)

    broadcast = BroadcastNotificationSink(
        haptic=settings.haptic_feedback,
        display_ms=settings.notification_duration_ms,
    )
    sink = CompositeNotificationSink([LoggingNotificationSink(), broadcast])

    controller = SessionController(
        capture=capture,
        engines=engines,
        sink=sink,
        policy=RetryPolicy.from_settings(settings),
        debounce_window_ms=settings.debounce_window_ms,
        formats=settings.barcode_formats_list,
        scan_interval=settings.scan_interval_seconds,
    )
    service = ScanService(
        controller=controller,
        capture=capture,
        engines=engines,
        catalog=get_capability_catalog(),
        preferences=preferences,
        settings=settings,
    )

    logger.debug(f"Runtime built with engines: {', '.join(engines.kinds())}")
    return ScanRuntime(
        settings=settings,
        capture=capture,
        feed_hub=feed_hub,
        engines=engines,
        broadcast=broadcast,
        preferences=preferences,
        controller=controller,
        service=service,
    )


@lru_cache()
def get_runtime() -> ScanRuntime:
    """Get the cached process-wide runtime."""
    return build_runtime(get_settings())
