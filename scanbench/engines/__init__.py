"""
==============================================================================
Engines Package - Decode Back-ends
==============================================================================

Interchangeable decode engines behind one EngineAdapter contract.

Engines:
--------
- pyzbar: frame-pull, ZBar via pyzbar
- opencv-qr: frame-pull, cv2.QRCodeDetector
- remote-feed: push-callback, frames streamed by a WebSocket client

==============================================================================
"""

from .base import DetectionEvent, EngineAdapter, EngineContext, monotonic_ms, normalize_format
from .frame_pull import FramePullEngine, OpenCVQREngine, PyzbarEngine
from .remote_feed import FrameFeedHub, RemoteFeedEngine
from .registry import EngineRegistry, build_default_registry

__all__ = [
    "DetectionEvent",
    "EngineAdapter",
    "EngineContext",
    "EngineRegistry",
    "FrameFeedHub",
    "FramePullEngine",
    "OpenCVQREngine",
    "PyzbarEngine",
    "RemoteFeedEngine",
    "build_default_registry",
    "monotonic_ms",
    "normalize_format",
]
