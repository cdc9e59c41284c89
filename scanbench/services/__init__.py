"""
==============================================================================
Services Package - Business Logic Layer
==============================================================================

Service classes sitting between the API layer and the session core.

This package provides:
- ScanService: Session operations, discovery and preferences
- ScanRuntime: Process-wide wiring of capture, engines and sinks

Architecture Pattern: Service Layer
----------------------------------
    ┌─────────────────────┐
    │ API Router / WS     │
    └──────────┬──────────┘
               │
    ┌──────────▼──────────┐
    │    ScanService      │  ← Validation, defaults
    └──────────┬──────────┘
               │
    ┌──────────▼──────────┐
    │ SessionController   │  ← Lifecycle state machine
    └─────────────────────┘

==============================================================================
"""

from .scan_service import ScanService
from .runtime import ScanRuntime, build_runtime, get_runtime

__all__ = ["ScanRuntime", "ScanService", "build_runtime", "get_runtime"]
