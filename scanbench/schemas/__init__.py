"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request schemas using Pydantic for validation.

This package provides:
- Session: Session control request bodies

==============================================================================
"""

from .session import StartSessionRequest, SwitchEngineRequest, SwitchDeviceRequest

__all__ = [
    "StartSessionRequest",
    "SwitchEngineRequest",
    "SwitchDeviceRequest",
]
