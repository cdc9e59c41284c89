"""
==============================================================================
Session Schemas Module
==============================================================================

Request bodies for session control endpoints.

Enumerated values (profile, focus mode, facing) are accepted as plain
strings and validated by ScanService so that unknown values produce the
application's own error codes.

==============================================================================
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class StartSessionRequest(BaseModel):
    """Session start parameters; omitted fields fall back to preferences."""
    engine: Optional[str] = Field(default=None, max_length=50)
    profile: Optional[str] = Field(default=None, max_length=20)
    focus_mode: Optional[str] = Field(default=None, max_length=20)
    device_id: Optional[str] = Field(default=None, max_length=255)
    facing: Optional[str] = Field(default=None, max_length=20)

    @field_validator("engine", "profile", "focus_mode", "device_id", "facing")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)


class SwitchEngineRequest(BaseModel):
    """Restart the running session on another engine."""
    engine: str = Field(..., min_length=1, max_length=50)

    @field_validator("engine")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class SwitchDeviceRequest(BaseModel):
    """Restart the running session on another camera."""
    device_id: Optional[str] = Field(default=None, max_length=255)
    facing: Optional[str] = Field(default=None, max_length=20)

    @field_validator("device_id", "facing")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        return _clean(v)
