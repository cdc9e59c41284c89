"""
==============================================================================
Preferences Module
==============================================================================

User scanning preferences, persisted by an external collaborator.

Preferences are read once when a session starts to fill in whatever the
caller left out. The session core never writes them.

==============================================================================
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from pydantic import BaseModel, Field, field_validator

from scanbench.catalog import FocusMode, QualityProfile
from scanbench.devices import Facing


# Module logger
logger = logging.getLogger(__name__)


class ScanPreferences(BaseModel):
    """Stored defaults for session start."""
    engine: Optional[str] = Field(default=None, max_length=50)
    profile: Optional[QualityProfile] = Field(default=None)
    focus_mode: Optional[FocusMode] = Field(default=None)
    device_id: Optional[str] = Field(default=None, max_length=255)
    facing: Optional[Facing] = Field(default=None)

    @field_validator("engine", "device_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class PreferenceStore(Protocol):
    """Persistence boundary for ScanPreferences."""

    def load(self) -> ScanPreferences: ...

    def save(self, preferences: ScanPreferences) -> ScanPreferences: ...


class InMemoryPreferenceStore:
    """
    Process-local preference store.

    Example:
        >>> store = InMemoryPreferenceStore()
        >>> _ = store.save(ScanPreferences(engine="opencv-qr"))
        >>> store.load().engine
        'opencv-qr'
    """

    def __init__(self, initial: Optional[ScanPreferences] = None):
        self._preferences = initial or ScanPreferences()
        self._lock = threading.Lock()

    def load(self) -> ScanPreferences:
        with self._lock:
            return self._preferences.model_copy()

    def save(self, preferences: ScanPreferences) -> ScanPreferences:
        with self._lock:
            self._preferences = preferences.model_copy()
        logger.info(f"💾 Preferences saved: {preferences.model_dump(exclude_none=True)}")
        return preferences
