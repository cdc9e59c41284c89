"""
==============================================================================
Capability Models Module
==============================================================================

Value types describing camera quality tiers and focus modes.

==============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QualityProfile(str, Enum):
    """Caller-selectable quality tier."""

    LOW = "low"
    STANDARD = "standard"
    HIGH = "high"
    ULTRA = "ultra"


class FocusMode(str, Enum):
    """Focus behaviour hint; DEFAULT means no hint is sent."""

    DEFAULT = "default"
    CONTINUOUS = "continuous"
    SINGLE_SHOT = "single-shot"
    MACRO = "macro"


@dataclass(frozen=True)
class ResolutionBounds:
    """
    Concrete resolution request for a quality tier.

    Attributes:
        min_width: Smallest acceptable frame width
        ideal_width: Preferred frame width
        min_height: Smallest acceptable frame height
        ideal_height: Preferred frame height
    """

    min_width: int
    ideal_width: int
    min_height: int
    ideal_height: int

    def satisfied_by(self, width: int, height: int) -> bool:
        """Check whether a negotiated frame size meets the minimums."""
        return width >= self.min_width and height >= self.min_height


@dataclass(frozen=True)
class QualityTier:
    """A quality profile resolved to resolution bounds and frame rate."""

    profile: QualityProfile
    label: str
    resolution: ResolutionBounds
    frame_rate: int
