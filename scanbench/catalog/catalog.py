"""
==============================================================================
Capability Catalog Module
==============================================================================

Static description of quality tiers and focus modes.

Tiers:
------
    low       640x480   (min 320x240)    15 fps
    standard  1280x720  (min 720x480)    30 fps
    high      1920x1080 (min 1080x720)   30 fps
    ultra     3840x2160 (min 2160x1080)  24 fps

==============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from .models import FocusMode, QualityProfile, QualityTier, ResolutionBounds


_TIERS: Dict[QualityProfile, QualityTier] = {
    QualityProfile.LOW: QualityTier(
        profile=QualityProfile.LOW,
        label="SD (480p)",
        resolution=ResolutionBounds(min_width=320, ideal_width=640, min_height=240, ideal_height=480),
        frame_rate=15,
    ),
    QualityProfile.STANDARD: QualityTier(
        profile=QualityProfile.STANDARD,
        label="HD (720p)",
        resolution=ResolutionBounds(min_width=720, ideal_width=1280, min_height=480, ideal_height=720),
        frame_rate=30,
    ),
    QualityProfile.HIGH: QualityTier(
        profile=QualityProfile.HIGH,
        label="Full HD (1080p)",
        resolution=ResolutionBounds(min_width=1080, ideal_width=1920, min_height=720, ideal_height=1080),
        frame_rate=30,
    ),
    QualityProfile.ULTRA: QualityTier(
        profile=QualityProfile.ULTRA,
        label="4K (2160p)",
        resolution=ResolutionBounds(min_width=2160, ideal_width=3840, min_height=1080, ideal_height=2160),
        frame_rate=24,
    ),
}

_FOCUS_LABELS: Dict[FocusMode, str] = {
    FocusMode.DEFAULT: "Default",
    FocusMode.CONTINUOUS: "Continuous",
    FocusMode.SINGLE_SHOT: "Single Shot",
    FocusMode.MACRO: "Macro",
}


class CapabilityCatalog:
    """
    Read-only lookup of quality tiers and focus modes.

    Example:
        >>> catalog = get_capability_catalog()
        >>> catalog.tier(QualityProfile.HIGH).resolution.ideal_width
        1920
    """

    def tier(self, profile: QualityProfile) -> QualityTier:
        """Resolve a profile to its concrete tier."""
        return _TIERS[QualityProfile(profile)]

    def tiers(self) -> List[QualityTier]:
        return list(_TIERS.values())

    def focus_modes(self) -> List[FocusMode]:
        return list(_FOCUS_LABELS)

    def focus_label(self, mode: FocusMode) -> str:
        return _FOCUS_LABELS[FocusMode(mode)]

    def describe(self) -> dict:
        """Serializable view for option pickers."""
        return {
            "profiles": [
                {
                    "id": tier.profile.value,
                    "label": tier.label,
                    "min_width": tier.resolution.min_width,
                    "ideal_width": tier.resolution.ideal_width,
                    "min_height": tier.resolution.min_height,
                    "ideal_height": tier.resolution.ideal_height,
                    "frame_rate": tier.frame_rate,
                }
                for tier in self.tiers()
            ],
            "focus_modes": [
                {"id": mode.value, "label": label}
                for mode, label in _FOCUS_LABELS.items()
            ],
        }


@lru_cache(maxsize=1)
def get_capability_catalog() -> CapabilityCatalog:
    """Get the shared catalog instance."""
    return CapabilityCatalog()
