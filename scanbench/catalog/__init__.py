"""
Catalog Package - Camera Capabilities

Quality tiers and focus modes offered to callers.
"""

from .models import FocusMode, QualityProfile, QualityTier, ResolutionBounds
from .catalog import CapabilityCatalog, get_capability_catalog

__all__ = [
    "CapabilityCatalog",
    "FocusMode",
    "QualityProfile",
    "QualityTier",
    "ResolutionBounds",
    "get_capability_catalog",
]
