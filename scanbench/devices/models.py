"""
==============================================================================
Device Models Module
==============================================================================

Value objects exchanged with the capture subsystem.

- DeviceInfo: one selectable camera with a human-readable label
- DeviceSelector: explicit device id or facing-direction hint
- ConstraintCandidate: one fully-specified acquisition request
- DeviceCapabilities: modes and controls a camera reported when inspected

==============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from scanbench.catalog import FocusMode, QualityProfile, ResolutionBounds


class Facing(str, Enum):
    """Direction a camera points relative to the operator."""

    ENVIRONMENT = "environment"
    USER = "user"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DeviceInfo:
    """
    A capture device discovered during enumeration.

    Attributes:
        device_id: Stable identifier accepted by acquisition
        label: Human-readable name
        index: Backend-specific open index
        facing: Inferred facing direction
    """

    device_id: str
    label: str
    index: int
    facing: Facing = Facing.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "label": self.label,
            "index": self.index,
            "facing": self.facing.value,
        }


@dataclass(frozen=True)
class DeviceSelector:
    """Caller's device choice: an explicit id wins over the facing hint."""

    device_id: Optional[str] = None
    facing: Facing = Facing.ENVIRONMENT

    @property
    def is_explicit(self) -> bool:
        return bool(self.device_id)


@dataclass(frozen=True)
class ConstraintCandidate:
    """
    One concrete acquisition request in a fallback chain.

    A candidate with neither resolution nor focus constraints and no
    explicit device id is the minimal viable request.
    """

    device_id: Optional[str]
    facing: Facing
    resolution: Optional[ResolutionBounds] = None
    frame_rate: Optional[int] = None
    focus_mode: Optional[FocusMode] = None

    @property
    def is_minimal(self) -> bool:
        return (
            self.device_id is None
            and self.resolution is None
            and self.frame_rate is None
            and self.focus_mode is None
        )

    def describe(self) -> str:
        """Short form for log lines."""
        parts = [f"device={self.device_id}" if self.device_id else f"facing={self.facing.value}"]
        if self.resolution:
            parts.append(f"{self.resolution.ideal_width}x{self.resolution.ideal_height}")
        if self.frame_rate:
            parts.append(f"{self.frame_rate}fps")
        if self.focus_mode:
            parts.append(f"focus={self.focus_mode.value}")
        return " ".join(parts)

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "facing": self.facing.value,
            "resolution": (
                {
                    "min_width": self.resolution.min_width,
                    "ideal_width": self.resolution.ideal_width,
                    "min_height": self.resolution.min_height,
                    "ideal_height": self.resolution.ideal_height,
                }
                if self.resolution else None
            ),
            "frame_rate": self.frame_rate,
            "focus_mode": self.focus_mode.value if self.focus_mode else None,
        }


@dataclass(frozen=True)
class DeviceCapabilities:
    """
    What a camera reported when opened for inspection.

    Attributes:
        device: The inspected device
        width, height, fps: Mode the device opened in
        max_width, max_height: Largest size it accepted when asked
        profiles: Quality profiles whose minimum size the device can meet
        focus_modes: Focus modes the device accepted
        zoom: Current zoom value, None when the control is absent
    """

    device: DeviceInfo
    width: int
    height: int
    fps: Optional[float]
    max_width: int
    max_height: int
    profiles: Tuple[QualityProfile, ...] = ()
    focus_modes: Tuple[FocusMode, ...] = (FocusMode.DEFAULT,)
    zoom: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "device": self.device.to_dict(),
            "current": {"width": self.width, "height": self.height, "fps": self.fps},
            "max_resolution": {"width": self.max_width, "height": self.max_height},
            "profiles": [profile.value for profile in self.profiles],
            "focus_modes": [mode.value for mode in self.focus_modes],
            "zoom": self.zoom,
        }
