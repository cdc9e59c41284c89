"""
Capture subsystem contract.

The capture subsystem is the only component that touches camera
hardware. Every failure it raises is a classified ScanError.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Tuple

from .models import ConstraintCandidate, DeviceCapabilities, DeviceInfo


class CaptureHandle(Protocol):
    """A live, exclusively-held capture resource."""

    device: DeviceInfo
    width: int
    height: int
    fps: Optional[float]

    def read(self) -> Tuple[bool, Any]:
        """Blocking read of the next frame."""


class CaptureSubsystem(Protocol):
    async def list_devices(self) -> List[DeviceInfo]:
        """Enumerate selectable capture devices."""

    async def acquire(self, candidate: ConstraintCandidate) -> CaptureHandle:
        """Open a device for the candidate or raise a classified ScanError."""

    async def release(self, handle: CaptureHandle) -> None:
        """Release a handle; must be safe to call more than once."""

    async def inspect(self, device_id: str) -> DeviceCapabilities:
        """Open a device briefly and report what it supports."""
