"""
==============================================================================
OpenCV Capture Subsystem
==============================================================================

Camera enumeration, acquisition and inspection backed by cv2.VideoCapture.

Failure classification:
----------------------
- Unknown device id or no camera at all  -> DEVICE_NOT_FOUND
- /dev/videoN exists but is not readable -> PERMISSION_DENIED
- Device held by another acquisition, or
  present but refuses to open            -> RESOURCE_BUSY (transient)
- Negotiated size below the minimum, or
  focus control refused                  -> CONSTRAINT_REJECTED

All blocking OpenCV calls run in worker threads.

==============================================================================
"""

from __future__ import annotations

import asyncio
import glob
import logging
import os
import threading
from pathlib import Path
from typing import Any, List, Optional, Set, Tuple

import cv2

from scanbench.catalog import FocusMode, get_capability_catalog
from scanbench.core import exceptions
from .models import ConstraintCandidate, DeviceCapabilities, DeviceInfo, Facing


# Module logger
logger = logging.getLogger(__name__)


_ENVIRONMENT_KEYWORDS = ("back", "rear", "environment", "arrière", "world")
_USER_KEYWORDS = ("front", "user", "face", "integrated", "facetime")


def infer_facing(label: str) -> Facing:
    """Guess facing direction from a device label."""
    lowered = label.lower()
    if any(word in lowered for word in _ENVIRONMENT_KEYWORDS):
        return Facing.ENVIRONMENT
    if any(word in lowered for word in _USER_KEYWORDS):
        return Facing.USER
    return Facing.UNKNOWN


def choose_device(
    devices: List[DeviceInfo],
    device_id: Optional[str],
    facing: Facing
) -> DeviceInfo:
    """
    Resolve a request to a concrete device.

    An explicit id must match exactly. A facing hint prefers the first
    device with that facing and falls back to the first device.

    Raises:
        ScanError: DEVICE_NOT_FOUND when nothing matches
    """
    if device_id:
        for device in devices:
            if device.device_id == device_id:
                return device
        raise exceptions.device_not_found(device_id)

    if not devices:
        raise exceptions.device_not_found()

    for device in devices:
        if device.facing == facing:
            return device
    return devices[0]


class OpenCVCaptureHandle:
    """Exclusively-held cv2.VideoCapture with its negotiated mode."""

    def __init__(self, device: DeviceInfo, capture: Any, width: int, height: int, fps: Optional[float]):
        self.device = device
        self.width = width
        self.height = height
        self.fps = fps
        self._cap = capture
        self._lock = threading.Lock()

    def read(self) -> Tuple[bool, Any]:
        with self._lock:
            if self._cap is None:
                return False, None
            return self._cap.read()

    def close(self) -> None:
        # Waits for an in-flight read on another thread.
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None

    @property
    def is_open(self) -> bool:
        return self._cap is not None


class OpenCVCaptureSubsystem:
    """
    Capture subsystem for local V4L2/UVC cameras.

    Attributes:
        _max_probe: Indices probed when /dev/video* nodes are unavailable
        _in_use: Device ids currently held by a handle

    Example:
        >>> capture = OpenCVCaptureSubsystem(max_probe=4)
        >>> devices = await capture.list_devices()
        >>> handle = await capture.acquire(candidate)
        >>> await capture.release(handle)
    """

    def __init__(self, max_probe: int = 4) -> None:
        self._max_probe = max_probe
        self._in_use: Set[str] = set()
        self._devices: List[DeviceInfo] = []

    # =========================================================================
    # ENUMERATION
    # =========================================================================

    async def list_devices(self) -> List[DeviceInfo]:
        """Enumerate cameras in a worker thread."""
        self._devices = await asyncio.to_thread(self._enumerate_sync)
        logger.debug(f"Enumerated {len(self._devices)} capture devices")
        return list(self._devices)

    def _enumerate_sync(self) -> List[DeviceInfo]:
        indices = self._indices_from_dev_nodes()
        devices: List[DeviceInfo] = []

        if indices:
            for index in indices[: self._max_probe]:
                label = self._read_sysfs_name(index) or f"Camera {index}"
                devices.append(DeviceInfo(str(index), label, index, infer_facing(label)))
            return devices

        # No device nodes (non-Linux): probe indices directly.
        for index in range(self._max_probe):
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    label = f"Camera {index}"
                    devices.append(DeviceInfo(str(index), label, index, infer_facing(label)))
            finally:
                cap.release()
        return devices

    @staticmethod
    def _indices_from_dev_nodes() -> List[int]:
        indices = []
        for path in glob.glob("/dev/video*"):
            try:
                indices.append(int(Path(path).name.replace("video", "")))
            except ValueError:
                continue
        return sorted(indices)

    @staticmethod
    def _read_sysfs_name(index: int) -> Optional[str]:
        sys_name = Path(f"/sys/class/video4linux/video{index}/name")
        try:
            if sys_name.exists():
                return sys_name.read_text(encoding="utf-8").strip() or None
        except OSError:
            return None
        return None

    # =========================================================================
    # ACQUISITION
    # =========================================================================

    async def acquire(self, candidate: ConstraintCandidate) -> OpenCVCaptureHandle:
        """
        Open and configure a camera for the candidate.

        Args:
            candidate: Acquisition request

        Returns:
            Live capture handle

        Raises:
            ScanError: Classified acquisition failure
        """
        devices = self._devices or await self.list_devices()
        device = choose_device(devices, candidate.device_id, candidate.facing)

        if device.device_id in self._in_use:
            raise exceptions.resource_busy(device.device_id)

        self._check_access(device)

        self._in_use.add(device.device_id)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self._open_sync, device, candidate)

        try:
            handle = await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; release whatever it opens.
            future.add_done_callback(lambda fut: self._discard_late_open(fut, device))
            raise
        except BaseException:
            self._in_use.discard(device.device_id)
            raise

        logger.info(
            f"📷 Acquired {device.label} at {handle.width}x{handle.height}"
            f" ({candidate.describe()})"
        )
        return handle

    @staticmethod
    def _check_access(device: DeviceInfo) -> None:
        dev_path = f"/dev/video{device.index}"
        if os.path.exists(dev_path) and not os.access(dev_path, os.R_OK | os.W_OK):
            raise exceptions.permission_denied(f"No read/write access to {dev_path}")

    def _discard_late_open(self, future: "asyncio.Future", device: DeviceInfo) -> None:
        if not future.cancelled() and future.exception() is None:
            future.result().close()
            logger.debug(f"Released late-opened capture for {device.label}")
        self._in_use.discard(device.device_id)

    def _open_sync(self, device: DeviceInfo, candidate: ConstraintCandidate) -> OpenCVCaptureHandle:
        cap = cv2.VideoCapture(device.index)
        if not cap.isOpened():
            cap.release()
            raise exceptions.resource_busy(device.device_id)

        try:
            if candidate.resolution:
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, candidate.resolution.ideal_width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, candidate.resolution.ideal_height)
            if candidate.frame_rate:
                cap.set(cv2.CAP_PROP_FPS, candidate.frame_rate)

            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
            fps = float(cap.get(cv2.CAP_PROP_FPS) or 0) or None

            if candidate.resolution and not candidate.resolution.satisfied_by(width, height):
                raise exceptions.constraint_rejected(
                    f"negotiated {width}x{height} below minimum "
                    f"{candidate.resolution.min_width}x{candidate.resolution.min_height}",
                    {"width": width, "height": height}
                )

            if candidate.focus_mode and candidate.focus_mode is not FocusMode.DEFAULT:
                autofocus = 1 if candidate.focus_mode is FocusMode.CONTINUOUS else 0
                if not cap.set(cv2.CAP_PROP_AUTOFOCUS, autofocus):
                    raise exceptions.constraint_rejected(
                        f"focus mode {candidate.focus_mode.value} unsupported"
                    )
        except BaseException:
            cap.release()
            raise

        return OpenCVCaptureHandle(device, cap, width, height, fps)

    async def release(self, handle: OpenCVCaptureHandle) -> None:
        """Release a handle; repeated calls are no-ops."""
        if handle.is_open:
            await asyncio.to_thread(handle.close)
            logger.info(f"📷 Released {handle.device.label}")
        self._in_use.discard(handle.device.device_id)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    async def inspect(self, device_id: str) -> DeviceCapabilities:
        """
        Open a device briefly and read back what it supports.

        The device is held for the duration, so probing a camera that a
        session owns is RESOURCE_BUSY rather than a second open.

        Raises:
            ScanError: Classified as for acquire()
        """
        devices = self._devices or await self.list_devices()
        device = choose_device(devices, device_id, Facing.UNKNOWN)

        if device.device_id in self._in_use:
            raise exceptions.resource_busy(device.device_id)
        self._check_access(device)

        self._in_use.add(device.device_id)
        try:
            capabilities = await asyncio.to_thread(self._inspect_sync, device)
        finally:
            self._in_use.discard(device.device_id)

        logger.info(
            f"🔍 Inspected {device.label}: max {capabilities.max_width}x{capabilities.max_height}, "
            f"profiles {[p.value for p in capabilities.profiles]}"
        )
        return capabilities

    def _inspect_sync(self, device: DeviceInfo) -> DeviceCapabilities:
        cap = cv2.VideoCapture(device.index)
        if not cap.isOpened():
            cap.release()
            raise exceptions.resource_busy(device.device_id)

        try:
            width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
            height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
            fps = float(cap.get(cv2.CAP_PROP_FPS) or 0) or None
            zoom = float(cap.get(cv2.CAP_PROP_ZOOM) or 0) or None

            # Drivers clamp an oversized request to their largest mode.
            tiers = get_capability_catalog().tiers()
            largest = max(tiers, key=lambda tier: tier.resolution.ideal_width)
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, largest.resolution.ideal_width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, largest.resolution.ideal_height)
            max_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0) or width
            max_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0) or height

            profiles = tuple(
                tier.profile for tier in tiers
                if tier.resolution.satisfied_by(max_width, max_height)
            )

            focus_modes = [FocusMode.DEFAULT]
            if cap.set(cv2.CAP_PROP_AUTOFOCUS, 1):
                focus_modes.append(FocusMode.CONTINUOUS)
            if cap.set(cv2.CAP_PROP_AUTOFOCUS, 0):
                focus_modes.extend([FocusMode.SINGLE_SHOT, FocusMode.MACRO])
        finally:
            cap.release()

        return DeviceCapabilities(
            device=device,
            width=width,
            height=height,
            fps=fps,
            max_width=max_width,
            max_height=max_height,
            profiles=profiles,
            focus_modes=tuple(focus_modes),
            zoom=zoom,
        )
