"""
==============================================================================
Capture Subsystem Tests
==============================================================================

OpenCV capture classification with cv2.VideoCapture replaced by a stub.

==============================================================================
"""

import numpy as np
import pytest

from scanbench.catalog import FocusMode, QualityProfile, get_capability_catalog
from scanbench.core.exceptions import ErrorKind, ScanError
from scanbench.devices import (
    ConstraintCandidate,
    DeviceInfo,
    Facing,
    OpenCVCaptureSubsystem,
    choose_device,
    infer_facing,
)
from scanbench.devices import opencv_capture


class StubVideoCapture:
    """Minimal cv2.VideoCapture stand-in; size requests clamp to the max mode."""

    opened = True
    width = 1280
    height = 720
    max_width = 1920
    max_height = 1080
    zoom = 0.0
    autofocus_supported = True
    instances = []

    def __init__(self, index):
        self.index = index
        self.released = False
        type(self).instances.append(self)

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        cv2 = opencv_capture.cv2
        if prop == cv2.CAP_PROP_AUTOFOCUS:
            return self.autofocus_supported
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            self.width = min(int(value), self.max_width)
        elif prop == cv2.CAP_PROP_FRAME_HEIGHT:
            self.height = min(int(value), self.max_height)
        return True

    def get(self, prop):
        cv2 = opencv_capture.cv2
        return {
            cv2.CAP_PROP_FRAME_WIDTH: self.width,
            cv2.CAP_PROP_FRAME_HEIGHT: self.height,
            cv2.CAP_PROP_FPS: 30.0,
            cv2.CAP_PROP_ZOOM: self.zoom,
        }.get(prop, 0)

    def read(self):
        return True, np.zeros((self.height, self.width, 3), np.uint8)

    def release(self):
        self.released = True


@pytest.fixture
def stub_capture(monkeypatch):
    class Stub(StubVideoCapture):
        instances = []

    monkeypatch.setattr(opencv_capture.cv2, "VideoCapture", Stub)
    return Stub


@pytest.fixture
def subsystem() -> OpenCVCaptureSubsystem:
    subsystem = OpenCVCaptureSubsystem(max_probe=2)
    # Indices without /dev nodes so no permission check applies
    subsystem._devices = [
        DeviceInfo("97", "Front Camera", 97, Facing.USER),
        DeviceInfo("98", "Back Camera", 98, Facing.ENVIRONMENT),
    ]
    return subsystem


def candidate(profile=None, device_id=None, facing=Facing.ENVIRONMENT, focus=None) -> ConstraintCandidate:
    tier = get_capability_catalog().tier(profile) if profile else None
    return ConstraintCandidate(
        device_id=device_id,
        facing=facing,
        resolution=tier.resolution if tier else None,
        frame_rate=tier.frame_rate if tier else None,
        focus_mode=focus,
    )


class TestDeviceSelection:
    """Tests for facing inference and device resolution."""

    @pytest.mark.parametrize("label, facing", [
        ("Back Camera", Facing.ENVIRONMENT),
        ("camera2 0, facing rear", Facing.ENVIRONMENT),
        ("Caméra arrière", Facing.ENVIRONMENT),
        ("Front Camera", Facing.USER),
        ("FaceTime HD Camera", Facing.USER),
        ("USB2.0 PC CAMERA", Facing.UNKNOWN),
    ])
    def test_infer_facing(self, label, facing):
        assert infer_facing(label) is facing

    def test_choose_explicit_device(self, subsystem):
        assert choose_device(subsystem._devices, "97", Facing.ENVIRONMENT).device_id == "97"

    def test_choose_unknown_device_raises(self, subsystem):
        with pytest.raises(ScanError) as exc_info:
            choose_device(subsystem._devices, "5", Facing.ENVIRONMENT)
        assert exc_info.value.kind is ErrorKind.DEVICE_NOT_FOUND

    def test_choose_by_facing(self, subsystem):
        assert choose_device(subsystem._devices, None, Facing.ENVIRONMENT).device_id == "98"
        assert choose_device(subsystem._devices, None, Facing.USER).device_id == "97"

    def test_choose_without_devices_raises(self):
        with pytest.raises(ScanError) as exc_info:
            choose_device([], None, Facing.ENVIRONMENT)
        assert exc_info.value.kind is ErrorKind.DEVICE_NOT_FOUND


class TestAcquisition:
    """Tests for acquire/release classification."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, subsystem, stub_capture):
        handle = await subsystem.acquire(candidate(QualityProfile.STANDARD, device_id="98"))

        assert handle.device.device_id == "98"
        assert (handle.width, handle.height) == (1280, 720)
        ok, frame = handle.read()
        assert ok and frame.shape == (720, 1280, 3)

        await subsystem.release(handle)
        assert not handle.is_open
        assert stub_capture.instances[0].released

    @pytest.mark.asyncio
    async def test_second_acquire_of_held_device_is_busy(self, subsystem, stub_capture):
        handle = await subsystem.acquire(candidate(device_id="98"))

        with pytest.raises(ScanError) as exc_info:
            await subsystem.acquire(candidate(device_id="98"))
        assert exc_info.value.kind is ErrorKind.RESOURCE_BUSY

        await subsystem.release(handle)
        again = await subsystem.acquire(candidate(device_id="98"))
        await subsystem.release(again)

    @pytest.mark.asyncio
    async def test_unopenable_device_is_busy(self, subsystem, stub_capture):
        stub_capture.opened = False

        with pytest.raises(ScanError) as exc_info:
            await subsystem.acquire(candidate(device_id="98"))

        assert exc_info.value.kind is ErrorKind.RESOURCE_BUSY
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_resolution_below_minimum_is_rejected(self, subsystem, stub_capture):
        with pytest.raises(ScanError) as exc_info:
            await subsystem.acquire(candidate(QualityProfile.ULTRA, device_id="98"))

        assert exc_info.value.kind is ErrorKind.CONSTRAINT_REJECTED
        assert stub_capture.instances[-1].released
        handle = await subsystem.acquire(candidate(device_id="98"))
        await subsystem.release(handle)

    @pytest.mark.asyncio
    async def test_unsupported_focus_is_rejected(self, subsystem, stub_capture):
        stub_capture.autofocus_supported = False

        with pytest.raises(ScanError) as exc_info:
            await subsystem.acquire(candidate(device_id="98", focus=FocusMode.MACRO))

        assert exc_info.value.kind is ErrorKind.CONSTRAINT_REJECTED

    @pytest.mark.asyncio
    async def test_unknown_device_not_found(self, subsystem, stub_capture):
        with pytest.raises(ScanError) as exc_info:
            await subsystem.acquire(candidate(device_id="3"))

        assert exc_info.value.kind is ErrorKind.DEVICE_NOT_FOUND


class TestInspection:
    """Tests for reading a device's supported modes."""

    @pytest.mark.asyncio
    async def test_reports_current_and_max_mode(self, subsystem, stub_capture):
        stub_capture.zoom = 100.0

        capabilities = await subsystem.inspect("98")

        assert capabilities.device.device_id == "98"
        assert (capabilities.width, capabilities.height, capabilities.fps) == (1280, 720, 30.0)
        assert (capabilities.max_width, capabilities.max_height) == (1920, 1080)
        assert capabilities.profiles == (QualityProfile.LOW, QualityProfile.STANDARD, QualityProfile.HIGH)
        assert FocusMode.CONTINUOUS in capabilities.focus_modes
        assert capabilities.zoom == 100.0
        assert stub_capture.instances[-1].released

    @pytest.mark.asyncio
    async def test_without_focus_or_zoom_controls(self, subsystem, stub_capture):
        stub_capture.autofocus_supported = False

        capabilities = await subsystem.inspect("97")

        assert capabilities.focus_modes == (FocusMode.DEFAULT,)
        assert capabilities.zoom is None
        assert capabilities.to_dict()["focus_modes"] == ["default"]

    @pytest.mark.asyncio
    async def test_held_device_is_busy(self, subsystem, stub_capture):
        handle = await subsystem.acquire(candidate(device_id="98"))

        with pytest.raises(ScanError) as exc_info:
            await subsystem.inspect("98")
        assert exc_info.value.kind is ErrorKind.RESOURCE_BUSY

        await subsystem.release(handle)
        await subsystem.inspect("98")

    @pytest.mark.asyncio
    async def test_device_is_free_after_inspection(self, subsystem, stub_capture):
        await subsystem.inspect("98")

        handle = await subsystem.acquire(candidate(device_id="98"))
        await subsystem.release(handle)

    @pytest.mark.asyncio
    async def test_unopenable_device_is_busy(self, subsystem, stub_capture):
        stub_capture.opened = False

        with pytest.raises(ScanError) as exc_info:
            await subsystem.inspect("98")
        assert exc_info.value.kind is ErrorKind.RESOURCE_BUSY

    @pytest.mark.asyncio
    async def test_unknown_device_not_found(self, subsystem, stub_capture):
        with pytest.raises(ScanError) as exc_info:
            await subsystem.inspect("3")
        assert exc_info.value.kind is ErrorKind.DEVICE_NOT_FOUND
