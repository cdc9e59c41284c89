"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides fake capture/engine collaborators, a recording notification
sink, controller fixtures and an API test client.

==============================================================================
"""

import asyncio
from typing import Callable, Generator, List, Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient

from scanbench.catalog import FocusMode, QualityProfile
from scanbench.config import Settings
from scanbench.core import exceptions
from scanbench.devices import ConstraintCandidate, DeviceCapabilities, DeviceInfo, DeviceSelector, Facing
from scanbench.engines import DetectionEvent, EngineAdapter, EngineRegistry
from scanbench.session import (
    FatalError,
    RetryPolicy,
    ScanResult,
    SessionController,
    SessionRequest,
    SessionState,
    StateChange,
)


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class FakeCaptureHandle:
    """Capture handle replaying a fixed list of frames."""

    def __init__(self, device: DeviceInfo, frames: List[Optional[np.ndarray]], read_error: Optional[Exception] = None):
        self.device = device
        self.width = 1280
        self.height = 720
        self.fps = 30.0
        self._frames = frames
        self._read_error = read_error

    def read(self):
        if self._read_error is not None:
            raise self._read_error
        if not self._frames:
            return False, None
        frame = self._frames.pop(0)
        return frame is not None, frame


class FakeCaptureSubsystem:
    """In-memory capture subsystem."""

    def __init__(self, devices: Optional[List[DeviceInfo]] = None):
        if devices is None:
            devices = [DeviceInfo(device_id="0", label="Back Camera", index=0, facing=Facing.ENVIRONMENT)]
        self.devices = devices
        self.frames: List[Optional[np.ndarray]] = []
        self.acquired: List[ConstraintCandidate] = []
        self.released: List[FakeCaptureHandle] = []
        self.read_error: Optional[Exception] = None

    async def list_devices(self) -> List[DeviceInfo]:
        return list(self.devices)

    async def acquire(self, candidate: ConstraintCandidate) -> FakeCaptureHandle:
        self.acquired.append(candidate)
        return FakeCaptureHandle(self.devices[0], self.frames, self.read_error)

    async def release(self, handle: FakeCaptureHandle) -> None:
        self.released.append(handle)

    async def inspect(self, device_id: str) -> DeviceCapabilities:
        for device in self.devices:
            if device.device_id == device_id:
                return DeviceCapabilities(
                    device=device,
                    width=1280,
                    height=720,
                    fps=30.0,
                    max_width=1920,
                    max_height=1080,
                    profiles=(QualityProfile.LOW, QualityProfile.STANDARD, QualityProfile.HIGH),
                    focus_modes=(FocusMode.DEFAULT, FocusMode.CONTINUOUS),
                )
        raise exceptions.device_not_found(device_id)


class FakeEngine(EngineAdapter):
    """
    Scriptable engine.

    outcomes are consumed one per start() call (None = success);
    fail_with supplies the error once outcomes run out.
    """

    label = "Fake engine"
    variant = "frame-pull"

    def __init__(self, kind: str = "fake"):
        super().__init__()
        self.kind = kind
        self.outcomes: List[Optional[Exception]] = []
        self.fail_with: Optional[Callable[[], Exception]] = None
        self.prepare_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.block_start: Optional[asyncio.Event] = None
        self.start_calls: List[ConstraintCandidate] = []
        self.contexts = []
        self.prepare_calls = 0
        self.stop_calls = 0

    async def prepare(self, context) -> None:
        self.prepare_calls += 1
        if self.prepare_error is not None:
            raise self.prepare_error
        self._context = context
        self.contexts.append(context)

    async def start(self, candidate: ConstraintCandidate) -> None:
        self.start_calls.append(candidate)
        if self.block_start is not None:
            await self.block_start.wait()
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        elif self.fail_with is not None:
            outcome = self.fail_with()
        else:
            outcome = None
        if outcome is not None:
            raise outcome

    async def stop(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error

    def emit(self, value: str, timestamp: float, fmt: str = "QRCODE", context=None) -> None:
        (context or self._context).emit(DetectionEvent(value=value, format=fmt, timestamp=timestamp))

    def fault(self, error: Exception) -> None:
        self._context.report_fault(error)


class RecordingSink:
    """Notification sink keeping everything it receives."""

    def __init__(self):
        self.results: List[ScanResult] = []
        self.changes: List[StateChange] = []
        self.errors: List[FatalError] = []

    def on_result(self, result: ScanResult) -> None:
        self.results.append(result)

    def on_state_change(self, change: StateChange) -> None:
        self.changes.append(change)

    def on_fatal_error(self, error: FatalError) -> None:
        self.errors.append(error)

    def states(self, session_id: Optional[str] = None) -> List[SessionState]:
        return [
            change.new_state for change in self.changes
            if session_id is None or change.session_id == session_id
        ]


async def wait_for_state(controller: SessionController, state: SessionState, timeout: float = 1.0) -> None:
    """Poll until the controller reaches a state."""
    async def _poll():
        while controller.state is not state:
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


# ============================================================================
# CONTROLLER FIXTURES
# ============================================================================

@pytest.fixture
def capture() -> FakeCaptureSubsystem:
    return FakeCaptureSubsystem()


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def other_engine() -> FakeEngine:
    return FakeEngine(kind="fake-2")


@pytest.fixture
def registry(engine: FakeEngine, other_engine: FakeEngine) -> EngineRegistry:
    registry = EngineRegistry()
    registry.register(engine.kind, lambda: engine)
    registry.register(other_engine.kind, lambda: other_engine)
    return registry


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, backoff=0, acquire_timeout=1.0, stop_timeout=1.0)


@pytest.fixture
def controller(capture, registry, sink, policy) -> SessionController:
    return SessionController(
        capture=capture,
        engines=registry,
        sink=sink,
        policy=policy,
        debounce_window_ms=300,
    )


@pytest.fixture
def request_high() -> SessionRequest:
    """High profile, explicit device, continuous focus: four candidates."""
    return SessionRequest(
        profile=QualityProfile.HIGH,
        selector=DeviceSelector(device_id="0"),
        focus_mode=FocusMode.CONTINUOUS,
        engine_kind="fake",
    )


@pytest.fixture
def request_plain() -> SessionRequest:
    """High profile, explicit device, no focus hint: three candidates."""
    return SessionRequest(
        profile=QualityProfile.HIGH,
        selector=DeviceSelector(device_id="0"),
        focus_mode=FocusMode.DEFAULT,
        engine_kind="fake",
    )


# ============================================================================
# API FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        default_engine="fake",
        retry_backoff_ms=0,
        debounce_window_ms=300,
    )


@pytest.fixture
def runtime(settings: Settings, capture: FakeCaptureSubsystem, engine: FakeEngine, other_engine: FakeEngine):
    """Runtime with fake engines registered next to the built-in ones."""
    from scanbench.services import build_runtime

    runtime = build_runtime(settings, capture=capture)
    runtime.engines.register(engine.kind, lambda: engine)
    runtime.engines.register(other_engine.kind, lambda: other_engine)
    return runtime


@pytest.fixture
def client(runtime) -> Generator[TestClient, None, None]:
    """Create test client with the scan runtime overridden."""
    from scanbench.main import app
    from scanbench.core.dependencies import get_broadcast_sink, get_feed_hub, get_scan_service

    app.dependency_overrides[get_scan_service] = lambda: runtime.service
    app.dependency_overrides[get_feed_hub] = lambda: runtime.feed_hub
    app.dependency_overrides[get_broadcast_sink] = lambda: runtime.broadcast

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
