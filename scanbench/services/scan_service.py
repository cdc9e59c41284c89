"""
==============================================================================
Scan Service Module
==============================================================================

Facade between the presentation layer (HTTP routes, WebSocket) and the
SessionController.

This module implements:
- ScanService: validates caller input, fills omitted parameters from
  stored preferences and settings, and drives the controller
- Device listing, per-device inspection and capability description

Parameter Resolution:
---------------------
For every start parameter the first present value wins:

    caller argument -> stored preference -> settings default

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from scanbench.catalog import CapabilityCatalog, FocusMode, QualityProfile
from scanbench.config import Settings
from scanbench.core import exceptions
from scanbench.devices import CaptureSubsystem, DeviceCapabilities, DeviceInfo, DeviceSelector, Facing
from scanbench.engines import EngineRegistry
from scanbench.preferences import PreferenceStore, ScanPreferences
from scanbench.session import SessionController, SessionRequest, SessionSnapshot, SessionState


# Module logger
logger = logging.getLogger(__name__)


class ScanService:
    """
    Scan session operations for the API layer.

    Attributes:
        _controller: SessionController owning the session
        _capture: CaptureSubsystem used for device listing
        _engines: EngineRegistry of decode back-ends
        _catalog: CapabilityCatalog of tiers and focus modes
        _preferences: PreferenceStore consulted at session start
        _settings: Application settings (defaults)

    Example:
        >>> service = ScanService(controller, capture, registry, catalog, store, settings)
        >>> snapshot = await service.start_session(engine="opencv-qr")
        >>> snapshot.state
        <SessionState.RUNNING: 'running'>
    """

    def __init__(
        self,
        controller: SessionController,
        capture: CaptureSubsystem,
        engines: EngineRegistry,
        catalog: CapabilityCatalog,
        preferences: PreferenceStore,
        settings: Settings,
    ) -> None:
        self._controller = controller
        self._capture = capture
        self._engines = engines
        self._catalog = catalog
        self._preferences = preferences
        self._settings = settings

    @property
    def controller(self) -> SessionController:
        return self._controller

    # =========================================================================
    # SESSION OPERATIONS
    # =========================================================================

    async def start_session(
        self,
        engine: Optional[str] = None,
        profile: Optional[str] = None,
        focus_mode: Optional[str] = None,
        device_id: Optional[str] = None,
        facing: Optional[str] = None,
    ) -> SessionSnapshot:
        """
        Start (or restart) the scan session.

        Args:
            engine: Engine kind
            profile: Quality profile name
            focus_mode: Focus mode name
            device_id: Explicit camera id
            facing: Facing hint when no device id is given

        Returns:
            SessionSnapshot once Running

        Raises:
            AppException: Invalid parameters, or the session ended in Failed
        """
        request = self.build_request(engine, profile, focus_mode, device_id, facing)
        logger.info(
            f"▶️ Start: engine={request.engine_kind}, profile={request.profile.value}, "
            f"focus={request.focus_mode.value}, device={request.selector.device_id or request.selector.facing.value}"
        )
        return self._settled(await self._controller.start(request))

    async def stop_session(self) -> SessionSnapshot:
        """Stop the current session; idempotent."""
        return await self._controller.stop()

    async def switch_engine(self, engine: str) -> SessionSnapshot:
        """Restart the current session on another engine."""
        engine = self._resolve_engine(engine)
        if self._controller.current_request is None:
            raise exceptions.no_active_session()
        return self._settled(await self._controller.switch_engine(engine))

    async def switch_device(
        self,
        device_id: Optional[str] = None,
        facing: Optional[str] = None,
    ) -> SessionSnapshot:
        """Restart the current session on another camera."""
        current = self._controller.current_request
        if current is None:
            raise exceptions.no_active_session()
        selector = DeviceSelector(
            device_id=device_id or None,
            facing=self._parse_facing(facing) if facing else current.selector.facing,
        )
        return self._settled(await self._controller.start(replace(current, selector=selector)))

    def get_snapshot(self) -> SessionSnapshot:
        return self._controller.snapshot()

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    async def list_devices(self) -> List[DeviceInfo]:
        return await self._capture.list_devices()

    async def inspect_device(self, device_id: str) -> DeviceCapabilities:
        """
        Report what one camera supports.

        Raises:
            AppException: DEVICE_UNAVAILABLE with a status matching the failure
        """
        try:
            return await self._capture.inspect(device_id)
        except exceptions.ScanError as e:
            logger.warning(f"⚠️ Could not inspect device {device_id}: {e.message}")
            raise exceptions.device_unavailable(e)

    def capabilities(self) -> Dict[str, Any]:
        description = self._catalog.describe()
        description["engines"] = self._engines.describe()
        description["default_engine"] = self._settings.default_engine
        return description

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    def get_preferences(self) -> ScanPreferences:
        return self._preferences.load()

    def save_preferences(self, preferences: ScanPreferences) -> ScanPreferences:
        if preferences.engine is not None:
            self._resolve_engine(preferences.engine)
        return self._preferences.save(preferences)

    # =========================================================================
    # REQUEST RESOLUTION
    # =========================================================================

    def build_request(
        self,
        engine: Optional[str] = None,
        profile: Optional[str] = None,
        focus_mode: Optional[str] = None,
        device_id: Optional[str] = None,
        facing: Optional[str] = None,
    ) -> SessionRequest:
        """Resolve caller input against preferences and settings."""
        prefs = self._preferences.load()

        engine_kind = self._resolve_engine(engine or prefs.engine or self._settings.default_engine)
        quality = self._parse_profile(profile or prefs.profile or self._settings.default_profile)
        focus = self._parse_focus(focus_mode or prefs.focus_mode or self._settings.default_focus_mode)

        if device_id or facing:
            selector = DeviceSelector(
                device_id=device_id or None,
                facing=self._parse_facing(facing) if facing else Facing.ENVIRONMENT,
            )
        else:
            selector = DeviceSelector(
                device_id=prefs.device_id,
                facing=prefs.facing or Facing.ENVIRONMENT,
            )

        return SessionRequest(
            profile=quality,
            selector=selector,
            focus_mode=focus,
            engine_kind=engine_kind,
        )

    def _resolve_engine(self, kind: str) -> str:
        kind = kind.strip().lower()
        if not self._engines.has(kind):
            raise exceptions.engine_not_found(kind)
        return kind

    @staticmethod
    def _parse_profile(value: Any) -> QualityProfile:
        try:
            return QualityProfile(str(getattr(value, "value", value)).strip().lower())
        except ValueError:
            raise exceptions.invalid_profile(str(value)) from None

    @staticmethod
    def _parse_focus(value: Any) -> FocusMode:
        try:
            return FocusMode(str(getattr(value, "value", value)).strip().lower())
        except ValueError:
            raise exceptions.invalid_focus_mode(str(value)) from None

    @staticmethod
    def _parse_facing(value: Any) -> Facing:
        try:
            return Facing(str(getattr(value, "value", value)).strip().lower())
        except ValueError:
            raise exceptions.invalid_facing(str(value)) from None

    @staticmethod
    def _settled(snapshot: SessionSnapshot) -> SessionSnapshot:
        if snapshot.state is SessionState.FAILED and snapshot.failure is not None:
            raise exceptions.session_failed(snapshot.failure.kind.value, snapshot.failure.message)
        return snapshot
