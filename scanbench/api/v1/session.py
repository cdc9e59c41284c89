"""
==============================================================================
Session Endpoints
==============================================================================

Start, stop and reconfigure the scan session.

Endpoints:
----------
- GET  /session          Current snapshot
- POST /session/start    Start (or restart) a session
- POST /session/stop     Stop the session (idempotent)
- POST /session/engine   Restart on another engine
- POST /session/device   Restart on another camera

==============================================================================
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends

from scanbench.core.dependencies import get_scan_service
from scanbench.schemas import StartSessionRequest, SwitchDeviceRequest, SwitchEngineRequest
from scanbench.services import ScanService
from scanbench.session import SessionSnapshot


router = APIRouter(prefix="/session", tags=["Session"])


class SessionAPIController:
    """Controller for session operations."""

    def __init__(self, service: ScanService):
        self._service = service

    @staticmethod
    def _response(snapshot: SessionSnapshot) -> dict:
        return {"success": True, "session": snapshot.to_dict()}

    def get_session(self) -> dict:
        """Get the current session snapshot."""
        return self._response(self._service.get_snapshot())

    async def start(self, data: StartSessionRequest) -> dict:
        """Start a session with the given parameters."""
        snapshot = await self._service.start_session(
            engine=data.engine,
            profile=data.profile,
            focus_mode=data.focus_mode,
            device_id=data.device_id,
            facing=data.facing,
        )
        return self._response(snapshot)

    async def stop(self) -> dict:
        """Stop the session."""
        return self._response(await self._service.stop_session())

    async def switch_engine(self, data: SwitchEngineRequest) -> dict:
        """Restart on another engine."""
        return self._response(await self._service.switch_engine(data.engine))

    async def switch_device(self, data: SwitchDeviceRequest) -> dict:
        """Restart on another camera."""
        return self._response(
            await self._service.switch_device(device_id=data.device_id, facing=data.facing)
        )


@router.get("")
async def get_session(service: ScanService = Depends(get_scan_service)):
    """Get the current session state, engine and last result."""
    controller = SessionAPIController(service)
    return controller.get_session()


@router.post("/start")
async def start_session(
    data: Optional[StartSessionRequest] = Body(default=None),
    service: ScanService = Depends(get_scan_service)
):
    """
    Start a scan session.

    Omitted parameters are filled from stored preferences, then from
    settings. A session already running is stopped first.
    """
    controller = SessionAPIController(service)
    return await controller.start(data or StartSessionRequest())


@router.post("/stop")
async def stop_session(service: ScanService = Depends(get_scan_service)):
    """Stop the scan session. Stopping an idle session is a no-op."""
    controller = SessionAPIController(service)
    return await controller.stop()


@router.post("/engine")
async def switch_engine(
    data: SwitchEngineRequest,
    service: ScanService = Depends(get_scan_service)
):
    """Restart the current session on another engine."""
    controller = SessionAPIController(service)
    return await controller.switch_engine(data)


@router.post("/device")
async def switch_device(
    data: SwitchDeviceRequest,
    service: ScanService = Depends(get_scan_service)
):
    """Restart the current session on another camera."""
    controller = SessionAPIController(service)
    return await controller.switch_device(data)
