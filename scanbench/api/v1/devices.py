"""
==============================================================================
Device Endpoints
==============================================================================

Camera enumeration and per-device inspection.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanbench.core.dependencies import get_scan_service
from scanbench.services import ScanService


router = APIRouter(prefix="/devices", tags=["Devices"])


@router.get("")
async def list_devices(service: ScanService = Depends(get_scan_service)):
    """List cameras visible to the capture subsystem."""
    devices = await service.list_devices()
    return {
        "success": True,
        "total": len(devices),
        "devices": [device.to_dict() for device in devices]
    }


@router.get("/{device_id}/capabilities")
async def device_capabilities(device_id: str, service: ScanService = Depends(get_scan_service)):
    """
    Open a camera briefly and report its modes and controls.

    Fails with 409 while a session holds the camera.
    """
    capabilities = await service.inspect_device(device_id)
    return {
        "success": True,
        "capabilities": capabilities.to_dict()
    }
