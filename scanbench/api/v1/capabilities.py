"""
==============================================================================
Capability Endpoints
==============================================================================

Quality tiers, focus modes and engines offered to callers.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanbench.core.dependencies import get_scan_service
from scanbench.services import ScanService


router = APIRouter(prefix="/capabilities", tags=["Capabilities"])


@router.get("")
async def get_capabilities(service: ScanService = Depends(get_scan_service)):
    """Describe the selectable profiles, focus modes and engines."""
    return {"success": True, **service.capabilities()}
