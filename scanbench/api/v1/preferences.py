"""
==============================================================================
Preference Endpoints
==============================================================================

Read and replace the stored scanning defaults.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanbench.core.dependencies import get_scan_service
from scanbench.preferences import ScanPreferences
from scanbench.services import ScanService


router = APIRouter(prefix="/preferences", tags=["Preferences"])


class PreferenceController:
    """Controller for preference operations."""

    def __init__(self, service: ScanService):
        self._service = service

    def get(self) -> dict:
        """Get stored preferences."""
        preferences = self._service.get_preferences()
        return {"success": True, "preferences": preferences.model_dump(mode="json")}

    def replace(self, preferences: ScanPreferences) -> dict:
        """Replace stored preferences."""
        saved = self._service.save_preferences(preferences)
        return {"success": True, "preferences": saved.model_dump(mode="json")}


@router.get("")
async def get_preferences(service: ScanService = Depends(get_scan_service)):
    """Get the stored scanning defaults."""
    controller = PreferenceController(service)
    return controller.get()


@router.put("")
async def put_preferences(
    data: ScanPreferences,
    service: ScanService = Depends(get_scan_service)
):
    """
    Replace the stored scanning defaults.

    Takes effect at the next session start.
    """
    controller = PreferenceController(service)
    return controller.replace(data)
