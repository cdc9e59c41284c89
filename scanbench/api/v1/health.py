"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from scanbench.core.dependencies import get_scan_service
from scanbench.services import ScanService
from scanbench.session import SessionState


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, service: ScanService):
        self._service = service

    def check_session(self) -> str:
        """Report the session component status."""
        state = self._service.get_snapshot().state
        return "degraded" if state is SessionState.FAILED else "healthy"

    def get_health(self) -> dict:
        """Get full health status."""
        snapshot = self._service.get_snapshot()
        session_status = self.check_session()
        engines = [engine["kind"] for engine in self._service.capabilities()["engines"]]

        return {
            "status": session_status,
            "components": {
                "api": "healthy",
                "session": session_status,
            },
            "details": {
                "session_state": snapshot.state.value,
                "engines": engines,
            }
        }


@router.get("")
async def health_check(service: ScanService = Depends(get_scan_service)):
    """
    Health check endpoint.

    Returns API status and the state of the scan session.
    """
    controller = HealthController(service)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
