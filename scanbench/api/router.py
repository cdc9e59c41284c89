"""
==============================================================================
API Router
==============================================================================

Mounts the v1 route modules under /api/v1:

    /health        probes
    /session       start, stop, engine and device switching
    /devices       camera enumeration
    /capabilities  quality tiers, focus modes, engines
    /preferences   stored scanning defaults

==============================================================================
"""

import logging

from fastapi import APIRouter

from scanbench.api.v1 import capabilities, devices, health, preferences, session


# Module logger
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

V1_MODULES = (health, session, devices, capabilities, preferences)


class MainAPIRouter:
    """Versioned REST surface of the scan service."""

    def __init__(self, prefix: str = API_PREFIX):
        self._router = APIRouter(prefix=prefix)
        for module in V1_MODULES:
            self._router.include_router(module.router)
        logger.debug(f"Mounted {len(V1_MODULES)} route modules under {prefix}")

    @property
    def router(self) -> APIRouter:
        return self._router


api_router = MainAPIRouter().router
