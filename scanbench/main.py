"""
==============================================================================
Scan Bench - Application Entry Point
==============================================================================

Single-session camera scanning service:
- REST session control under /api/v1
- Live notifications and remote frame input on /ws/scan
- Decode engines: pyzbar, OpenCV QR, remote feed

Usage:
------
    uvicorn scanbench.main:app --reload
    uvicorn scanbench.main:app --host 0.0.0.0 --port 8000

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from scanbench.api.router import api_router
from scanbench.config import Settings, get_settings
from scanbench.core.exceptions import register_exception_handlers
from scanbench.services import ScanRuntime, get_runtime
from scanbench.websockets import scanner_router


settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


class Application:
    """
    Builds the FastAPI app around the process-wide ScanRuntime.

    The runtime is resolved lazily at startup so that importing this
    module never touches capture hardware.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._app = FastAPI(
            title=settings.app_name,
            version="1.0.0",
            description="Camera scan session controller with pluggable decode engines",
            lifespan=self._lifespan,
        )
        self._app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        register_exception_handlers(self._app)
        self._app.include_router(api_router)
        self._app.include_router(scanner_router)
        self._app.add_api_route("/", self._root, include_in_schema=False)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        runtime = get_runtime()
        self._log_startup(runtime)
        yield
        logger.info("🛑 Stopping scan session...")
        await runtime.shutdown()
        logger.info("✅ Shutdown complete")

    def _log_startup(self, runtime: ScanRuntime) -> None:
        policy = runtime.controller.policy
        formats = self._settings.barcode_formats_list or ["all"]

        logger.info("=" * 60)
        logger.info(f"🚀 {self._settings.app_name} ({self._settings.app_env})")
        logger.info(f"🔌 Engines: {', '.join(runtime.engines.kinds())} (default {self._settings.default_engine})")
        logger.info(
            f"🔁 Retry: {policy.max_attempts} attempt(s)/candidate, backoff {policy.backoff:.2f}s, "
            f"acquire timeout {policy.acquire_timeout:.1f}s"
        )
        logger.info(f"🏷️ Formats: {', '.join(formats)}; debounce {self._settings.debounce_window_ms}ms")
        if policy.session_timeout:
            logger.info(f"⏰ Sessions stop after {policy.session_timeout:.0f}s")
        logger.info(f"📖 API Docs: http://{self._settings.host}:{self._settings.port}/docs")
        logger.info("=" * 60)

    @staticmethod
    async def _root():
        return RedirectResponse(url="/docs")

    @property
    def app(self) -> FastAPI:
        return self._app


application = Application(settings)
app = application.app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scanbench.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
