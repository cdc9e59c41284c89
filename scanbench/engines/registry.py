"""
Engine Registry

Maps engine kinds to adapter instances. One instance per kind is created
lazily and reused across sessions, relying on prepare() being idempotent.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List

from scanbench.config import Settings
from scanbench.core import exceptions
from .base import EngineAdapter
from .frame_pull import OpenCVQREngine, PyzbarEngine
from .remote_feed import FrameFeedHub, RemoteFeedEngine


# Module logger
logger = logging.getLogger(__name__)


class EngineRegistry:
    """
    Registry of decode back-ends.

    Example:
        >>> registry = EngineRegistry()
        >>> registry.register("pyzbar", PyzbarEngine)
        >>> adapter = registry.get("pyzbar")
    """

    def __init__(self) -> None:
        self._factories: Dict[str, Callable[[], EngineAdapter]] = {}
        self._instances: Dict[str, EngineAdapter] = {}

    def register(self, kind: str, factory: Callable[[], EngineAdapter]) -> None:
        self._factories[kind] = factory
        self._instances.pop(kind, None)
        logger.debug(f"Registered engine: {kind}")

    def has(self, kind: str) -> bool:
        return kind in self._factories

    def get(self, kind: str) -> EngineAdapter:
        """
        Get the adapter for a kind.

        Raises:
            AppException: ENGINE_NOT_FOUND for unknown kinds
        """
        if kind not in self._factories:
            raise exceptions.engine_not_found(kind)
        if kind not in self._instances:
            self._instances[kind] = self._factories[kind]()
        return self._instances[kind]

    def kinds(self) -> List[str]:
        return list(self._factories)

    def describe(self) -> List[dict]:
        return [self.get(kind).describe() for kind in self._factories]


def build_default_registry(settings: Settings, hub: FrameFeedHub) -> EngineRegistry:
    """Register the built-in engines."""
    registry = EngineRegistry()
    registry.register(PyzbarEngine.kind, PyzbarEngine)
    registry.register(OpenCVQREngine.kind, OpenCVQREngine)
    registry.register(RemoteFeedEngine.kind, lambda: RemoteFeedEngine(hub))

    if not registry.has(settings.default_engine):
        logger.warning(f"⚠️ Default engine '{settings.default_engine}' is not registered")

    return registry
