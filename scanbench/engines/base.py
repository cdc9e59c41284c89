"""
==============================================================================
Engine Adapter Contract
==============================================================================

Every decode back-end is wrapped in an EngineAdapter so the session
controller sees one lifecycle:

    prepare(context) -> start(candidate) -> [detections...] -> stop()

Contract:
---------
- prepare: may be called repeatedly across sessions; releases anything a
  previous session left behind before re-initializing. Fails with an
  ENGINE_INIT ScanError.
- start: begins capture + decode for one ConstraintCandidate. Fails with
  a ScanError whose kind says whether the failure is transient.
- detections: pushed through context.emit with monotonic timestamps.
- stop: safe before, during, or after a failed start; returns only once
  the capture resource is released.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

from scanbench.core.exceptions import ErrorKind, ScanError
from scanbench.devices import CaptureSubsystem, ConstraintCandidate


# Module logger
logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000


def normalize_format(name: str) -> str:
    """Canonical symbology name: CODE_128, code-128 and Code128 all match."""
    return name.upper().replace("_", "").replace("-", "").replace(" ", "")


@dataclass(frozen=True)
class DetectionEvent:
    """
    One raw detection reported by an engine.

    Attributes:
        value: Decoded text
        format: Symbology name as reported by the engine
        timestamp: Monotonic milliseconds
    """

    value: str
    format: str
    timestamp: float


@dataclass
class EngineContext:
    """
    Container handle passed to EngineAdapter.prepare.

    Bound to one session: emit and report_fault route back to the
    session that prepared the adapter.
    """

    session_id: str
    emit: Callable[[DetectionEvent], None]
    report_fault: Callable[[ScanError], None]
    capture: CaptureSubsystem
    scan_interval: float = 0.1
    formats: FrozenSet[str] = field(default_factory=frozenset)

    def accepts(self, symbology: str) -> bool:
        """Check a reported symbology against the configured filter."""
        return not self.formats or normalize_format(symbology) in self.formats


class EngineAdapter(ABC):
    """
    Base class for decode back-ends.

    Subclasses set kind/label/variant and implement the lifecycle.
    """

    kind: str = ""
    label: str = ""
    variant: str = ""

    def __init__(self) -> None:
        self._context: Optional[EngineContext] = None

    @property
    def context(self) -> Optional[EngineContext]:
        return self._context

    @abstractmethod
    async def prepare(self, context: EngineContext) -> None:
        """Allocate engine-internal resources for a session."""

    @abstractmethod
    async def start(self, candidate: ConstraintCandidate) -> None:
        """Begin capture and decode, or raise a classified ScanError."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop decoding and release the capture resource."""

    def _watch(self, task: asyncio.Task, context: EngineContext) -> None:
        """Report a background task that dies with an exception as a fault."""
        def _on_done(done: asyncio.Task) -> None:
            if done.cancelled():
                return
            error = done.exception()
            if error is None:
                return
            logger.error(f"❌ {self.kind}: {done.get_name()} crashed: {error!r}")
            if not isinstance(error, ScanError):
                error = ScanError(ErrorKind.UNKNOWN, f"{self.kind} worker crashed: {error}")
            context.report_fault(error)

        task.add_done_callback(_on_done)

    def describe(self) -> dict:
        return {"kind": self.kind, "label": self.label, "variant": self.variant}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r})"
