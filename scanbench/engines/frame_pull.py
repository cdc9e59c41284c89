"""
==============================================================================
Frame-Pull Engines
==============================================================================

Engines that pull frames from a CaptureHandle on a fixed interval and
decode each one.

Classes:
--------
- FramePullEngine: shared acquire / decode-loop / release lifecycle
- PyzbarEngine: ZBar decoding via pyzbar (1D and 2D symbologies)
- OpenCVQREngine: cv2.QRCodeDetector multi-code decoding

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np

from scanbench.core import exceptions
from scanbench.core.exceptions import ErrorKind, ScanError
from scanbench.devices import CaptureHandle, ConstraintCandidate
from .base import DetectionEvent, EngineAdapter, EngineContext, monotonic_ms, normalize_format


# Module logger
logger = logging.getLogger(__name__)


Decoded = List[Tuple[str, str]]


class FramePullEngine(EngineAdapter):
    """
    Shared lifecycle for engines that read frames themselves.

    Subclasses implement _load_decoder (may raise ENGINE_INIT) and
    decode (blocking; runs in a worker thread).
    """

    variant = "frame-pull"

    # Consecutive failed reads before the stream is declared lost
    MAX_READ_FAILURES = 30

    def __init__(self) -> None:
        super().__init__()
        self._handle: Optional[CaptureHandle] = None
        self._loop_task: Optional[asyncio.Task] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def prepare(self, context: EngineContext) -> None:
        await self.stop()
        self._load_decoder(context)
        self._context = context
        logger.debug(f"{self.kind} prepared for session {context.session_id}")

    async def start(self, candidate: ConstraintCandidate) -> None:
        context = self._context
        if context is None:
            raise exceptions.engine_init_failed(self.kind, "start called before prepare")

        self._handle = await context.capture.acquire(candidate)
        self._loop_task = asyncio.create_task(
            self._decode_loop(self._handle, context),
            name=f"{self.kind}-decode-{context.session_id}",
        )
        self._watch(self._loop_task, context)

    async def stop(self) -> None:
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        handle, self._handle = self._handle, None
        if handle is not None and self._context is not None:
            await self._context.capture.release(handle)

    # =========================================================================
    # DECODE LOOP
    # =========================================================================

    async def _decode_loop(self, handle: CaptureHandle, context: EngineContext) -> None:
        failures = 0

        while True:
            try:
                ok, frame = await asyncio.to_thread(handle.read)
            except Exception as e:
                logger.error(f"❌ {self.kind}: read failed on {handle.device.label}: {e}")
                context.report_fault(ScanError(
                    ErrorKind.DEVICE_NOT_FOUND,
                    f"Capture read failed on {handle.device.label}: {e}",
                    {"device_id": handle.device.device_id},
                ))
                return

            if not ok or frame is None:
                failures += 1
                if failures >= self.MAX_READ_FAILURES:
                    logger.error(f"❌ {self.kind}: capture stream lost on {handle.device.label}")
                    context.report_fault(exceptions.device_not_found(handle.device.device_id))
                    return
                await asyncio.sleep(context.scan_interval)
                continue

            failures = 0
            timestamp = monotonic_ms()

            try:
                decoded = await asyncio.to_thread(self.decode, frame)
            except Exception as e:
                logger.debug(f"{self.kind} decode noise: {e}")
                decoded = []

            for value, symbology in decoded:
                if context.accepts(symbology):
                    context.emit(DetectionEvent(value=value, format=symbology, timestamp=timestamp))

            await asyncio.sleep(context.scan_interval)

    # =========================================================================
    # DECODER HOOKS
    # =========================================================================

    def _load_decoder(self, context: EngineContext) -> None:
        """Initialize the decoder; raise ENGINE_INIT on failure."""

    def decode(self, frame: np.ndarray) -> Decoded:
        raise NotImplementedError


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR frame to grayscale; grayscale input is returned as-is."""
    if frame.ndim == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return frame


class PyzbarEngine(FramePullEngine):
    """ZBar decoder; restricts symbologies to the configured formats."""

    kind = "pyzbar"
    label = "ZBar (pyzbar)"

    def __init__(self) -> None:
        super().__init__()
        self._decode_fn: Any = None
        self._symbols: Optional[list] = None

    def _load_decoder(self, context: EngineContext) -> None:
        self._decode_fn, self._symbols = load_pyzbar(self.kind, context)

    def decode(self, frame: np.ndarray) -> Decoded:
        return decode_with_pyzbar(self._decode_fn, self._symbols, frame)


class OpenCVQREngine(FramePullEngine):
    """OpenCV QR detector; reports every code found in a frame."""

    kind = "opencv-qr"
    label = "OpenCV QR"

    def __init__(self) -> None:
        super().__init__()
        self._detector: Any = None

    def _load_decoder(self, context: EngineContext) -> None:
        try:
            self._detector = cv2.QRCodeDetector()
        except cv2.error as e:
            raise exceptions.engine_init_failed(self.kind, str(e)) from e

    def decode(self, frame: np.ndarray) -> Decoded:
        ok, values, _points, _ = self._detector.detectAndDecodeMulti(to_grayscale(frame))
        if not ok:
            return []
        return [(value, "QRCODE") for value in values if value]


# =============================================================================
# PYZBAR HELPERS (shared with the remote feed engine)
# =============================================================================

def load_pyzbar(kind: str, context: EngineContext) -> Tuple[Any, Optional[list]]:
    """
    Import pyzbar and resolve the symbology filter.

    Returns:
        Tuple of (decode function, ZBarSymbol list or None for all)

    Raises:
        ScanError: ENGINE_INIT when the zbar shared library is unavailable
    """
    try:
        from pyzbar.pyzbar import ZBarSymbol, decode
    except ImportError as e:
        raise exceptions.engine_init_failed(kind, f"pyzbar unavailable ({e})") from e

    if not context.formats:
        return decode, None

    by_name = {normalize_format(symbol.name): symbol for symbol in ZBarSymbol}
    symbols = [by_name[name] for name in context.formats if name in by_name]
    if not symbols:
        raise exceptions.engine_init_failed(kind, f"no supported formats in {sorted(context.formats)}")
    return decode, symbols


def decode_with_pyzbar(decode_fn: Any, symbols: Optional[list], frame: np.ndarray) -> Decoded:
    barcodes = decode_fn(to_grayscale(frame), symbols=symbols)
    return [
        (barcode.data.decode("utf-8", errors="replace"), barcode.type)
        for barcode in barcodes
    ]
