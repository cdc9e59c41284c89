"""
==============================================================================
Remote Feed Engine
==============================================================================

Push-callback engine: a client streams encoded frames (base64 JPEG/PNG)
over the WebSocket and this engine decodes them as they arrive.

The FrameFeedHub is the capture resource. Only one session may hold it;
a claim while it is still held by a previous session is RESOURCE_BUSY.

Frames are queued with a small bound; when decoding falls behind the
oldest queued frame is dropped.

==============================================================================
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, Callable, Optional

import cv2
import numpy as np

from scanbench.core import exceptions
from scanbench.devices import ConstraintCandidate
from .base import DetectionEvent, EngineAdapter, EngineContext, monotonic_ms
from .frame_pull import decode_with_pyzbar, load_pyzbar


# Module logger
logger = logging.getLogger(__name__)


FrameConsumer = Callable[[np.ndarray], None]


class FrameFeedHub:
    """
    Single-owner channel between WebSocket clients and the engine.

    Example:
        >>> hub = FrameFeedHub()
        >>> hub.claim("session-1", consumer)
        >>> hub.push_encoded(b64_jpeg)
        >>> hub.release("session-1")
    """

    def __init__(self) -> None:
        self._owner: Optional[str] = None
        self._consumer: Optional[FrameConsumer] = None
        self.frames_received = 0
        self.frames_rejected = 0

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def claim(self, owner: str, consumer: FrameConsumer) -> None:
        """Take exclusive ownership or raise RESOURCE_BUSY."""
        if self._owner is not None and self._owner != owner:
            raise exceptions.resource_busy("remote-feed")
        self._owner = owner
        self._consumer = consumer

    def release(self, owner: str) -> None:
        if self._owner == owner:
            self._owner = None
            self._consumer = None

    def push_frame(self, frame: np.ndarray) -> bool:
        """Hand a decoded image to the current owner; False if nobody listens."""
        consumer = self._consumer
        if consumer is None:
            self.frames_rejected += 1
            return False
        self.frames_received += 1
        consumer(frame)
        return True

    def push_encoded(self, payload: str) -> bool:
        """Decode a base64 image and push it."""
        try:
            img_data = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError):
            self.frames_rejected += 1
            return False

        if not img_data:
            self.frames_rejected += 1
            return False

        frame = cv2.imdecode(np.frombuffer(img_data, np.uint8), cv2.IMREAD_COLOR)
        if frame is None:
            self.frames_rejected += 1
            return False

        return self.push_frame(frame)


class RemoteFeedEngine(EngineAdapter):
    """Decodes frames pushed through a FrameFeedHub with pyzbar."""

    kind = "remote-feed"
    label = "Remote camera feed (pyzbar)"
    variant = "push-callback"

    QUEUE_SIZE = 2

    def __init__(self, hub: FrameFeedHub) -> None:
        super().__init__()
        self._hub = hub
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._decode_fn: Any = None
        self._symbols: Optional[list] = None
        self._owner: Optional[str] = None

    async def prepare(self, context: EngineContext) -> None:
        await self.stop()
        self._decode_fn, self._symbols = load_pyzbar(self.kind, context)
        self._context = context

    async def start(self, candidate: ConstraintCandidate) -> None:
        context = self._context
        if context is None:
            raise exceptions.engine_init_failed(self.kind, "start called before prepare")

        # Resolution and focus belong to the remote camera; only ownership matters here.
        self._hub.claim(context.session_id, self._enqueue)
        self._owner = context.session_id
        self._queue = asyncio.Queue(maxsize=self.QUEUE_SIZE)
        self._worker = asyncio.create_task(
            self._decode_worker(self._queue, context),
            name=f"{self.kind}-decode-{context.session_id}",
        )
        self._watch(self._worker, context)
        logger.info(f"📡 Remote feed claimed by session {context.session_id} ({candidate.describe()})")

    async def stop(self) -> None:
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)

        owner, self._owner = self._owner, None
        if owner is not None:
            self._hub.release(owner)
            logger.info(f"📡 Remote feed released by session {owner}")
        self._queue = None

    def _enqueue(self, frame: np.ndarray) -> None:
        queue = self._queue
        if queue is None:
            return
        if queue.full():
            queue.get_nowait()
        queue.put_nowait((monotonic_ms(), frame))

    async def _decode_worker(self, queue: asyncio.Queue, context: EngineContext) -> None:
        while True:
            timestamp, frame = await queue.get()
            try:
                decoded = await asyncio.to_thread(
                    decode_with_pyzbar, self._decode_fn, self._symbols, frame
                )
            except Exception as e:
                logger.debug(f"{self.kind} decode noise: {e}")
                continue

            for value, symbology in decoded:
                if context.accepts(symbology):
                    context.emit(DetectionEvent(value=value, format=symbology, timestamp=timestamp))
