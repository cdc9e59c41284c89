"""
==============================================================================
Notification Sinks Module
==============================================================================

Delivery of finalized results and lifecycle changes to the presentation
layer.

Sinks:
------
- LoggingNotificationSink: writes every notification to the log
- BroadcastNotificationSink: fans JSON-ready messages out to subscriber queues
- CompositeNotificationSink: forwards to several sinks

Message Format (broadcast):
---------------------------
    {"type": "result", "result": {...}, "haptic": true, "display_ms": 2000}
    {"type": "state", "state": {...}}
    {"type": "error", "error": {...}}

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Set

from scanbench.session import FatalError, NotificationSink, ScanResult, StateChange


# Module logger
logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Logs each notification."""

    def on_result(self, result: ScanResult) -> None:
        logger.info(f"📦 Result: {result.value} [{result.format}] via {result.engine_kind}")

    def on_state_change(self, change: StateChange) -> None:
        logger.debug(
            f"State {change.previous_state.value} → {change.new_state.value}: {change.reason}"
        )

    def on_fatal_error(self, error: FatalError) -> None:
        logger.error(f"🚨 Fatal scan error ({error.kind.value}): {error.message}")


class BroadcastNotificationSink:
    """
    Fans notifications out to per-subscriber asyncio queues.

    Each subscriber gets a bounded queue; when a slow subscriber's queue
    is full the oldest message is dropped to make room.

    Example:
        >>> sink = BroadcastNotificationSink(haptic=True, display_ms=2000)
        >>> queue = sink.subscribe()
        >>> message = await queue.get()
        >>> sink.unsubscribe(queue)
    """

    def __init__(self, haptic: bool = True, display_ms: int = 2000, queue_size: int = 64):
        self.haptic = haptic
        self.display_ms = display_ms
        self.queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()
        self.dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Subscriber added ({len(self._subscribers)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.debug(f"Subscriber removed ({len(self._subscribers)} total)")

    def publish(self, message: Dict[str, Any]) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
                self.dropped += 1
            queue.put_nowait(message)

    # =========================================================================
    # SINK PROTOCOL
    # =========================================================================

    def on_result(self, result: ScanResult) -> None:
        self.publish({
            "type": "result",
            "result": result.to_dict(),
            "haptic": self.haptic,
            "display_ms": self.display_ms,
        })

    def on_state_change(self, change: StateChange) -> None:
        self.publish({"type": "state", "state": change.to_dict()})

    def on_fatal_error(self, error: FatalError) -> None:
        self.publish({"type": "error", "error": error.to_dict()})


class CompositeNotificationSink:
    """
    Forwards every notification to each child sink in order.

    A failing child is logged and skipped; the remaining children still
    receive the notification.
    """

    def __init__(self, sinks: Iterable[NotificationSink]):
        self._sinks: List[NotificationSink] = list(sinks)

    def add(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def _forward(self, method: str, payload: Any) -> None:
        for sink in self._sinks:
            try:
                getattr(sink, method)(payload)
            except Exception:
                logger.exception(f"{type(sink).__name__}.{method} failed")

    def on_result(self, result: ScanResult) -> None:
        self._forward("on_result", result)

    def on_state_change(self, change: StateChange) -> None:
        self._forward("on_state_change", change)

    def on_fatal_error(self, error: FatalError) -> None:
        self._forward("on_fatal_error", error)
