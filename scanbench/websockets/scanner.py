"""
==============================================================================
Scan WebSocket Module
==============================================================================

Live scan session feed over a WebSocket connection.

Protocol:
---------
1. Client connects; server sends {"type": "hello", "session": {...}}
2. Server streams broadcast notifications:
       {"type": "result", "result": {...}, "haptic": ..., "display_ms": ...}
       {"type": "state", "state": {...}}
       {"type": "error", "error": {...}}
3. Client may send:
       {"type": "start", "engine": ..., "profile": ..., ...}
       {"type": "frame", "frame": "<base64 jpeg/png>"}
       {"type": "stop"}
   start replies {"type": "session", ...} once the session settles; the
   socket keeps reading meanwhile, so a stop interrupts a start that is
   still retrying.

Malformed messages are answered with an INVALID_MESSAGE error and the
connection stays open.

A session this connection started on the remote-feed engine is stopped
when the connection closes, since nothing else can feed it. Starts still
pending at that point are abandoned.

==============================================================================
"""

import asyncio
import logging
from typing import Optional, Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from scanbench.core.dependencies import get_broadcast_sink, get_feed_hub, get_scan_service
from scanbench.core.exceptions import AppException
from scanbench.engines import FrameFeedHub, RemoteFeedEngine
from scanbench.notifications import BroadcastNotificationSink
from scanbench.services import ScanService


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScanWebSocketHandler:
    """
    Handler for scan session WebSocket connections.

    Manages:
    - Subscription to session notifications
    - Start/stop commands
    - Frame forwarding to the remote feed engine
    """

    def __init__(
        self,
        websocket: WebSocket,
        service: ScanService,
        hub: FrameFeedHub,
        broadcast: BroadcastNotificationSink,
    ):
        self._websocket = websocket
        self._service = service
        self._hub = hub
        self._broadcast = broadcast
        self._started_session: Optional[str] = None
        self._start_tasks: Set[asyncio.Task] = set()

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "error": {"code": code, "message": message}
        })

    async def _forward(self, queue: asyncio.Queue) -> None:
        while True:
            message = await queue.get()
            await self._websocket.send_json(message)

    async def _receive(self) -> Optional[dict]:
        """Read one message; None when it is not a JSON object."""
        try:
            data = await self._websocket.receive_json()
        except ValueError as e:
            logger.debug(f"Undecodable message: {e}")
            await self.send_error("Message is not valid JSON", "INVALID_MESSAGE")
            return None

        if not isinstance(data, dict):
            await self.send_error("Message must be a JSON object", "INVALID_MESSAGE")
            return None
        return data

    def schedule_start(self, data: dict) -> None:
        """Run a start in the background so stop and frames keep flowing."""
        task = asyncio.create_task(self.handle_start(data))
        self._start_tasks.add(task)
        task.add_done_callback(self._start_done)

    def _start_done(self, task: asyncio.Task) -> None:
        self._start_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"❌ Start failed: {task.exception()!r}")

    async def handle_start(self, data: dict) -> None:
        """Handle start message from client."""
        try:
            snapshot = await self._service.start_session(
                engine=data.get("engine"),
                profile=data.get("profile"),
                focus_mode=data.get("focus_mode"),
                device_id=data.get("device_id"),
                facing=data.get("facing"),
            )
        except AppException as e:
            await self.send_error(e.message, e.code)
            return

        self._started_session = snapshot.session_id
        await self._websocket.send_json({"type": "session", "session": snapshot.to_dict()})

    async def handle_stop(self) -> None:
        """Handle stop message from client."""
        snapshot = await self._service.stop_session()
        await self._websocket.send_json({"type": "session", "session": snapshot.to_dict()})

    def handle_frame(self, data: dict, frame_count: int) -> None:
        """Handle frame message from client."""
        payload = data.get("frame")
        if not isinstance(payload, str):
            logger.debug(f"Frame {frame_count} has no payload")
            return
        if not self._hub.push_encoded(payload):
            logger.debug(f"Frame {frame_count} dropped (undecodable or no consumer)")

    async def _abandon_starts(self) -> None:
        pending = list(self._start_tasks)
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"⏹️ Abandoning {len(pending)} pending start(s)")
            await asyncio.gather(*pending, return_exceptions=True)

    async def _release_feed(self) -> None:
        snapshot = self._service.get_snapshot()
        if (
            self._started_session is not None
            and snapshot.session_id == self._started_session
            and snapshot.active_engine_kind == RemoteFeedEngine.kind
            and not snapshot.state.is_terminal
        ):
            logger.info("🛑 Feeding client left, stopping remote-feed session")
            await self._service.stop_session()

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scan WebSocket connected")

        queue = self._broadcast.subscribe()
        forwarder = asyncio.create_task(self._forward(queue))

        try:
            await self._websocket.send_json({
                "type": "hello",
                "session": self._service.get_snapshot().to_dict()
            })

            frame_count = 0

            while True:
                data = await self._receive()
                if data is None:
                    continue

                message_type = data.get("type")

                if message_type == "frame":
                    frame_count += 1
                    self.handle_frame(data, frame_count)

                elif message_type == "start":
                    self.schedule_start(data)

                elif message_type == "stop":
                    logger.info("🛑 Client requested stop")
                    await self.handle_stop()

                else:
                    await self.send_error(f"Unknown message type: {message_type}", "UNKNOWN_MESSAGE")

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.exception(f"Scan WebSocket error: {e}")
            try:
                await self.send_error(str(e))
            except (RuntimeError, WebSocketDisconnect):
                logger.debug("Could not report error, socket already closed")
        finally:
            self._broadcast.unsubscribe(queue)
            forwarder.cancel()
            await asyncio.gather(forwarder, return_exceptions=True)
            await self._abandon_starts()
            await self._release_feed()
            logger.info("✅ Scan WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    service: ScanService = Depends(get_scan_service),
    hub: FrameFeedHub = Depends(get_feed_hub),
    broadcast: BroadcastNotificationSink = Depends(get_broadcast_sink),
):
    """Live scan session feed and remote frame input."""
    handler = ScanWebSocketHandler(websocket, service, hub, broadcast)
    await handler.run()
