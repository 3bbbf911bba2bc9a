"""
Relay protocol over FastAPI websockets.

Client -> relay frames (JSON text):
    {"event": "join-room", "session_id": CODE}
    {"event": "leave-room", "session_id": CODE}
    {"event": "move", "session_id": CODE, "move": {...}}   # rebroadcast to the other room members, advisory only

Relay -> client frames:
    {"event": "joined", "session_id": CODE}
    {"event": "move", "session_id": CODE, "move": {...}}
    {"event": "error", "detail": "..."}
plus whatever hints the Session Manager publishes ("player-joined", "status").
"""

import asyncio
import contextlib
import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chess_sync.api.dependencies import get_relay, get_settings
from chess_sync.core.config import Settings
from chess_sync.core.exceptions import RelayUnavailableError
from chess_sync.core.models import normalize_code
from chess_sync.relay.registry import RelayConnection, RelayRoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketConnection:
    """RelayConnection writing to a websocket through a bounded outbound queue.

    deliver() may be called from any thread; the payload is handed to the connection's event loop
    and written by pump(). A full queue drops the payload: the peer will catch up on its next fetch.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
        queue_size: int,
    ) -> None:
        self.connection_id = uuid4().hex
        self.websocket = websocket
        self._loop = loop
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    def deliver(self, payload: dict[str, Any]) -> None:
        if self._closed:
            raise RelayUnavailableError(f"Connection {self.connection_id} is closed.")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._enqueue(payload)
            return
        try:
            self._loop.call_soon_threadsafe(self._enqueue, payload)
        except RuntimeError:
            # event loop already closed
            self._closed = True
            raise RelayUnavailableError(f"Connection {self.connection_id} is closed.") from None

    async def pump(self) -> None:
        """Write queued payloads to the socket until cancelled or the socket fails."""
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_json(payload)
            except (WebSocketDisconnect, RuntimeError, OSError):
                logger.info("Relay connection %s cannot be written to, closing it", self.connection_id, exc_info=True)
                self.close()
                return

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def _enqueue(self, payload: dict[str, Any]) -> None:
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Outbound queue of %s is full, dropping %s", self.connection_id, payload.get("event"))


def handle_frame(
    registry: RelayRoomRegistry, connection: RelayConnection, frame: Any
) -> None:
    """Apply one client frame to the registry. Problems are reported back to the sender only."""
    if not isinstance(frame, dict):
        connection.deliver({"event": "error", "detail": "Frames must be JSON objects."})
        return

    event = frame.get("event")
    code = frame.get("session_id")
    if not isinstance(code, str) or not code.strip():
        connection.deliver({"event": "error", "detail": f"{event!r} requires a session_id."})
        return
    code = normalize_code(code)

    if event == "join-room":
        registry.join_room(connection, code)
        connection.deliver({"event": "joined", "session_id": code})
    elif event == "leave-room":
        registry.leave_room(connection, code)
    elif event == "move":
        if not registry.is_member(connection, code):
            connection.deliver({"event": "error", "detail": f"Join room {code} before sending moves."})
            return
        registry.notify(
            code,
            {"event": "move", "session_id": code, "move": frame.get("move")},
            origin=connection,
        )
    else:
        connection.deliver({"event": "error", "detail": f"Unknown event {event!r}."})


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    registry: RelayRoomRegistry = Depends(get_relay),
    settings: Settings = Depends(get_settings),
) -> None:
    await websocket.accept()
    connection = WebSocketConnection(
        websocket, asyncio.get_running_loop(), settings.relay_queue_size
    )
    pump = asyncio.create_task(connection.pump())
    logger.info("Relay connection %s opened", connection.connection_id)
    try:
        while not connection.closed:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except ValueError:
                connection.deliver({"event": "error", "detail": "Frames must be valid JSON."})
                continue
            try:
                handle_frame(registry, connection, frame)
            except RelayUnavailableError as e:
                if connection.closed:
                    break
                connection.deliver({"event": "error", "detail": str(e)})
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(connection)
        connection.close()
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump
        logger.info("Relay connection %s closed", connection.connection_id)
