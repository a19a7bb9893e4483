"""WebSocket endpoint for catalog rooms.

Each socket gets one reader loop (inbound commands) and one sender task
draining the connection's outgoing queue, so acks and broadcast events
are written by a single writer in the order they were queued.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..auth import extract_bearer_token
from .hub import Broadcaster, BroadcastHub, Connection
from .protocol import ErrorFrame

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

# Configuration - set by configure()
_broadcaster: Broadcaster | None = None
_max_message_bytes: int = 64 * 1024


def configure(broadcaster: Broadcaster, max_message_bytes: int = 64 * 1024) -> None:
    """Configure the socket endpoint with its broadcaster."""
    global _broadcaster, _max_message_bytes
    _broadcaster = broadcaster
    _max_message_bytes = max_message_bytes


async def _sender(websocket: WebSocket, conn: Connection) -> None:
    while True:
        frame = await conn.queue.get()
        if frame is None:
            return
        await websocket.send_json(frame)


def _decode(raw: dict) -> dict | ErrorFrame:
    """Parse one inbound socket message into a command dict or an error frame."""
    text = raw.get("text")
    if text is None and raw.get("bytes") is not None:
        try:
            text = raw["bytes"].decode("utf-8")
        except UnicodeDecodeError:
            return ErrorFrame(error="Invalid message encoding")
    if text is None:
        return ErrorFrame(error="Invalid message")
    if len(text.encode("utf-8")) > _max_message_bytes:
        return ErrorFrame(error="Message too large")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return ErrorFrame(error="Invalid JSON")


@router.websocket("/ws")
async def catalog_socket(websocket: WebSocket) -> None:
    """
    Authenticated socket for catalog rooms.

    The credential comes from ``?token=`` or an ``Authorization: Bearer``
    header; rejected handshakes are closed with 1008 before accept.
    """
    hub: BroadcastHub | None = _broadcaster.hub if _broadcaster else None
    if hub is None:
        logger.warning("Socket refused: broadcast hub not initialized")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    conn = await hub.connect(extract_bearer_token(websocket))
    if conn is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    sender = asyncio.create_task(_sender(websocket, conn))

    try:
        while True:
            raw = await websocket.receive()
            if raw["type"] == "websocket.disconnect":
                break

            message = _decode(raw)
            if isinstance(message, ErrorFrame):
                conn.enqueue(message.to_wire())
                continue

            reply = await hub.handle_message(conn, message)
            if reply is not None:
                conn.enqueue(reply)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Socket %s failed", conn.id)
    finally:
        await hub.disconnect(conn)
        try:
            await asyncio.wait_for(sender, timeout=1.0)
        except asyncio.TimeoutError:
            sender.cancel()
        except Exception as e:
            logger.debug("Sender for socket %s stopped: %s", conn.id, e)
