"""
squatboard/api/realtime.py
WebSocket feed for live board updates.

Read-only socket: clients send "ping" to keep alive; the server pushes
"update" (a full board) and "userRemoved" events. Mutations go through REST.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from datetime import datetime, timezone
from uuid import uuid4
import json
import logging

from squatboard.realtime.hub import hub
from squatboard.core.logging import log_event
from squatboard.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/api/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Board feed.

    Events Emitted:
    - connected (greeting)
    - pong (reply to ping)
    - update (full board)
    - userRemoved

    The client identifies itself with an optional ``userId`` query parameter,
    used only for log correlation.
    """
    await websocket.accept()
    request_id = websocket.headers.get("X-Request-Id") or str(uuid4())
    connection_id = str(uuid4())
    user_id = websocket.query_params.get("userId")

    if not await hub.register(websocket):
        log_event("info", "ws.limit", request_id=request_id, user_id=user_id, event_type="ws.limit", extra={"connection_id": connection_id})
        await _reject_and_close(websocket, request_id, "limit_exceeded", "Connection limit reached")
        return

    log_event("info", "ws.connected", request_id=request_id, user_id=user_id, event_type="ws.connected", extra={"connection_id": connection_id})

    try:
        await websocket.send_json({
            "type": "connected",
            "ts": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "connection_id": connection_id,
        })

        while True:
            raw_message = await websocket.receive_text()
            if len(raw_message.encode("utf-8")) > settings.WS_MAX_MESSAGE_BYTES:
                log_event("info", "ws.payload_too_large", request_id=request_id, user_id=user_id, event_type="ws.payload_too_large", extra={"connection_id": connection_id})
                await _reject_and_close(websocket, request_id, "payload_too_large", "WS message too large")
                break
            try:
                data = json.loads(raw_message)
            except ValueError as e:
                log_event("debug", "ws.invalid_json", request_id=request_id, user_id=user_id, event_type="ws.invalid_json", extra={"error": str(e), "connection_id": connection_id})
                continue

            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "ts": datetime.now(timezone.utc).isoformat(),
                    "request_id": request_id,
                })
            else:
                log_event("debug", "ws.ignored_message", request_id=request_id, user_id=user_id, event_type="ws.ignored_message", extra={"connection_id": connection_id})

    except WebSocketDisconnect:
        log_event("info", "ws.disconnected", request_id=request_id, user_id=user_id, event_type="ws.disconnected", extra={"connection_id": connection_id})
    finally:
        await hub.unregister(websocket)


async def _reject_and_close(websocket: WebSocket, request_id: str, code: str, message: str):
    try:
        await websocket.send_json({
            "type": "error",
            "code": code,
            "message": message,
            "request_id": request_id,
        })
        await websocket.close(code=1008, reason=message)
    except (RuntimeError, WebSocketDisconnect) as e:
        logger.debug(f"[WS] Close after rejection failed: {e}")
