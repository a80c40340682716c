"""
squatboard/realtime/hub.py
In-memory pubsub hub for board updates.

Every connected client watches the same board, so there is a single room.
Views are computed elsewhere and handed to the hub to fan out.
"""

from typing import Set
from fastapi import WebSocket
import asyncio
import logging

from squatboard.core.metrics import (
    ws_active_connections,
    ws_connections_total,
    ws_messages_sent_total,
)

logger = logging.getLogger(__name__)


class BoardHub:
    """
    Broadcast hub for all board watchers.

    Handles WebSocket lifecycle: register, broadcast, unregister.
    Sockets that fail a send are pruned.
    """

    def __init__(self, max_connections: int = 0):
        self._sockets: Set[WebSocket] = set()
        self._max_connections = max_connections
        self._lock = asyncio.Lock()

    async def register(self, websocket: WebSocket) -> bool:
        """
        Add a socket to the room.

        Returns False (and registers nothing) when the connection cap is reached.
        """
        async with self._lock:
            if self._max_connections and len(self._sockets) >= self._max_connections:
                logger.debug(f"[HUB] Connection cap {self._max_connections} reached")
                return False
            self._sockets.add(websocket)
            ws_connections_total.inc()
            ws_active_connections.set(len(self._sockets))
            logger.debug(f"[HUB] Registered socket. Total: {len(self._sockets)}")
            return True

    async def unregister(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._sockets.discard(websocket)
            ws_active_connections.set(len(self._sockets))
            logger.debug(f"[HUB] Unregistered socket. Remaining: {len(self._sockets)}")

    async def broadcast(self, message: dict) -> int:
        """
        Send ``message`` to every socket; returns how many sends succeeded.
        """
        async with self._lock:
            if not self._sockets:
                return 0
            sockets = self._sockets.copy()

        event_type = str(message.get("type") or "unknown")
        dead_sockets = []
        delivered = 0
        for ws in sockets:
            try:
                await ws.send_json(message)
                delivered += 1
                ws_messages_sent_total.inc(labels={"event_type": event_type})
            except Exception as e:
                logger.debug(f"[HUB] Failed to send to socket: {e}")
                dead_sockets.append(ws)

        if dead_sockets:
            async with self._lock:
                for ws in dead_sockets:
                    self._sockets.discard(ws)
                ws_active_connections.set(len(self._sockets))
            logger.debug(f"[HUB] Pruned {len(dead_sockets)} dead sockets")
        return delivered

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._sockets)

    def configure(self, max_connections: int) -> None:
        self._max_connections = max_connections

    def reset(self) -> None:
        """Drop all sockets and the cap (tests)."""
        self._sockets.clear()
        self._max_connections = 0
        ws_active_connections.set(0)


# Global singleton hub instance
hub = BoardHub()
