"""
WebSocket push transport.

Every connection gets an outbound queue drained by its own writer task, so
broadcast() and send_to() only enqueue and return immediately. Messages reach
each client in the order they were enqueued for it.
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from ..core.occupancy import STATE_EVENT

logger = structlog.get_logger()

AREAS_EVENT = "areas-actualizadas"
ERROR_EVENT = "error"
UPDATE_REQUEST_EVENT = "actualizar-celdas"

Message = Tuple[str, Any]


@dataclass
class Connection:
    """One connected observer and its outbound queue."""
    id: str
    websocket: WebSocket
    queue: "asyncio.Queue[Message]" = field(default_factory=asyncio.Queue)
    writer: Optional[asyncio.Task] = None


class ConnectionHub:
    """Registry of open connections implementing broadcast / send_to."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._connections)

    def connect(self, websocket: WebSocket) -> str:
        """Register an accepted websocket and start its writer task."""
        connection = Connection(id=f"conn-{next(self._ids)}", websocket=websocket)
        connection.writer = asyncio.create_task(self._pump(connection))
        self._connections[connection.id] = connection
        logger.info("Client connected", connection_id=connection.id, connections=len(self))
        return connection.id

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and stop its writer task."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return

        if connection.writer is not None:
            connection.writer.cancel()
            try:
                await connection.writer
            except asyncio.CancelledError:
                pass

        logger.info("Client disconnected", connection_id=connection_id, connections=len(self))

    def broadcast(self, event: str, payload: Any) -> None:
        """Queue a message for every open connection."""
        for connection in self._connections.values():
            connection.queue.put_nowait((event, payload))
        logger.debug("Broadcast queued", event_name=event, connections=len(self))

    def send_to(self, connection_id: str, event: str, payload: Any) -> None:
        """Queue a message for one connection; unknown ids are ignored."""
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.warning("Send to unknown connection", connection_id=connection_id, event_name=event)
            return
        connection.queue.put_nowait((event, payload))

    async def _pump(self, connection: Connection) -> None:
        while True:
            event, payload = await connection.queue.get()
            try:
                await connection.websocket.send_json({"event": event, "data": payload})
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                # the writer is gone, so nothing may queue for this connection any more
                self._connections.pop(connection.id, None)
                logger.warning("Dropping closed connection",
                               connection_id=connection.id, event_name=event, error=str(e),
                               connections=len(self))
                return
