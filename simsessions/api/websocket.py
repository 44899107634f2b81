"""
WebSocket Transport
===================

Line-delimited JSON request/response protocol over a WebSocket.

One connection may drive any number of sessions. Each text frame carries a
request ``{"id", "operation", "session_id", "params"}``; every request is
answered with exactly one frame ``{"id", "ok", "result" | "error"}``.
Requests run concurrently, so a long ``start_session`` does not hold up
taps on another session; clients match responses by ``id``.
"""

import asyncio
import uuid

from fastapi import WebSocket, WebSocketDisconnect

from simsessions.api.dispatcher import handle_line
from simsessions.services import Services
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)


class LineConnection:
    """
    One WebSocket client.

    Handles:
    - Request fan-out to the dispatcher
    - Serialized response frames
    - Draining in-flight requests on disconnect
    """

    def __init__(self, websocket: WebSocket, services: Services) -> None:
        self.websocket = websocket
        self.services = services
        self.connection_id = uuid.uuid4().hex[:8]
        self._send_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    async def send_line(self, line: str) -> bool:
        """
        Send one response frame.

        Returns:
            True if sent, False if the client is gone.
        """
        if self._closed:
            return False
        async with self._send_lock:
            try:
                await self.websocket.send_text(line)
                return True
            except Exception as e:
                logger.error("Failed to send response", connection_id=self.connection_id, error=str(e))
                self._closed = True
                return False

    async def _respond(self, line: str) -> None:
        response = await handle_line(self.services, line)
        await self.send_line(response)

    def submit(self, line: str) -> None:
        task = asyncio.create_task(self._respond(line))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Let in-flight requests finish; a half-done start must still register."""
        self._closed = True
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint handler.

    Args:
        websocket: The WebSocket connection.
    """
    services: Services = websocket.app.state.services
    await websocket.accept()

    connection = LineConnection(websocket, services)
    logger.info("WebSocket connected", connection_id=connection.connection_id)

    try:
        while True:
            message = await websocket.receive_text()
            for line in message.splitlines():
                if line.strip():
                    connection.submit(line)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected", connection_id=connection.connection_id)
    except Exception as e:
        logger.error("WebSocket error", connection_id=connection.connection_id, error=str(e))
    finally:
        await connection.drain()
