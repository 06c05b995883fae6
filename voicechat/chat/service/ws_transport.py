"""WebSocket transport: one ChatSession per connection."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from voicechat.chat.pipeline import ChatSession
from voicechat.chat.service.schemas import ChatIntent, OutboundFrame

router = APIRouter()
logger = logging.getLogger(__name__)


@dataclass
class Connection:
    connection_id: str
    websocket: WebSocket
    session: ChatSession
    generation: Optional[asyncio.Task] = field(default=None)


class ConnectionManager:
    def __init__(self) -> None:
        self.active: Dict[str, Connection] = {}

    def connect(self, websocket: WebSocket) -> Connection:
        connection_id = uuid.uuid4().hex

        async def emit(frame: OutboundFrame) -> None:
            await self.send_frame(connection_id, websocket, frame)

        connection = Connection(
            connection_id=connection_id,
            websocket=websocket,
            session=ChatSession(emit, connection_id=connection_id),
        )
        self.active[connection_id] = connection
        logger.info(f"WS Connect: connection={connection_id} active={len(self.active)}")
        return connection

    def disconnect(self, connection_id: str) -> None:
        connection = self.active.pop(connection_id, None)
        if connection is None:
            return
        if connection.generation is not None and not connection.generation.done():
            connection.generation.cancel()
            logger.info(f"WS Disconnect cancelled in-flight generation: connection={connection_id}")
        logger.info(f"WS Disconnect: connection={connection_id} active={len(self.active)}")

    async def send_frame(self, connection_id: str, websocket: WebSocket, frame: OutboundFrame) -> None:
        if connection_id not in self.active or websocket.application_state != WebSocketState.CONNECTED:
            logger.debug("Dropping %s frame for closed connection %s", frame.type, connection_id)
            return
        try:
            await websocket.send_text(frame.model_dump_json())
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.debug("Send failed on connection %s: %s", connection_id, exc)

    def start_generation(self, connection: Connection, intent: ChatIntent) -> asyncio.Task:
        task = asyncio.create_task(
            connection.session.run_intent(intent),
            name=f"generation-{connection.connection_id}",
        )
        task.add_done_callback(_log_generation_failure)
        connection.generation = task
        return task


def _log_generation_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Generation task %s failed", task.get_name(), exc_info=exc)


manager = ConnectionManager()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    connection = manager.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            intent = await connection.session.accept_frame(raw)
            if intent is not None:
                manager.start_generation(connection, intent)
    finally:
        manager.disconnect(connection.connection_id)
