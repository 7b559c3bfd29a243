"""WebSocket transport for realtime relay sessions."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from driftchat.schemas.events import error_event, to_wire
from driftchat.services.gateway import SessionGateway
from driftchat.services.relay import RelaySession

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket) -> None:
    """Bridge one socket to the session gateway until it disconnects."""

    await websocket.accept()
    gateway: SessionGateway = websocket.app.state.gateway
    session = RelaySession(queue_size=websocket.app.state.settings.session_queue_size)
    writer = asyncio.create_task(_pump_events(websocket, session))
    logger.debug("relay.session_connected session_id=%s", session.id)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                session.deliver(error_event("Only text frames are supported"))
                continue
            gateway.handle_raw(session, raw)
    finally:
        gateway.handle(session, "disconnect")
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass


async def _pump_events(websocket: WebSocket, session: RelaySession) -> None:
    while True:
        event = await session.next_event()
        try:
            await websocket.send_json(to_wire(event))
        except (RuntimeError, WebSocketDisconnect):
            logger.debug("relay.session_write_failed session_id=%s", session.id)
            return
