"""
WebSocket push of engine events.

Each connected client gets its own bounded queue on the event bus. A slow
client loses events rather than slowing down the engine.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .common import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.websocket("/ws/events")
async def events_socket(websocket: WebSocket):
    """Push every bus event as {"event", "timestamp", "data"} JSON."""
    engine = get_engine(websocket)
    await websocket.accept()
    queue = engine.events.open_queue()
    logger.info(f"[Events] Client connected ({engine.events.subscriber_count} subscribers)")

    async def pump() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json(event.to_message())

    sender = asyncio.create_task(pump())
    try:
        # Inbound messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"[Events] Sender stopped: {e}")
        engine.events.close_queue(queue)
        logger.info("[Events] Client disconnected")
