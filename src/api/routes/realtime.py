"""Real-time event channel

Pushes every domain event for the connected user as JSON
{event, payload, occurred_at}.
"""

import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(jsonable_encoder(message))


@router.websocket("/realtime")
async def realtime(websocket: WebSocket):
    container = websocket.app.state.container
    user_id = (
        websocket.headers.get(container.config.USER_ID_HEADER)
        or websocket.query_params.get("user_id")
    )
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    queue = container.broker.subscribe(user_id)
    sender = asyncio.create_task(_pump(websocket, queue))
    logger.info(f"Realtime connection opened for user {user_id}")

    try:
        # Inbound frames are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Realtime connection closed for user {user_id}")
    finally:
        sender.cancel()
        container.broker.unsubscribe(user_id, queue)
