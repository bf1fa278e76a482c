"""Push channel telling connected boards that a new deployment is live."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Will be set by main.py
broadcaster = None
coordinator = None


async def _pending_update() -> bytes | None:
    if broadcaster is None or coordinator is None or not coordinator.update_available:
        return None
    return await broadcaster.get_last_message()


@router.websocket("/ws/updates")
async def updates_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    if broadcaster is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    pending = await _pending_update()
    if pending:
        await websocket.send_bytes(pending)

    queue = broadcaster.subscribe()
    logger.debug("Board connected (%d listening)", broadcaster.client_count)
    try:
        while True:
            await websocket.send_bytes(await queue.get())
    except WebSocketDisconnect:
        logger.debug("Board disconnected")
    finally:
        broadcaster.unsubscribe(queue)
