"""Manual control of the cache coordinator and the board timers."""

import logging

from fastapi import APIRouter, HTTPException

from ferryboard.schemas.messages import ControlAck, ControlMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/control", tags=["control"])

# Will be set by main.py
coordinator = None
board = None
timers = None


def _require_coordinator():
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Coordinator not initialized")
    return coordinator


@router.post("/message", response_model=ControlAck)
async def post_message(message: ControlMessage):
    return await _require_coordinator().handle_message(message)


@router.post("/skip-waiting", response_model=ControlAck)
async def skip_waiting():
    await _require_coordinator().skip_waiting()
    return ControlAck(success=True)


@router.post("/check-version")
async def check_version():
    coord = _require_coordinator()
    remote = await coord.check_version()
    return {
        "current": coord.version,
        "remote": remote,
        "update_available": coord.update_available,
    }


@router.post("/clear-caches", response_model=ControlAck)
async def clear_caches():
    return await _require_coordinator().clear_all()


@router.post("/reset", response_model=ControlAck)
async def reset():
    """Restart every timer and reload all data, e.g. after a settings reset."""
    if board is None or timers is None:
        raise HTTPException(status_code=503, detail="Board not initialized")
    timers.restart()
    await board.reload()
    logger.info("Board reset: timers restarted and data reloaded")
    return ControlAck(success=True)
