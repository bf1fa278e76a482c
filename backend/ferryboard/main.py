"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ferryboard.api import board as board_api
from ferryboard.api import control, proxy, ws
from ferryboard.config import settings
from ferryboard.core.board import BoardController
from ferryboard.core.broadcaster import Broadcaster
from ferryboard.core.cache_coordinator import CacheCoordinator
from ferryboard.core.cache_storage import RedisCacheStorage
from ferryboard.core.scheduler import TimerGroup
from ferryboard.core.timetable_loader import TimetableLoader

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    redis = aioredis.from_url(settings.redis_url, decode_responses=False)
    client = httpx.AsyncClient(timeout=settings.fetch_timeout_seconds, follow_redirects=True)

    broadcaster = Broadcaster()
    await broadcaster.connect(redis)

    coordinator = CacheCoordinator(RedisCacheStorage(redis), client, broadcaster)
    await coordinator.install()

    board = BoardController(TimetableLoader(coordinator))
    timers = TimerGroup(board, coordinator)

    # Wire up API modules
    proxy.coordinator = coordinator
    ws.broadcaster = broadcaster
    ws.coordinator = coordinator
    board_api.board = board
    control.coordinator = coordinator
    control.board = board
    control.timers = timers

    try:
        await board.load_all_timetables()
    except Exception:
        logger.exception("Initial timetable load failed - will retry")

    timers.start()
    logger.info("Ferry board %s started for lines %s", settings.app_version, ", ".join(board.lines))

    yield

    timers.shutdown()
    await client.aclose()
    await broadcaster.close()
    logger.info("Ferry board shut down")


app = FastAPI(
    title="Ferry Departure Board",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": settings.app_version}


app.include_router(board_api.router)
app.include_router(control.router)
app.include_router(ws.router)
# catch-all, must stay last
app.include_router(proxy.router)
