"""Departure board REST API."""

from fastapi import APIRouter, HTTPException, Query

from ferryboard.config import settings
from ferryboard.schemas.board import BoardSnapshot

router = APIRouter(prefix="/api/board", tags=["board"])

# Will be set by main.py
board = None


@router.get("", response_model=BoardSnapshot)
async def get_board(
    line: list[str] | None = Query(None),
    maxdep: int | None = Query(None, ge=1, le=50),
    highlight: str | None = None,
):
    """Upcoming departures per line, direction and stop."""
    if board is None:
        raise HTTPException(status_code=503, detail="Board not initialized")
    if line:
        unknown = [name for name in line if name not in board.lines]
        if unknown:
            raise HTTPException(status_code=404, detail=f"Unknown line(s): {', '.join(unknown)}")
    if line is None and maxdep is None and highlight is None:
        return board.update_display()

    stops = dict(settings.highlight_stops)
    if highlight:
        stops = {direction: highlight for direction in stops}
    return board.build_snapshot(max_departures=maxdep, lines=line, highlight=stops)
