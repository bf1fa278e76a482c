"""Board controller: owns loaded schedules and computes the departure board."""

import asyncio
import datetime
import logging
from dataclasses import dataclass, field, replace
from typing import Callable
from zoneinfo import ZoneInfo

from ferryboard.config import settings
from ferryboard.core.departure_processor import departures_for_stop
from ferryboard.core.season_resolver import Resolution, resolve_timetable_file
from ferryboard.core.timetable_loader import TimetableLoader
from ferryboard.schemas.board import (
    BoardSnapshot,
    DepartureInfo,
    DirectionBoard,
    LineBoard,
    StopBoard,
)
from ferryboard.schemas.season import SeasonDefinition
from ferryboard.schemas.timetable import NormalizedTimetable

logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_MESSAGE = "The line has a temporary break in service."

# timer ticks may arrive slightly early
DISPLAY_TOLERANCE_SECONDS = 1.0


@dataclass
class LineData:
    line: str
    resolution: Resolution | None = None
    today: NormalizedTimetable | None = None
    tomorrow: NormalizedTimetable | None = None
    error: str | None = None


@dataclass
class BoardState:
    seasons: dict[str, list[SeasonDefinition]] = field(default_factory=dict)
    lines: dict[str, LineData] = field(default_factory=dict)
    loaded_for: datetime.date | None = None
    last_load: datetime.datetime | None = None
    last_display: datetime.datetime | None = None
    snapshot: BoardSnapshot | None = None


class BoardController:
    """Loads today's and tomorrow's timetables per line and builds the board."""

    def __init__(
        self,
        loader: TimetableLoader,
        lines: list[str] | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.loader = loader
        self.lines = lines or list(settings.line_configs)
        self._clock = clock
        self.state = BoardState()

    def now(self) -> datetime.datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.datetime.now(ZoneInfo(settings.timezone))

    async def load_config(self) -> None:
        """Refresh season lists; a line keeps its previous list if the refresh fails."""
        for line in self.lines:
            seasons = await self.loader.load_seasons(line)
            if seasons is not None:
                self.state.seasons[line] = seasons

    async def load_all_timetables(self, now: datetime.datetime | None = None) -> None:
        now = now or self.now()
        if any(line not in self.state.seasons for line in self.lines):
            await self.load_config()

        today = now.date()
        tomorrow = today + datetime.timedelta(days=1)
        results = await asyncio.gather(
            *(self._load_line(line, today, tomorrow) for line in self.lines)
        )
        if self.state.loaded_for == today:
            results = [self._keep_previous(data) for data in results]
        self.state.lines = {data.line: data for data in results}
        self.state.loaded_for = today
        self.state.last_load = now
        logger.info(
            "Timetables loaded for %s: %s",
            today, {d.line: d.error or "ok" for d in results},
        )
        self.update_display(force=True, now=now)

    async def _load_line(
        self, line: str, today: datetime.date, tomorrow: datetime.date,
    ) -> LineData:
        seasons = self.state.seasons.get(line)
        if seasons is None:
            return LineData(line, error="Season configuration unavailable")

        resolution = resolve_timetable_file(seasons, today)
        if resolution.file_name is None:
            logger.error("Line %s: no timetable file resolves for %s", line, today)
            return LineData(line, resolution=resolution, error="No timetable for this date")
        if resolution.expired:
            logger.warning(
                "Line %s: timetable expired %s, showing %s",
                line, resolution.expiry_date, resolution.file_name,
            )

        tomorrow_resolution = resolve_timetable_file(seasons, tomorrow)
        tomorrow_file = tomorrow_resolution.file_name
        if tomorrow_file is None or tomorrow_file == resolution.file_name:
            today_doc = await self.loader.load_timetable(resolution.file_name)
            tomorrow_doc = today_doc if tomorrow_file else None
        else:
            today_doc, tomorrow_doc = await asyncio.gather(
                self.loader.load_timetable(resolution.file_name),
                self.loader.load_timetable(tomorrow_file),
            )

        if today_doc is None:
            return LineData(line, resolution=resolution, error="Could not load timetable data")
        if tomorrow_doc is None:
            logger.warning("Line %s: tomorrow's timetable unavailable, showing today only", line)
        return LineData(line, resolution=resolution, today=today_doc, tomorrow=tomorrow_doc)

    def _keep_previous(self, data: LineData) -> LineData:
        """On a failed same-day refresh, keep showing what was loaded before."""
        previous = self.state.lines.get(data.line)
        if data.error is None or previous is None or previous.today is None:
            return data
        logger.warning(
            "Line %s: refresh failed (%s), keeping previously loaded timetables",
            data.line, data.error,
        )
        return replace(previous, error=data.error)

    async def reload(self) -> None:
        """Forget season lists and load everything again."""
        self.state.seasons = {}
        await self.load_all_timetables()

    async def check_midnight(self, now: datetime.datetime | None = None) -> bool:
        now = now or self.now()
        if self.state.loaded_for == now.date():
            return False
        logger.info("New day detected (%s), reloading timetables", now.date())
        await self.load_all_timetables(now)
        return True

    def update_display(
        self, force: bool = False, now: datetime.datetime | None = None,
    ) -> BoardSnapshot:
        now = now or self.now()
        last = self.state.last_display
        if (
            not force
            and self.state.snapshot is not None
            and last is not None
            and (now - last).total_seconds()
            < settings.display_interval_seconds - DISPLAY_TOLERANCE_SECONDS
        ):
            return self.state.snapshot
        self.state.snapshot = self.build_snapshot(now=now)
        self.state.last_display = now
        return self.state.snapshot

    async def refresh_display(self) -> None:
        """Timer entry point; runs on the event loop like every other job."""
        self.update_display()

    def build_snapshot(
        self,
        max_departures: int | None = None,
        now: datetime.datetime | None = None,
        lines: list[str] | None = None,
        highlight: dict[str, str] | None = None,
    ) -> BoardSnapshot:
        now = now or self.now()
        if max_departures is None:
            max_departures = settings.max_visible_departures
        if highlight is None:
            highlight = settings.highlight_stops
        boards = []
        for line in lines or self.lines:
            data = self.state.lines.get(line)
            if data is None:
                boards.append(LineBoard(line=line, error="Not loaded"))
                continue
            boards.append(self._line_board(data, max_departures, now, highlight))
        return BoardSnapshot(generated_at=now, loaded_for=self.state.loaded_for, lines=boards)

    def _line_board(
        self,
        data: LineData,
        max_departures: int,
        now: datetime.datetime,
        highlight: dict[str, str],
    ) -> LineBoard:
        resolution = data.resolution
        season = resolution.season if resolution else None
        board = LineBoard(
            line=data.line,
            file_name=resolution.file_name if resolution else None,
            season_name=season.name if season else None,
            valid_from=season.period.start if season else None,
            valid_until=season.period.end if season else None,
            expired=resolution.expired if resolution else False,
            expiry_date=resolution.expiry_date if resolution else None,
            error=data.error,
        )
        today = data.today
        if today is None:
            return board

        if today.metadata.maintenance_mode or (season is not None and season.maintenance_mode):
            board.maintenance_mode = True
            board.maintenance_message = today.metadata.maintenance_message or DEFAULT_MAINTENANCE_MESSAGE
            return board

        tomorrow = data.tomorrow
        for direction, stops in today.departures.items():
            tomorrow_stops = tomorrow.departures.get(direction, {}) if tomorrow else {}
            today_disembark = today.disembark_only.get(direction, {})
            tomorrow_disembark = tomorrow.disembark_only.get(direction, {}) if tomorrow else {}
            stop_boards = []
            for stop, times in stops.items():
                departures = departures_for_stop(
                    times, tomorrow_stops.get(stop, []), now, max_departures,
                )
                stop_boards.append(StopBoard(
                    stop=stop,
                    highlighted=highlight.get(direction) == stop,
                    departures=[
                        DepartureInfo(
                            time=d.time,
                            is_today=d.is_today,
                            disembark_only=d.time in (
                                today_disembark if d.is_today else tomorrow_disembark
                            ).get(stop, []),
                        )
                        for d in departures
                    ],
                ))
            board.directions.append(DirectionBoard(direction=direction, stops=stop_boards))
        return board
