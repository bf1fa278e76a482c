"""Tests for the board controller and the timetable loader."""

import asyncio
import datetime

import httpx
import orjson

from ferryboard.core.board import BoardController
from ferryboard.core.broadcaster import Broadcaster
from ferryboard.core.cache_coordinator import CacheCoordinator
from ferryboard.core.cache_storage import MemoryCacheStorage
from ferryboard.core.timetable_loader import TimetableLoader
from ferryboard.core.timetable_normalizer import normalize_timetable
from ferryboard.schemas.season import SeasonDefinition

# Monday
NOW = datetime.datetime(2025, 3, 17, 7, 10)

SJO_CONFIG = {
    "season_mapping": [
        {
            "name": "2025",
            "period": {"start": "2025-01-01", "end": "2025-12-31"},
            "files": {"weekday": "sjo-weekday.json", "weekend": "sjo-weekend.json"},
        },
    ],
}

CITY_CONFIG = {
    "season_mapping": [
        {
            "name": "Winter",
            "period": {"start": "2024-11-01", "end": "2025-02-28"},
            "files": {
                "weekday": "city-weekday.json",
                "saturday": "city-saturday.json",
                "sunday": "city-sunday.json",
            },
        },
    ],
}

SJO_WEEKDAY = {
    "metadata": {"day_type": "weekday"},
    "departures": {"Lumabryggan": ["07:00", "07:30", "08:00"], "Henriksdal": ["07:05"]},
}

CITY_WEEKDAY = {
    "metadata": {"day_type": "weekday"},
    "to_city": {"departures": {"Lumabryggan": ["07:20", "09:20"]}},
    "from_city": {"departures": {"Nybroplan": ["08:00"]}},
    "disembark_only": {"to_city": {"stops": {"Lumabryggan": ["09:20"]}}},
}


def seasons_of(config: dict) -> list[SeasonDefinition]:
    return [SeasonDefinition.model_validate(s) for s in config["season_mapping"]]


class FakeLoader:
    def __init__(self, seasons: dict, documents: dict) -> None:
        self.seasons = seasons
        self.documents = documents
        self.loaded: list[str] = []

    async def load_seasons(self, line):
        return self.seasons.get(line)

    async def load_timetable(self, file_name):
        self.loaded.append(file_name)
        doc = self.documents.get(file_name)
        return normalize_timetable(file_name, doc) if doc is not None else None


def make_board(seasons=None, documents=None, lines=("sjo", "city")) -> BoardController:
    if seasons is None:
        seasons = {"sjo": seasons_of(SJO_CONFIG), "city": seasons_of(CITY_CONFIG)}
    if documents is None:
        documents = {"sjo-weekday.json": SJO_WEEKDAY, "city-weekday.json": CITY_WEEKDAY}
    return BoardController(FakeLoader(seasons, documents), lines=list(lines), clock=lambda: NOW)


def loaded(board: BoardController) -> BoardController:
    asyncio.run(board.load_all_timetables())
    return board


def test_board_lists_upcoming_departures():
    board = loaded(make_board())
    snapshot = board.build_snapshot(max_departures=3)
    sjo = snapshot.lines[0]
    assert sjo.line == "sjo"
    assert sjo.file_name == "sjo-weekday.json"
    assert sjo.season_name == "2025"
    assert sjo.expired is False
    direct = sjo.directions[0]
    assert direct.direction == "direct"
    luma = direct.stops[0]
    assert luma.stop == "Lumabryggan"
    assert luma.highlighted is True
    assert [(d.time, d.is_today) for d in luma.departures] == [
        ("07:30", True), ("08:00", True), ("07:00", False),
    ]


def test_same_file_for_today_and_tomorrow_loaded_once():
    board = loaded(make_board(lines=("sjo",)))
    assert board.loader.loaded == ["sjo-weekday.json"]


def test_expired_season_is_flagged():
    board = loaded(make_board())
    city = board.build_snapshot().lines[1]
    # Winter ended 2025-02-28, still displayed with a warning
    assert city.expired is True
    assert city.expiry_date == datetime.date(2025, 2, 28)
    assert city.file_name == "city-weekday.json"
    assert [d.direction for d in city.directions] == ["to_city", "from_city"]


def test_disembark_only_flags():
    board = loaded(make_board())
    city = board.build_snapshot(max_departures=5).lines[1]
    to_city = city.directions[0].stops[0]
    flags = {(d.time, d.is_today): d.disembark_only for d in to_city.departures}
    assert flags[("09:20", True)] is True
    assert flags[("07:20", True)] is False


def test_failed_line_does_not_affect_others():
    board = loaded(make_board(seasons={"sjo": seasons_of(SJO_CONFIG)}))
    sjo, city = board.build_snapshot().lines
    assert sjo.error is None
    assert sjo.directions
    assert city.error == "Season configuration unavailable"
    assert city.directions == []


def test_missing_timetable_document():
    board = loaded(make_board(documents={"sjo-weekday.json": SJO_WEEKDAY}))
    city = board.build_snapshot().lines[1]
    assert city.error == "Could not load timetable data"
    assert city.file_name == "city-weekday.json"


def test_empty_season_list_reports_no_timetable():
    board = loaded(make_board(seasons={"sjo": [], "city": seasons_of(CITY_CONFIG)}))
    sjo = board.build_snapshot().lines[0]
    assert sjo.file_name is None
    assert sjo.error == "No timetable for this date"


def test_maintenance_mode_replaces_departures():
    documents = {
        "sjo-weekday.json": {
            "metadata": {"day_type": "weekday", "maintenance_mode": True},
            "departures": {"Lumabryggan": ["08:00"]},
        },
    }
    board = loaded(make_board(documents=documents, lines=("sjo",)))
    sjo = board.build_snapshot().lines[0]
    assert sjo.maintenance_mode is True
    assert sjo.maintenance_message
    assert sjo.directions == []


def test_midnight_check_reloads_on_new_day():
    board = loaded(make_board(lines=("sjo",)))
    assert asyncio.run(board.check_midnight(NOW + datetime.timedelta(hours=1))) is False
    next_day = datetime.datetime(2025, 3, 18, 0, 1)
    assert asyncio.run(board.check_midnight(next_day)) is True
    assert board.state.loaded_for == datetime.date(2025, 3, 18)


def test_display_refresh_is_throttled():
    board = loaded(make_board(lines=("sjo",)))
    first = board.state.snapshot
    assert board.update_display(now=NOW + datetime.timedelta(seconds=30)) is first
    assert board.update_display(force=True, now=NOW + datetime.timedelta(seconds=30)) is not first
    later = board.update_display(now=NOW + datetime.timedelta(minutes=5))
    assert later.generated_at == NOW + datetime.timedelta(minutes=5)


def test_display_refresh_tolerates_early_timer_tick():
    board = loaded(make_board(lines=("sjo",)))
    first = board.state.snapshot
    tick = NOW + datetime.timedelta(seconds=59, milliseconds=995)
    refreshed = board.update_display(now=tick)
    assert refreshed is not first
    assert refreshed.generated_at == tick


def test_timer_refresh_recomputes_snapshot():
    board = loaded(make_board(lines=("sjo",)))
    board.state.last_display = NOW - datetime.timedelta(minutes=2)
    first = board.state.snapshot
    asyncio.run(board.refresh_display())
    assert board.state.snapshot is not first


def test_failed_refresh_keeps_previous_departures():
    board = loaded(make_board(lines=("sjo",)))
    assert board.build_snapshot().lines[0].directions

    board.loader.documents.clear()
    asyncio.run(board.load_all_timetables(NOW + datetime.timedelta(minutes=30)))
    sjo = board.build_snapshot().lines[0]
    assert sjo.error == "Could not load timetable data"
    assert sjo.file_name == "sjo-weekday.json"
    assert sjo.directions[0].stops[0].stop == "Lumabryggan"

    board.loader.documents["sjo-weekday.json"] = SJO_WEEKDAY
    asyncio.run(board.load_all_timetables(NOW + datetime.timedelta(minutes=60)))
    assert board.build_snapshot().lines[0].error is None


def test_failed_load_on_new_day_does_not_keep_yesterday():
    board = loaded(make_board(lines=("sjo",)))
    board.loader.documents.clear()
    assert asyncio.run(board.check_midnight(datetime.datetime(2025, 3, 18, 0, 1))) is True
    sjo = board.build_snapshot().lines[0]
    assert sjo.error == "Could not load timetable data"
    assert sjo.directions == []


def serve(documents: dict[str, dict], requests: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        doc = documents.get(request.url.path)
        if doc is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(200, content=orjson.dumps(doc), headers={"content-type": "application/json"})
    return handler


def test_loader_fetches_through_coordinator():
    requests: list[httpx.Request] = []
    documents = {
        "/data/ressel-sjo-config.json": SJO_CONFIG,
        "/data/sjo-weekday.json": SJO_WEEKDAY,
    }

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(serve(documents, requests)))
        coordinator = CacheCoordinator(
            MemoryCacheStorage(), client, Broadcaster(),
            version="1.0.0", origin_url="https://ferry.test",
        )
        coordinator.claim()
        loader = TimetableLoader(coordinator)
        seasons = await loader.load_seasons("sjo")
        timetable = await loader.load_timetable("sjo-weekday.json")
        missing = await loader.load_timetable("nope.json")
        unknown_line = await loader.load_seasons("ferry-to-nowhere")
        return seasons, timetable, missing, unknown_line

    seasons, timetable, missing, unknown_line = asyncio.run(scenario())
    assert [s.name for s in seasons] == ["2025"]
    assert timetable.departures["direct"]["Henriksdal"] == ["07:05"]
    assert missing is None
    assert unknown_line is None
    assert all("_nocache" in r.url.params for r in requests)


def test_loader_serves_cached_documents_offline():
    requests: list[httpx.Request] = []
    documents = {"/data/ressel-sjo-config.json": SJO_CONFIG}
    state = {"online": True}
    online_handler = serve(documents, requests)

    def handler(request: httpx.Request) -> httpx.Response:
        if not state["online"]:
            raise httpx.ConnectError("network down", request=request)
        return online_handler(request)

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        coordinator = CacheCoordinator(
            MemoryCacheStorage(), client, Broadcaster(),
            version="1.0.0", origin_url="https://ferry.test",
        )
        coordinator.claim()
        loader = TimetableLoader(coordinator)
        await loader.load_seasons("sjo")
        state["online"] = False
        cached = await loader.load_seasons("sjo")
        never_seen = await loader.load_seasons("city")
        return cached, never_seen

    cached, never_seen = asyncio.run(scenario())
    assert [s.name for s in cached] == ["2025"]
    assert never_seen is None
