"""Reduce raw timetable documents to a single in-memory shape.

Timetable files come in two layouts (a direct line with top-level
``departures``, or a bidirectional line with ``to_city``/``from_city``) and the
``disembark_only`` block comes in several more. Everything is flattened here,
once, so the rest of the pipeline only sees ``direction -> stop -> [times]``.
"""

import logging
from typing import Any

from ferryboard.schemas.timetable import NormalizedTimetable, TimetableMetadata

logger = logging.getLogger(__name__)

DIRECT = "direct"
TO_CITY = "to_city"
FROM_CITY = "from_city"
DIRECTIONS = (TO_CITY, FROM_CITY)

DAY_TYPES = ("weekday", "saturday", "sunday")
PERIODS = ("morning", "lunch", "afternoon")

# disembark_only layouts
SHAPE_BY_DAY_TYPE = "by_day_type"
SHAPE_FLAT = "flat"
SHAPE_DIRECTION_FLAT = "direction_flat"
SHAPE_DIRECTION_STOPS = "direction_stops"
SHAPE_DIRECTION_PERIODS = "direction_periods"
SHAPE_EMPTY = "empty"


def _stop_lists(block: Any) -> dict[str, list[str]]:
    """Keep only ``stop -> list`` pairs from a mapping."""
    if not isinstance(block, dict):
        return {}
    return {
        str(stop): [str(t) for t in times]
        for stop, times in block.items()
        if isinstance(times, list)
    }


def _merge_into(target: dict[str, list[str]], block: dict[str, list[str]]) -> None:
    for stop, times in block.items():
        target.setdefault(stop, []).extend(times)


def merge_periods(direction_block: dict) -> dict[str, list[str]]:
    """Merge morning/lunch/afternoon departures of one direction, sorted per stop."""
    merged: dict[str, list[str]] = {}
    for period in PERIODS:
        part = direction_block.get(period)
        if isinstance(part, dict):
            _merge_into(merged, _stop_lists(part.get("departures")))
    for times in merged.values():
        times.sort()
    return merged


def direction_departures(direction_block: Any) -> dict[str, list[str]]:
    if not isinstance(direction_block, dict):
        return {}
    if isinstance(direction_block.get("departures"), dict):
        return _stop_lists(direction_block["departures"])
    return merge_periods(direction_block)


def classify_disembark_shape(raw: Any, day_type: str | None, direction: str) -> str:
    """Name the layout of a ``disembark_only`` block as seen from ``direction``."""
    if not isinstance(raw, dict) or not raw:
        return SHAPE_EMPTY
    if day_type and isinstance(raw.get(day_type), dict):
        return SHAPE_BY_DAY_TYPE
    flat = _stop_lists({
        k: v for k, v in raw.items()
        if k not in DIRECTIONS and k not in DAY_TYPES
    })
    if flat:
        return SHAPE_FLAT
    block = raw.get(direction)
    if not isinstance(block, dict):
        return SHAPE_EMPTY
    direct_stops = {
        k: v for k, v in block.items()
        if k not in PERIODS and k != "stops" and isinstance(v, list)
    }
    if direct_stops:
        return SHAPE_DIRECTION_FLAT
    if isinstance(block.get("stops"), dict):
        return SHAPE_DIRECTION_STOPS
    if any(isinstance(block.get(p), dict) for p in PERIODS):
        return SHAPE_DIRECTION_PERIODS
    return SHAPE_EMPTY


def extract_disembark_only(raw: Any, day_type: str | None, direction: str) -> dict[str, list[str]]:
    """Disembark-only times per stop for one direction, whatever the layout."""
    shape = classify_disembark_shape(raw, day_type, direction)
    if shape == SHAPE_BY_DAY_TYPE:
        return _stop_lists(raw[day_type])
    if shape == SHAPE_FLAT:
        return _stop_lists({
            k: v for k, v in raw.items()
            if k not in DIRECTIONS and k not in DAY_TYPES
        })
    if shape == SHAPE_DIRECTION_FLAT:
        return _stop_lists({
            k: v for k, v in raw[direction].items()
            if k not in PERIODS and k != "stops"
        })
    if shape == SHAPE_DIRECTION_STOPS:
        return _stop_lists(raw[direction]["stops"])
    if shape == SHAPE_DIRECTION_PERIODS:
        merged: dict[str, list[str]] = {}
        for period in PERIODS:
            _merge_into(merged, _stop_lists(raw[direction].get(period)))
        return merged
    return {}


def normalize_timetable(file_name: str, document: dict) -> NormalizedTimetable:
    """Build the canonical timetable for a loaded document."""
    metadata = TimetableMetadata.model_validate(document.get("metadata") or {})
    raw_disembark = document.get("disembark_only")

    if any(isinstance(document.get(d), dict) for d in DIRECTIONS):
        directions = [d for d in DIRECTIONS if isinstance(document.get(d), dict)]
        departures = {d: direction_departures(document[d]) for d in directions}
    else:
        directions = [DIRECT]
        departures = {DIRECT: _stop_lists(document.get("departures"))}

    disembark = {}
    for direction in directions:
        times = extract_disembark_only(raw_disembark, metadata.day_type, direction)
        if times:
            disembark[direction] = times

    logger.debug(
        "Normalized %s: directions=%s stops=%d disembark=%s",
        file_name, directions, sum(len(s) for s in departures.values()), list(disembark),
    )
    return NormalizedTimetable(
        file_name=file_name,
        metadata=metadata,
        departures=departures,
        disembark_only=disembark,
    )
