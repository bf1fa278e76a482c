"""Merge today's and tomorrow's departures into a bounded upcoming list.

Times from both days are projected onto one minute axis starting at today's
midnight, deduplicated per (weekday, time), sorted by distance from now and
sliced from the next upcoming departure.
"""

import datetime
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class TimeEntry:
    time: str
    weekday_index: int  # 1=Monday .. 7=Sunday
    day_offset: int  # 0=today, 1=tomorrow


@dataclass(frozen=True)
class DepartureInstance:
    time: str
    weekday_index: int
    day_offset: int
    total_order_minutes: int
    diff: int
    unique_id: str

    @property
    def is_past(self) -> bool:
        return self.diff < 0

    @property
    def is_today(self) -> bool:
        return self.day_offset == 0


@dataclass(frozen=True)
class Departure:
    time: str
    is_today: bool


def minutes_since_midnight(time_str: str) -> int:
    """Parse ``HH:MM``; raises ValueError on anything else."""
    match = _TIME_RE.match(time_str.strip()) if isinstance(time_str, str) else None
    if match is None:
        raise ValueError(f"Malformed time {time_str!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Time out of range {time_str!r}")
    return hours * 60 + minutes


def unique_id(weekday: int, time_str: str) -> str:
    return f"{weekday}|{time_str}"


def entries_for_day(
    times: list[str],
    day: datetime.date,
    today: datetime.date,
) -> list[TimeEntry]:
    """Tag raw times of ``day`` with its weekday index and offset from ``today``."""
    offset = (day - today).days
    weekday = day.isoweekday()
    return [TimeEntry(time=t, weekday_index=weekday, day_offset=offset) for t in times]


def build_instances(
    entries: list[TimeEntry],
    now: datetime.datetime,
) -> list[DepartureInstance]:
    """Project entries relative to ``now``, skipping malformed times."""
    current = now.hour * 60 + now.minute
    instances = []
    for entry in entries:
        try:
            minutes = minutes_since_midnight(entry.time)
        except ValueError as e:
            logger.warning("Skipping departure entry: %s", e)
            continue
        total = entry.day_offset * MINUTES_PER_DAY + minutes
        instances.append(DepartureInstance(
            time=entry.time,
            weekday_index=entry.weekday_index,
            day_offset=entry.day_offset,
            total_order_minutes=total,
            diff=total - current,
            unique_id=unique_id(entry.weekday_index, entry.time),
        ))
    return instances


def process_departures(
    entries: list[TimeEntry],
    max_departures: int,
    now: datetime.datetime,
) -> list[Departure]:
    """Return at most ``max_departures`` departures starting at the next one.

    When every departure has already left, the last ``max_departures`` are
    returned instead so the board is never empty.
    """
    if max_departures <= 0:
        return []

    instances = build_instances(entries, now)

    # closest instance wins on collision; sort is stable so ties keep input order
    instances.sort(key=lambda d: abs(d.diff))
    unique: dict[str, DepartureInstance] = {}
    for inst in instances:
        unique.setdefault(inst.unique_id, inst)

    ordered = sorted(unique.values(), key=lambda d: d.diff)
    next_idx = next((i for i, d in enumerate(ordered) if not d.is_past), None)
    if next_idx is None:
        selected = ordered[-max_departures:]
    else:
        selected = ordered[next_idx:next_idx + max_departures]

    return [Departure(time=d.time, is_today=d.is_today) for d in selected]


def departures_for_stop(
    today_times: list[str],
    tomorrow_times: list[str],
    now: datetime.datetime,
    max_departures: int,
) -> list[Departure]:
    """Convenience wrapper for one stop's today and tomorrow lists."""
    today = now.date()
    tomorrow = today + datetime.timedelta(days=1)
    entries = entries_for_day(today_times, today, today)
    entries += entries_for_day(tomorrow_times, tomorrow, today)
    return process_departures(entries, max_departures, now)
