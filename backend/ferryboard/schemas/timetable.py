from typing import Any

from pydantic import BaseModel


class TimetableMetadata(BaseModel):
    valid_period: Any = None
    day_type: str | None = None
    maintenance_mode: bool = False
    maintenance_message: str | None = None


class NormalizedTimetable(BaseModel):
    """A timetable document reduced to one shape: direction -> stop -> times."""

    file_name: str
    metadata: TimetableMetadata
    departures: dict[str, dict[str, list[str]]] = {}
    disembark_only: dict[str, dict[str, list[str]]] = {}
