import datetime

from pydantic import BaseModel


class DepartureInfo(BaseModel):
    time: str
    is_today: bool
    disembark_only: bool = False


class StopBoard(BaseModel):
    stop: str
    highlighted: bool = False
    departures: list[DepartureInfo] = []


class DirectionBoard(BaseModel):
    direction: str
    stops: list[StopBoard] = []


class LineBoard(BaseModel):
    line: str
    file_name: str | None = None
    season_name: str | None = None
    valid_from: datetime.date | None = None
    valid_until: datetime.date | None = None
    expired: bool = False
    expiry_date: datetime.date | None = None
    maintenance_mode: bool = False
    maintenance_message: str | None = None
    error: str | None = None
    directions: list[DirectionBoard] = []


class BoardSnapshot(BaseModel):
    generated_at: datetime.datetime
    loaded_for: datetime.date | None = None
    lines: list[LineBoard] = []
