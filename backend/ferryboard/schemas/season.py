import datetime

from pydantic import BaseModel


class SeasonPeriod(BaseModel):
    start: datetime.date
    end: datetime.date

    def contains(self, day: datetime.date) -> bool:
        return self.start <= day <= self.end


class SeasonFiles(BaseModel):
    weekday: str | None = None
    saturday: str | None = None
    sunday: str | None = None
    weekend: str | None = None  # lines with a single Saturday/Sunday file

    def for_day_type(self, day_type: str) -> str | None:
        """File for a day type; weekend days fall back to the shared weekend file."""
        name = getattr(self, day_type, None)
        if name is None and day_type in ("saturday", "sunday"):
            name = self.weekend
        return name

    def weekend_file(self) -> str | None:
        return self.weekend or self.sunday or self.saturday


class HolidayRules(BaseModel):
    no_traffic: list[datetime.date] = []
    weekend_schedule: list[datetime.date] = []


class SeasonDefinition(BaseModel):
    name: str
    period: SeasonPeriod
    files: SeasonFiles
    holiday_rules: HolidayRules = HolidayRules()
    maintenance_mode: bool = False


class SeasonConfig(BaseModel):
    season_mapping: list[SeasonDefinition] = []
