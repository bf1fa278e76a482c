"""Pick the timetable file that applies to a line on a given date.

A line's seasons are scanned in list order. The first season whose period
contains the date wins; when none does, the season that ends last is used
and the result is flagged as expired so the board can warn about stale data.
"""

import datetime
import logging
from dataclasses import dataclass

from ferryboard.schemas.season import SeasonDefinition

logger = logging.getLogger(__name__)

WEEKDAY = "weekday"
SATURDAY = "saturday"
SUNDAY = "sunday"


@dataclass(frozen=True)
class Resolution:
    file_name: str | None
    expired: bool = False
    expiry_date: datetime.date | None = None
    season: SeasonDefinition | None = None


def day_type(day: datetime.date) -> str:
    """Classify a date as weekday, saturday or sunday."""
    weekday = day.isoweekday()
    if weekday == 6:
        return SATURDAY
    if weekday == 7:
        return SUNDAY
    return WEEKDAY


def weekday_index(day: datetime.date) -> int:
    """Monday=1 .. Sunday=7."""
    return day.isoweekday()


def resolve_timetable_file(
    seasons: list[SeasonDefinition],
    target: datetime.date,
    classification: str | None = None,
) -> Resolution:
    """Resolve which timetable file to load for ``target``.

    Holiday weekend overrides only apply to an exact season match; the
    expired fallback always uses the plain day-type classification.
    """
    if classification is None:
        classification = day_type(target)

    exact: SeasonDefinition | None = None
    latest: SeasonDefinition | None = None
    for season in seasons:
        if latest is None or season.period.end > latest.period.end:
            latest = season
        if exact is None and season.period.contains(target):
            exact = season

    if exact is not None:
        if target in exact.holiday_rules.weekend_schedule:
            logger.info(
                "%s is a holiday in season %s, using weekend schedule",
                target, exact.name,
            )
            return Resolution(exact.files.weekend_file(), season=exact)
        return Resolution(exact.files.for_day_type(classification), season=exact)

    if latest is None:
        return Resolution(None)

    file_name = latest.files.for_day_type(classification) or latest.files.weekday
    logger.warning(
        "No season covers %s; falling back to %s which expired %s",
        target, latest.name, latest.period.end,
    )
    return Resolution(
        file_name,
        expired=True,
        expiry_date=latest.period.end,
        season=latest,
    )


def current_season(
    seasons: list[SeasonDefinition], target: datetime.date,
) -> SeasonDefinition | None:
    for season in seasons:
        if season.period.contains(target):
            return season
    return None


def find_overlaps(seasons: list[SeasonDefinition]) -> list[tuple[str, str]]:
    """Return name pairs of seasons whose periods overlap.

    Overlaps are legal: the earlier entry in the list takes precedence.
    """
    overlaps = []
    for i, first in enumerate(seasons):
        for second in seasons[i + 1:]:
            if first.period.start <= second.period.end and second.period.start <= first.period.end:
                overlaps.append((first.name, second.name))
    return overlaps
