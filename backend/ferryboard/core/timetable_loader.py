"""Load season configs and timetable documents through the cache coordinator."""

import logging
import time

import httpx
import orjson
from pydantic import ValidationError

from ferryboard.config import settings
from ferryboard.core.cache_coordinator import CacheCoordinator, ProxyRequest
from ferryboard.core.season_resolver import find_overlaps
from ferryboard.core.timetable_normalizer import normalize_timetable
from ferryboard.schemas.season import SeasonDefinition, SeasonConfig
from ferryboard.schemas.timetable import NormalizedTimetable

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """A config or timetable document could not be fetched or parsed."""


def add_cache_buster(url: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}_nocache={int(time.time() * 1000)}"


class TimetableLoader:
    """Fetches documents as the board would, via the interception layer."""

    def __init__(self, coordinator: CacheCoordinator) -> None:
        self.coordinator = coordinator

    async def _get_json(self, path: str) -> object:
        url = add_cache_buster(self.coordinator.url_for(path))
        try:
            response = await self.coordinator.handle(ProxyRequest(url, accept="application/json"))
        except httpx.HTTPError as e:
            raise LoadError(f"{path}: {e}") from e
        if not response.ok:
            raise LoadError(f"{path}: HTTP {response.status_code} ({response.source})")
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise LoadError(f"{path}: invalid JSON: {e}") from e

    async def load_seasons(self, line: str) -> list[SeasonDefinition] | None:
        """Season list for a line, or None when the config cannot be loaded."""
        path = settings.line_configs.get(line)
        if path is None:
            logger.error("No config path configured for line %s", line)
            return None
        try:
            data = await self._get_json(path)
            config = SeasonConfig.model_validate(data)
        except (LoadError, ValidationError) as e:
            logger.error("Could not load season config for %s: %s", line, e)
            return None

        for first, second in find_overlaps(config.season_mapping):
            logger.warning(
                "Line %s: seasons %s and %s overlap; %s takes precedence",
                line, first, second, first,
            )
        return config.season_mapping

    async def load_timetable(self, file_name: str) -> NormalizedTimetable | None:
        path = f"{settings.data_path.rstrip('/')}/{file_name}"
        try:
            data = await self._get_json(path)
            if not isinstance(data, dict):
                raise LoadError(f"{path}: document root is not an object")
            return normalize_timetable(file_name, data)
        except (LoadError, ValidationError) as e:
            logger.error("Could not load timetable %s: %s", file_name, e)
            return None
