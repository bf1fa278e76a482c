"""Offline-capable request interception in front of the timetable deployment.

Every resource request goes through ``CacheCoordinator.handle``. JSON
documents (configs and timetables) are fetched network-first so the board
always shows current data when online; everything else is served
cache-first. Each deployed version owns two stores; older generations are
removed on activation. A periodic manifest check tells connected clients
when a newer deployment is live.
"""

import logging
import time
from dataclasses import dataclass

import httpx
import orjson

from ferryboard.config import settings
from ferryboard.core.broadcaster import Broadcaster
from ferryboard.core.cache_storage import CachedResponse, CacheStorage, CacheStorageError
from ferryboard.schemas.messages import ControlAck, ControlMessage, UpdateAvailable

logger = logging.getLogger(__name__)

MUTABLE_DATA = "mutable-data"
STATIC_ASSET = "static-asset"

# lifecycle states
PARSED = "parsed"
INSTALLING = "installing"
INSTALLED = "installed"
ACTIVATED = "activated"

OFFLINE_MESSAGE = "Offline and no cached data available"

_FORWARDED_HEADERS = ("content-type", "cache-control", "etag", "last-modified")


@dataclass
class ProxyRequest:
    url: str
    accept: str | None = None

    @property
    def accepts_html(self) -> bool:
        return bool(self.accept) and "text/html" in self.accept


def normalize_key(url: str) -> str:
    """Cache key for a URL: its path, with the query string dropped."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ValueError(f"Malformed URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValueError(f"Malformed URL {url!r}")
    return parsed.path or "/"


def resource_class(key: str) -> str:
    return MUTABLE_DATA if key.endswith(".json") else STATIC_ASSET


def _offline_data_response() -> CachedResponse:
    return CachedResponse(
        status_code=503,
        content=orjson.dumps({"error": OFFLINE_MESSAGE}),
        headers={"content-type": "application/json"},
        source="offline",
    )


def _offline_asset_response() -> CachedResponse:
    return CachedResponse(
        status_code=503,
        content=OFFLINE_MESSAGE.encode(),
        headers={"content-type": "text/plain"},
        source="offline",
    )


class CacheCoordinator:
    """Serves resources from the network or the generation-scoped stores."""

    def __init__(
        self,
        storage: CacheStorage,
        client: httpx.AsyncClient,
        broadcaster: Broadcaster,
        version: str | None = None,
        origin_url: str | None = None,
        cache_prefix: str | None = None,
    ) -> None:
        self.storage = storage
        self.client = client
        self.broadcaster = broadcaster
        self.version = version or settings.app_version
        self.origin_url = (origin_url or settings.origin_url).rstrip("/")
        prefix = cache_prefix or settings.cache_prefix
        self.static_cache_name = f"{prefix}-v{self.version}"
        self.data_cache_name = f"{prefix}-json-v{self.version}"
        self.state = PARSED
        self.controlling = False
        self.remote_version: str | None = None

    @property
    def whitelist(self) -> tuple[str, str]:
        return (self.static_cache_name, self.data_cache_name)

    def url_for(self, path: str) -> str:
        return self.origin_url + "/" + path.lstrip("/")

    # lifecycle

    async def install(
        self,
        static_paths: list[str] | None = None,
        data_paths: list[str] | None = None,
    ) -> None:
        """Pre-cache the app shell and known data documents, then activate."""
        self.state = INSTALLING
        if static_paths is None:
            static_paths = settings.precache_static
        if data_paths is None:
            data_paths = settings.precache_data
        cached = await self._precache(self.static_cache_name, static_paths)
        cached += await self._precache(self.data_cache_name, data_paths)
        logger.info(
            "Installed version %s (%d/%d resources pre-cached)",
            self.version, cached, len(static_paths) + len(data_paths),
        )
        self.state = INSTALLED
        await self.skip_waiting()

    async def _precache(self, store_name: str, paths: list[str]) -> int:
        cached = 0
        for path in paths:
            url = self.url_for(path)
            try:
                response = await self._fetch(url)
            except httpx.HTTPError as e:
                logger.warning("Pre-cache of %s failed: %s", url, e)
                continue
            if not response.ok:
                logger.warning("Pre-cache of %s got HTTP %d", url, response.status_code)
                continue
            if await self._store(store_name, normalize_key(url), response):
                cached += 1
        return cached

    async def skip_waiting(self) -> None:
        if self.state == ACTIVATED:
            logger.debug("Version %s already active", self.version)
            return
        await self.activate()

    async def activate(self) -> None:
        """Drop stores of other generations, claim clients, check for drift."""
        try:
            names = await self.storage.keys()
            for name in names:
                if name not in self.whitelist:
                    logger.info("Deleting old cache: %s", name)
                    await self.storage.delete(name)
        except CacheStorageError:
            logger.exception("Cache cleanup during activation failed")
        self.state = ACTIVATED
        self.claim()
        await self.check_version()

    def claim(self) -> None:
        self.controlling = True
        logger.info(
            "Version %s now controls %d connected clients",
            self.version, self.broadcaster.client_count,
        )

    # interception

    async def handle(self, request: ProxyRequest) -> CachedResponse:
        if not self.controlling:
            return await self._pass_through(request)
        try:
            key = normalize_key(request.url)
        except ValueError as e:
            logger.warning("Not intercepting request: %s", e)
            return await self._pass_through(request)

        if resource_class(key) == MUTABLE_DATA:
            return await self._network_first(request, key)
        return await self._cache_first(request, key)

    async def _fetch(self, url: str, accept: str | None = None) -> CachedResponse:
        headers = {"Accept": accept} if accept else None
        resp = await self.client.get(url, headers=headers)
        kept = {h: resp.headers[h] for h in _FORWARDED_HEADERS if h in resp.headers}
        return CachedResponse(resp.status_code, resp.content, kept)

    async def _pass_through(self, request: ProxyRequest) -> CachedResponse:
        response = await self._fetch(request.url, request.accept)
        return response.with_source("passthrough")

    async def _store(self, store_name: str, key: str, response: CachedResponse) -> bool:
        try:
            store = await self.storage.open(store_name)
            await store.put(key, response)
        except CacheStorageError as e:
            logger.warning("Could not cache %s in %s: %s", key, store_name, e)
            return False
        return True

    async def _lookup(self, key: str, store_name: str) -> CachedResponse | None:
        try:
            store = await self.storage.open(store_name)
            cached = await store.match(key)
            if cached is None:
                cached = await self.storage.match(key)
        except CacheStorageError as e:
            logger.warning("Cache lookup for %s failed: %s", key, e)
            return None
        return cached

    async def _network_first(self, request: ProxyRequest, key: str) -> CachedResponse:
        try:
            response = await self._fetch(request.url, request.accept)
        except httpx.HTTPError as e:
            cached = await self._lookup(key, self.data_cache_name)
            if cached is not None:
                logger.info("Network unavailable for %s (%s), serving cached copy", key, type(e).__name__)
                return cached
            logger.warning("Network unavailable for %s and nothing cached", key)
            return _offline_data_response()

        if response.ok:
            await self._store(self.data_cache_name, key, response)
        return response

    async def _cache_first(self, request: ProxyRequest, key: str) -> CachedResponse:
        cached = await self._lookup(key, self.static_cache_name)
        if cached is not None:
            return cached

        try:
            response = await self._fetch(request.url, request.accept)
        except httpx.HTTPError as e:
            logger.warning("Fetch of %s failed: %s", key, e)
            if request.accepts_html:
                root_key = normalize_key(self.url_for(settings.root_document))
                root = await self._lookup(root_key, self.static_cache_name)
                if root is not None:
                    return root
            return _offline_asset_response()

        if response.status_code == 200 and "/api/" not in key:
            await self._store(self.static_cache_name, key, response)
        return response

    # version drift

    async def check_version(self) -> str | None:
        """Compare the deployed manifest version with ours; notify clients on drift."""
        url = self.url_for(settings.manifest_path)
        try:
            resp = await self.client.get(url, params={"_": str(int(time.time() * 1000))})
            if not resp.is_success:
                logger.warning("Manifest check got HTTP %d", resp.status_code)
                return None
            manifest = orjson.loads(resp.content)
        except (httpx.HTTPError, orjson.JSONDecodeError) as e:
            logger.warning("Error checking version: %s", e)
            return None

        remote = manifest.get("version") if isinstance(manifest, dict) else None
        if not remote:
            return None
        self.remote_version = str(remote)
        if self.remote_version != self.version:
            logger.info(
                "Version mismatch detected: running=%s manifest=%s",
                self.version, self.remote_version,
            )
            message = UpdateAvailable(current=self.version, new=self.remote_version)
            await self.broadcaster.publish(message.model_dump())
        return self.remote_version

    @property
    def update_available(self) -> bool:
        return self.remote_version is not None and self.remote_version != self.version

    # control messages

    async def clear_all(self) -> ControlAck:
        try:
            for name in await self.storage.keys():
                await self.storage.delete(name)
        except CacheStorageError as e:
            logger.error("Clearing caches failed: %s", e)
            return ControlAck(success=False, error=str(e))
        logger.info("All caches cleared")
        return ControlAck(success=True)

    async def handle_message(self, message: ControlMessage) -> ControlAck:
        if message.type == "SKIP_WAITING":
            await self.skip_waiting()
        elif message.type == "CHECK_VERSION":
            await self.check_version()
        elif message.type == "CLEAR_CACHES":
            return await self.clear_all()
        return ControlAck(success=True)
