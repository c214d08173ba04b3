# triplog/api/geocoding.py
"""Free-text location lookup through Nominatim.

Lookups go through three layers:

* :class:`GeocodeCache` – query → coordinates, persisted in a
  :class:`JsonFileStore` entry after every new hit.
* :class:`RateLimiter` – one shared "last call" slot so outbound requests are
  spaced by at least ``min_interval`` seconds, whoever issues them.
* :class:`Geocoder` – ties the two together with the HTTP fetcher and never
  raises; failures come back as ``None`` and are not cached.
"""
from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import requests

from triplog.api.config import get_geocode_config, get_storage_config
from triplog.api.models import GeocodeResult
from triplog.api.storage import JsonFileStore, StorageResult

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Optional[List[Dict[str, Any]]]]]


class RateLimiter:
    """Process-wide minimum spacing between outbound calls.

    Each caller reserves the next free slot under a lock and then sleeps until
    it. The reserved slot becomes the new "last call" time, so the spacing
    holds across event loops and threads.
    """

    def __init__(self, min_interval: float, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call

    def _claim(self):
        with self._lock:
            now = self._clock()
            if self._last_call is None:
                slot = now
            else:
                slot = max(now, self._last_call + self.min_interval)
            self._last_call = slot
            return slot, now

    def reserve(self) -> float:
        """Claim the next call slot and return how long to wait for it."""
        slot, now = self._claim()
        return slot - now

    async def wait(self) -> float:
        slot, now = self._claim()
        waited = delay = slot - now
        if delay > 0:
            logger.debug(f"Rate limit: waiting {delay:.3f}s before next geocode call")
            # the event loop may wake a timer up to one clock tick early
            while delay > 0:
                await asyncio.sleep(delay)
                delay = slot - self._clock()
        return waited


class GeocodeCache:
    """Normalized query → :class:`GeocodeResult`, mirrored to durable storage.

    Shared by every request thread; the lock covers the in-memory mapping and
    the write of its snapshot so persisted entries are never lost or torn.
    """

    def __init__(self, store: JsonFileStore, key: str):
        self.store = store
        self.key = key
        self._entries: Dict[str, GeocodeResult] = {}
        self._lock = threading.Lock()
        self.reload()

    def reload(self) -> StorageResult:
        """Read the persisted entry; unreadable storage means an empty cache."""
        result = self.store.get(self.key)
        entries: Dict[str, GeocodeResult] = {}
        if not result.ok:
            logger.warning(f"Geocode cache unreadable, starting empty: {result.error}")
        elif isinstance(result.value, dict):
            for query, raw in result.value.items():
                hit = GeocodeResult.from_dict(raw) if isinstance(raw, dict) else None
                if hit is not None:
                    entries[query] = hit
        with self._lock:
            self._entries = entries
        logger.info(f"Loaded {len(entries)} cached geocode entries")
        return result

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: str) -> bool:
        return query in self._entries

    def get(self, query: str) -> Optional[GeocodeResult]:
        return self._entries.get(query)

    def put(self, query: str, hit: GeocodeResult) -> StorageResult:
        """Add an entry and persist the whole mapping immediately."""
        with self._lock:
            self._entries[query] = hit
            snapshot = dict(self._entries)
            payload = {q: h.to_dict() for q, h in snapshot.items()}
            result = self.store.set(self.key, payload)
        if not result.ok:
            logger.warning(f"Could not persist geocode cache: {result.error}")
        return result

    def clear(self) -> StorageResult:
        """Drop every entry, in memory and on disk."""
        with self._lock:
            self._entries = {}
            result = self.store.delete(self.key)
        if result.ok:
            logger.info("Geocode cache cleared")
        else:
            logger.warning(f"Could not delete geocode cache: {result.error}")
        return result


class NominatimFetcher:
    """Single GET against the search endpoint, run off the event loop."""

    def __init__(self, endpoint: str, user_agent: str, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "User-Agent": user_agent})

    def _get(self, query: str) -> Optional[List[Dict[str, Any]]]:
        params = {"format": "json", "q": query, "limit": 1}
        response = self.session.get(self.endpoint, params=params, timeout=self.timeout)
        if not response.ok:
            logger.warning(f"Geocoding service answered {response.status_code} for '{query}'")
            return None
        data = response.json()
        return data if isinstance(data, list) else None

    async def __call__(self, query: str) -> Optional[List[Dict[str, Any]]]:
        return await asyncio.to_thread(self._get, query)


def _parse_candidate(candidate: Any) -> Optional[GeocodeResult]:
    if not isinstance(candidate, dict):
        return None
    try:
        lat = float(candidate.get("lat"))
        lng = float(candidate.get("lon"))
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return GeocodeResult(lat=lat, lng=lng, display=str(candidate.get("display_name") or ""))


class Geocoder:
    """Cached, rate-limited query resolution."""

    def __init__(self, cache: GeocodeCache, limiter: RateLimiter, fetcher: Fetcher):
        self.cache = cache
        self.limiter = limiter
        self.fetcher = fetcher
        self.outbound_calls = 0

    async def resolve(self, query: str) -> Optional[GeocodeResult]:
        """Resolve ``query`` to coordinates, or None if it can't be found."""
        q = (query or "").strip()
        if not q:
            return None

        cached = self.cache.get(q)
        if cached is not None:
            logger.debug(f"Geocode cache hit for '{q}'")
            return cached

        await self.limiter.wait()
        self.outbound_calls += 1
        try:
            data = await self.fetcher(q)
        except Exception as e:
            logger.error(f"Geocoding error for '{q}': {e}")
            return None

        if not data:
            logger.warning(f"No results found for place: {q}")
            return None

        hit = _parse_candidate(data[0])
        if hit is None:
            logger.warning(f"Unusable coordinates returned for '{q}'")
            return None

        self.cache.put(q, hit)
        logger.debug(f"Geocoded {q} to {hit.lat}, {hit.lng}")
        return hit

    async def resolve_many(self, queries: Iterable[str]) -> Dict[str, GeocodeResult]:
        """Resolve queries one after another, in order; misses are left out."""
        results: Dict[str, GeocodeResult] = {}
        start_time = time.time()
        queries = list(queries)

        for query in queries:
            hit = await self.resolve(query)
            if hit is not None:
                results[query] = hit

        duration = time.time() - start_time
        logger.info(f"Batch geocoded {len(results)}/{len(queries)} places in {duration:.2f}s")
        return results

    def clear_cache(self) -> StorageResult:
        return self.cache.clear()


def create_geocoder(store: Optional[JsonFileStore] = None,
                    fetcher: Optional[Fetcher] = None) -> Geocoder:
    """Build a :class:`Geocoder` from environment configuration."""
    cfg = get_geocode_config()
    storage_cfg = get_storage_config()
    if store is None:
        store = JsonFileStore(storage_cfg["cache_dir"])
    if fetcher is None:
        fetcher = NominatimFetcher(cfg["endpoint"], cfg["user_agent"], cfg["timeout"])
    limiter = RateLimiter(cfg["min_interval_ms"] / 1000.0)
    return Geocoder(GeocodeCache(store, storage_cfg["cache_key"]), limiter, fetcher)


__all__ = [
    "GeocodeCache",
    "Geocoder",
    "NominatimFetcher",
    "RateLimiter",
    "create_geocoder",
]
