"""
Speed limit lookup service.

Answers "what is the speed limit near this coordinate?" with a two-level
cache in front of a remote provider:

- L1: the last RoadInfo handed out, kept in memory and served while remote
  calls are throttled.
- L2: the persistent CacheStore, served directly while an entry is within
  its TTL and as a stale fallback when the provider is unreachable.

Remote calls are rate limited by the throttle policy and at most one fetch is
in flight at a time. Nothing here raises on transport, parse or storage
failures; the worst outcome is None ("no speed limit available").
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Dict, Optional

from vroomhero.roads.cache import CacheStore, CacheStoreError, CoordinateKeys, coordinate_key, is_fresh
from vroomhero.roads.models import CacheEntry, Coordinate, RoadInfo, ThrottleState
from vroomhero.roads.models import now_ms as _now
from vroomhero.roads.parser import ResponseParser
from vroomhero.roads.providers import ProviderError, RoadDataProvider
from vroomhero.roads.throttle import record_call, should_call_remote

if TYPE_CHECKING:
    from vroomhero.config import LookupConfig

DEFAULT_MIN_INTERVAL_MS = 10_000
DEFAULT_CACHE_TTL_MS = 24 * 60 * 60 * 1000


@dataclass
class LookupStats:
    fresh_hits: int = 0
    throttled: int = 0
    fetches: int = 0
    fetch_failures: int = 0
    empty_responses: int = 0
    stale_fallbacks: int = 0
    store_errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class LookupService:
    """Cached, throttled speed limit lookups for one session."""

    def __init__(
        self,
        provider: RoadDataProvider,
        store: CacheStore,
        parser: Optional[ResponseParser] = None,
        key_scheme=None,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        max_workers: int = 2,
        verbose: bool = True,
    ):
        self.provider = provider
        self.store = store
        self.parser = parser or ResponseParser()
        self.key_scheme = key_scheme or CoordinateKeys()
        self.min_interval_ms = int(min_interval_ms)
        self.cache_ttl_ms = int(cache_ttl_ms)
        self.max_workers = max(1, int(max_workers))
        self.verbose = verbose
        self.stats = LookupStats()

        # Guards throttle state, L1, the in-flight flag and the pending map.
        self._lock = threading.Lock()
        self._throttle = ThrottleState()
        self._last_known: Optional[RoadInfo] = None
        self._fetching = False
        self._closed = False
        self._pending: Dict[str, Future] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(cls, config: "LookupConfig") -> "LookupService":
        from vroomhero.config import build_key_scheme, build_provider

        try:
            store = CacheStore(config.cache_db, tolerance_deg=config.cache_tolerance_deg)
        except CacheStoreError as e:
            print(f"[lookup] cache unavailable ({e}), using in-memory cache")
            store = CacheStore(":memory:", tolerance_deg=config.cache_tolerance_deg)

        return cls(
            provider=build_provider(config),
            store=store,
            parser=ResponseParser(config.residential_default_mph),
            key_scheme=build_key_scheme(config),
            min_interval_ms=config.throttle_ms,
            cache_ttl_ms=config.cache_ttl_ms,
            verbose=config.log,
        )

    @property
    def last_known(self) -> Optional[RoadInfo]:
        with self._lock:
            return self._last_known

    @property
    def throttle_state(self) -> ThrottleState:
        with self._lock:
            return ThrottleState(self._throttle.last_call_ms)

    @property
    def closed(self) -> bool:
        return self._closed

    def _log(self, msg: str, always: bool = False) -> None:
        if self.verbose or always:
            print(f"[lookup] {msg}")

    def lookup(self, coordinate: Coordinate, now_ms: Optional[int] = None) -> Optional[RoadInfo]:
        """
        Speed limit and road name near a coordinate

        Args:
            coordinate: Position to resolve
            now_ms: Epoch milliseconds of the request (defaults to the wall clock)

        Returns:
            RoadInfo with unrounded mph, or None when nothing is known
        """
        now = _now() if now_ms is None else int(now_ms)

        cached = self._find_cached(coordinate)
        if cached is not None and is_fresh(cached, now, self.cache_ttl_ms):
            with self._lock:
                self.stats.fresh_hits += 1
                self._last_known = cached.road_info
            self._log(f"cache hit at {coordinate}: {cached.road_info}")
            return cached.road_info

        with self._lock:
            allowed = (
                not self._closed
                and not self._fetching
                and should_call_remote(self._throttle, now, self.min_interval_ms)
            )
            if allowed:
                self._fetching = True
            else:
                self.stats.throttled += 1
                fallback = self._last_known
        if not allowed:
            self._log(f"remote call throttled at {coordinate}, showing {fallback}")
            return fallback

        raw = None
        failure: Optional[ProviderError] = None
        try:
            raw = self.provider.fetch(coordinate)
        except ProviderError as e:
            failure = e
        finally:
            with self._lock:
                record_call(self._throttle, now)
                self._fetching = False
                self.stats.fetches += 1

        if failure is not None:
            result = cached.road_info if cached is not None else None
            with self._lock:
                self.stats.fetch_failures += 1
                if cached is not None:
                    self.stats.stale_fallbacks += 1
            age = f" (aged {cached.age_ms(now) // 1000}s)" if cached is not None else ""
            self._log(f"fetch failed at {coordinate} ({failure}), falling back to {result}{age}", always=True)
            return self._remember(result)

        info = self.parser.parse(self.provider.kind, raw)
        if info is None:
            with self._lock:
                self.stats.empty_responses += 1
            self._log(f"no road data at {coordinate}")
            return self._remember(None)

        if self._closed:
            self._log(f"session closed, discarding result for {coordinate}")
            return None

        entry = CacheEntry(
            key=self.key_scheme.entry_key(coordinate, info),
            coordinate=coordinate,
            road_info=info,
            fetched_at_ms=now,
        )
        self._store(entry)
        self._log(f"fetched {info} at {coordinate}")
        return self._remember(info)

    def lookup_async(self, coordinate: Coordinate, now_ms: Optional[int] = None) -> Future:
        """Run lookup on a worker thread; same-coordinate requests share one future."""
        key = coordinate_key(coordinate)
        with self._lock:
            if self._closed:
                raise RuntimeError("lookup session is closed")
            pending = self._pending.get(key)
            if pending is not None and not pending.done():
                return pending
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="road-lookup"
                )
            future = self._executor.submit(self.lookup, coordinate, now_ms)
            self._pending[key] = future
        future.add_done_callback(lambda f, k=key: self._forget(k, f))
        return future

    def close(self) -> None:
        """End the session: cancel queued lookups and drop late results."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
            executor = self._executor
            self._executor = None

        for f in pending:
            f.cancel()
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self.provider.close()
        try:
            self.store.close()
        except CacheStoreError as e:
            self._log(f"cache close failed: {e}", always=True)

    def __enter__(self) -> "LookupService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _find_cached(self, coordinate: Coordinate) -> Optional[CacheEntry]:
        try:
            return self.key_scheme.find(self.store, coordinate)
        except CacheStoreError as e:
            with self._lock:
                self.stats.store_errors += 1
            self._log(f"cache read failed, treating as miss: {e}", always=True)
            return None

    def _store(self, entry: CacheEntry) -> None:
        try:
            self.store.put(entry)
        except CacheStoreError as e:
            with self._lock:
                self.stats.store_errors += 1
            self._log(f"cache write failed for {entry.key}: {e}", always=True)

    def _remember(self, info: Optional[RoadInfo]) -> Optional[RoadInfo]:
        with self._lock:
            if not self._closed:
                self._last_known = info
        return info

    def _forget(self, key: str, future: Future) -> None:
        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]