"""
Persistent road data cache backed by sqlite.

Entries are append-only: a fresh fetch inserts a new row and lookups return
the newest matching row. Expired rows are never deleted, they just stop
counting as fresh.
"""

import sqlite3
import threading
from typing import Optional, Union

from vroomhero.roads.models import CacheEntry, Coordinate, RoadInfo

DEFAULT_TOLERANCE_DEG = 0.0001  # ~11 m of latitude

_COLUMNS = "cache_key, latitude, longitude, speed_limit_mph, road_name, external_id, fetched_at_ms"


class CacheStoreError(Exception):
    """Raised when the backing store cannot be read or written."""


def is_fresh(entry: CacheEntry, now_ms: int, ttl_ms: int) -> bool:
    return now_ms - entry.fetched_at_ms < ttl_ms


def coordinate_key(coordinate: Coordinate) -> str:
    return f"{coordinate.latitude:.6f},{coordinate.longitude:.6f}"


class CacheStore:
    """Thread-safe sqlite store of CacheEntry rows."""

    def __init__(self, db_path: str = ":memory:", tolerance_deg: float = DEFAULT_TOLERANCE_DEG):
        self.db_path = db_path
        self.tolerance_deg = tolerance_deg
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS road_cache (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    cache_key TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    speed_limit_mph REAL,
                    road_name TEXT,
                    external_id TEXT,
                    fetched_at_ms INTEGER NOT NULL
                )
            """)
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_road_cache_key ON road_cache (cache_key)")
            self.conn.execute("CREATE INDEX IF NOT EXISTS idx_road_cache_lat ON road_cache (latitude)")
            self.conn.commit()
        except sqlite3.Error as e:
            raise CacheStoreError(f"cannot open cache at {db_path}: {e}") from e

    def get(self, key: Union[Coordinate, str]) -> Optional[CacheEntry]:
        """
        Newest entry for a key

        Args:
            key: A Coordinate (matched within tolerance_deg on both axes) or
                an exact cache key string such as a road id

        Returns:
            The most recently fetched matching entry, or None
        """
        if isinstance(key, Coordinate):
            t = self.tolerance_deg
            sql = (
                f"SELECT {_COLUMNS} FROM road_cache "
                "WHERE latitude BETWEEN ? AND ? AND longitude BETWEEN ? AND ? "
                "ORDER BY fetched_at_ms DESC, id DESC LIMIT 1"
            )
            params = (key.latitude - t, key.latitude + t, key.longitude - t, key.longitude + t)
        else:
            sql = (
                f"SELECT {_COLUMNS} FROM road_cache WHERE cache_key = ? "
                "ORDER BY fetched_at_ms DESC, id DESC LIMIT 1"
            )
            params = (str(key),)

        with self._lock:
            try:
                row = self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise CacheStoreError(f"cache read failed: {e}") from e
        return self._to_entry(row) if row else None

    def put(self, entry: CacheEntry) -> None:
        info = entry.road_info
        with self._lock:
            try:
                self.conn.execute(
                    f"INSERT INTO road_cache ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.key,
                        entry.coordinate.latitude,
                        entry.coordinate.longitude,
                        info.speed_limit_mph,
                        info.road_name,
                        info.external_id,
                        int(entry.fetched_at_ms),
                    ),
                )
                self.conn.commit()
            except sqlite3.Error as e:
                raise CacheStoreError(f"cache write failed: {e}") from e

    def is_fresh(self, entry: CacheEntry, now_ms: int, ttl_ms: int) -> bool:
        return is_fresh(entry, now_ms, ttl_ms)

    def count(self) -> int:
        with self._lock:
            try:
                return int(self.conn.execute("SELECT COUNT(*) FROM road_cache").fetchone()[0])
            except sqlite3.Error as e:
                raise CacheStoreError(f"cache read failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @staticmethod
    def _to_entry(row) -> CacheEntry:
        key, lat, lon, limit, name, external_id, fetched_at = row
        return CacheEntry(
            key=key,
            coordinate=Coordinate(lat, lon),
            road_info=RoadInfo(speed_limit_mph=limit, road_name=name, external_id=external_id),
            fetched_at_ms=int(fetched_at),
        )


class CoordinateKeys:
    """Entries keyed by position; lookups match a coordinate window."""

    name = "coordinate"

    def entry_key(self, coordinate: Coordinate, road_info: RoadInfo) -> str:
        return coordinate_key(coordinate)

    def find(self, store: CacheStore, coordinate: Coordinate) -> Optional[CacheEntry]:
        return store.get(coordinate)


class RoadIdKeys:
    """
    Entries keyed by the provider's road id.

    A coordinate is resolved to a road id through the newest entry recorded
    near it, then the newest entry for that road wins. A fetch anywhere along
    a road therefore refreshes every point already seen on it.
    """

    name = "road_id"

    def entry_key(self, coordinate: Coordinate, road_info: RoadInfo) -> str:
        if road_info.external_id:
            return road_info.external_id
        return coordinate_key(coordinate)

    def find(self, store: CacheStore, coordinate: Coordinate) -> Optional[CacheEntry]:
        nearby = store.get(coordinate)
        if nearby is None or not nearby.road_info.external_id:
            return nearby
        return store.get(nearby.road_info.external_id) or nearby
