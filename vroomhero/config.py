import os
from dataclasses import dataclass
from typing import Optional

from vroomhero.roads.cache import DEFAULT_TOLERANCE_DEG, CoordinateKeys, RoadIdKeys
from vroomhero.roads.parser import DEFAULT_RESIDENTIAL_MPH
from vroomhero.roads.providers import (
    HERE_REVGEOCODE_URL,
    OVERPASS_URL,
    HereProvider,
    OfflineProvider,
    OverpassProvider,
    RoadDataProvider,
)

PROVIDERS = ("overpass", "here", "offline")
KEY_SCHEMES = ("coordinate", "road_id")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


@dataclass
class LookupConfig:
    provider: str = "overpass"
    overpass_url: str = OVERPASS_URL
    overpass_output: str = "json"
    here_url: str = HERE_REVGEOCODE_URL
    here_api_key: Optional[str] = None
    offline_map_file: str = "map.osm"
    search_radius_m: int = 10
    throttle_ms: int = 10_000
    cache_ttl_ms: int = 24 * 60 * 60 * 1000
    cache_db: str = "road_cache.sqlite"
    cache_keys: str = "coordinate"
    cache_tolerance_deg: float = DEFAULT_TOLERANCE_DEG
    residential_default_mph: float = DEFAULT_RESIDENTIAL_MPH
    connect_timeout_s: float = 60.0
    read_timeout_s: float = 60.0
    overpass_server_timeout_s: int = 30
    log: bool = True
    gps_port: str = "/dev/serial0"
    gps_baudrate: int = 9600

    @classmethod
    def from_env(cls) -> "LookupConfig":
        d = cls()
        return cls(
            provider=os.environ.get("ROAD_PROVIDER", d.provider).lower(),
            overpass_url=os.environ.get("OVERPASS_URL", d.overpass_url),
            overpass_output=os.environ.get("OVERPASS_OUTPUT", d.overpass_output).lower(),
            here_url=os.environ.get("HERE_URL", d.here_url),
            here_api_key=os.environ.get("HERE_API_KEY") or None,
            offline_map_file=os.environ.get("OFFLINE_MAP_FILE", d.offline_map_file),
            search_radius_m=_env_int("ROAD_SEARCH_RADIUS_M", d.search_radius_m),
            throttle_ms=_env_int("ROAD_THROTTLE_MS", d.throttle_ms),
            cache_ttl_ms=_env_int("ROAD_CACHE_TTL_MS", d.cache_ttl_ms),
            cache_db=os.environ.get("ROAD_CACHE_DB", d.cache_db),
            cache_keys=os.environ.get("ROAD_CACHE_KEYS", d.cache_keys).lower(),
            cache_tolerance_deg=_env_float("ROAD_CACHE_TOLERANCE_DEG", d.cache_tolerance_deg),
            residential_default_mph=_env_float("RESIDENTIAL_DEFAULT_MPH", d.residential_default_mph),
            connect_timeout_s=_env_float("HTTP_CONNECT_TIMEOUT_S", d.connect_timeout_s),
            read_timeout_s=_env_float("HTTP_READ_TIMEOUT_S", d.read_timeout_s),
            overpass_server_timeout_s=_env_int("OVERPASS_SERVER_TIMEOUT_S", d.overpass_server_timeout_s),
            log=_env_bool("ROAD_LOG", d.log),
            gps_port=os.environ.get("GPS_PORT", d.gps_port),
            gps_baudrate=_env_int("GPS_BAUDRATE", d.gps_baudrate),
        )


def build_provider(config: LookupConfig) -> RoadDataProvider:
    if config.provider == "overpass":
        return OverpassProvider(
            url=config.overpass_url,
            search_radius_m=config.search_radius_m,
            connect_timeout_s=config.connect_timeout_s,
            read_timeout_s=config.read_timeout_s,
            server_timeout_s=config.overpass_server_timeout_s,
            output=config.overpass_output,
        )
    if config.provider == "here":
        return HereProvider(
            api_key=config.here_api_key,
            url=config.here_url,
            connect_timeout_s=config.connect_timeout_s,
            read_timeout_s=config.read_timeout_s,
        )
    if config.provider == "offline":
        return OfflineProvider(config.offline_map_file, radius_m=float(config.search_radius_m))
    raise ValueError(f"unknown ROAD_PROVIDER {config.provider!r}, expected one of {PROVIDERS}")


def build_key_scheme(config: LookupConfig):
    if config.cache_keys == "coordinate":
        return CoordinateKeys()
    if config.cache_keys == "road_id":
        return RoadIdKeys()
    raise ValueError(f"unknown ROAD_CACHE_KEYS {config.cache_keys!r}, expected one of {KEY_SCHEMES}")
