"""Road data lookup: parsing, caching, throttling and providers."""

from .cache import CacheStore, CacheStoreError, CoordinateKeys, RoadIdKeys
from .models import CacheEntry, Coordinate, ProviderKind, RoadInfo, ThrottleState
from .parser import ResponseParser, parse
from .providers import HereProvider, OfflineProvider, OverpassProvider, ProviderError
from .service import LookupService, LookupStats

__all__ = [
    "CacheEntry",
    "CacheStore",
    "CacheStoreError",
    "Coordinate",
    "CoordinateKeys",
    "HereProvider",
    "LookupService",
    "LookupStats",
    "OfflineProvider",
    "OverpassProvider",
    "ProviderError",
    "ProviderKind",
    "ResponseParser",
    "RoadIdKeys",
    "RoadInfo",
    "ThrottleState",
    "parse",
]
