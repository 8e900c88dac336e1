import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

MAX_PLAUSIBLE_MPH = 200.0


def now_ms() -> int:
    return int(time.time() * 1000)


class ProviderKind(str, Enum):
    """Response schemas the parser understands."""

    OVERPASS = "overpass"
    HERE = "here"
    OSM_XML = "osm_xml"


def is_plausible_mph(value: Optional[float]) -> bool:
    return value is not None and 0.0 < value < MAX_PLAUSIBLE_MPH


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    def __str__(self) -> str:
        return f"{self.latitude:.6f},{self.longitude:.6f}"


@dataclass(frozen=True)
class RoadInfo:
    speed_limit_mph: Optional[float] = None
    road_name: Optional[str] = None
    external_id: Optional[str] = None

    def __post_init__(self):
        if self.speed_limit_mph is not None and not is_plausible_mph(self.speed_limit_mph):
            raise ValueError(f"implausible speed limit: {self.speed_limit_mph} mph")
        if self.road_name == "":
            object.__setattr__(self, "road_name", None)

    @property
    def has_speed_limit(self) -> bool:
        return self.speed_limit_mph is not None


@dataclass(frozen=True)
class CacheEntry:
    key: str
    coordinate: Coordinate
    road_info: RoadInfo
    fetched_at_ms: int

    def age_ms(self, now: int) -> int:
        return now - self.fetched_at_ms


@dataclass
class ThrottleState:
    last_call_ms: Optional[int] = None  # None until the first remote call
