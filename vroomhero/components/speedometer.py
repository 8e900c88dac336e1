from typing import Optional

from vroomhero.roads.models import RoadInfo
from vroomhero.roads.units import meters_per_second_to_mph

UNKNOWN_LIMIT = "XX"
UNKNOWN_ROAD = "Unknown Road"


class Speedometer:
    """
    Readout state for the speed display.

    Speeds under the stopped threshold do not refresh the readout; once no
    movement has been seen for timeout_ms the readout drops back to "00".
    """

    def __init__(self, stopped_threshold_mph: float = 0.5, timeout_ms: int = 3000):
        self.stopped_threshold_mph = stopped_threshold_mph
        self.timeout_ms = timeout_ms
        self.last_movement_ms: Optional[int] = None
        self.speed_text = "00"
        self.road_info: Optional[RoadInfo] = None

    def update_speed(self, speed_mph: float, now_ms: int) -> str:
        if speed_mph > self.stopped_threshold_mph:
            self.last_movement_ms = now_ms
            self.speed_text = format_speed(speed_mph)
        else:
            self.tick(now_ms)
        return self.speed_text

    def update_speed_mps(self, speed_mps: float, now_ms: int) -> str:
        return self.update_speed(meters_per_second_to_mph(speed_mps), now_ms)

    def tick(self, now_ms: int) -> str:
        if self.last_movement_ms is None or now_ms - self.last_movement_ms > self.timeout_ms:
            self.speed_text = "00"
        return self.speed_text

    def update_road(self, info: Optional[RoadInfo]) -> None:
        self.road_info = info

    @property
    def limit_text(self) -> str:
        return format_limit(self.road_info)

    @property
    def road_text(self) -> str:
        return format_road(self.road_info)

    def render(self) -> str:
        road = self.road_text
        line = f"{self.speed_text} mph | limit {self.limit_text}"
        return f"{line} | {road}" if road else line


def format_speed(speed_mph: float) -> str:
    # two digits on the display
    return "%02d" % (int(speed_mph) % 100)


def format_limit(info: Optional[RoadInfo]) -> str:
    if info is None or not info.has_speed_limit:
        return UNKNOWN_LIMIT
    return "%.0f" % info.speed_limit_mph


def format_road(info: Optional[RoadInfo]) -> str:
    if info is None or not info.has_speed_limit:
        return ""
    return info.road_name or UNKNOWN_ROAD
