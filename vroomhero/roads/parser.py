"""
Response parsing for road data providers.

Every provider kind has one parse function. Each turns the raw response body
into a RoadInfo, or None when the body carries no usable road data. Parsing
never raises on bad input: an empty, malformed or unexpected body is simply
"no data found".
"""

import json
import re
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, Optional

from vroomhero.roads.models import ProviderKind, RoadInfo, is_plausible_mph
from vroomhero.roads.units import kmh_to_mph

DEFAULT_RESIDENTIAL_MPH = 25.0

_NON_DIGITS = re.compile(r"[^0-9]")


def _maxspeed_to_mph(value: Any) -> Optional[float]:
    """
    Convert an OSM maxspeed value to mph

    Args:
        value: Raw tag value (e.g. "30 mph", "50", "80 km/h")

    Returns:
        Speed limit in mph, or None when the value holds no plausible number
    """
    if value is None:
        return None
    text = str(value).strip()
    digits = _NON_DIGITS.sub("", text)
    if not digits:
        return None

    if text.lower().endswith("mph"):
        mph = float(digits)
    else:
        mph = kmh_to_mph(float(digits))

    return mph if is_plausible_mph(mph) else None


def parse_maxspeed(
    value: Any,
    highway: Optional[str] = None,
    residential_default_mph: float = DEFAULT_RESIDENTIAL_MPH,
) -> Optional[float]:
    mph = _maxspeed_to_mph(value)
    if mph is None and highway == "residential":
        return residential_default_mph
    return mph


def _load_json(raw: Optional[str]) -> Any:
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_result(data: Any, key: str) -> Optional[dict]:
    if not isinstance(data, dict):
        return None
    results = data.get(key)
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    return first if isinstance(first, dict) else None


class ResponseParser:
    """Turns provider payloads into RoadInfo values."""

    def __init__(self, residential_default_mph: float = DEFAULT_RESIDENTIAL_MPH):
        if not is_plausible_mph(residential_default_mph):
            raise ValueError(f"implausible residential default: {residential_default_mph} mph")
        self.residential_default_mph = float(residential_default_mph)
        self._parsers: Dict[ProviderKind, Callable[[str], Optional[RoadInfo]]] = {
            ProviderKind.OVERPASS: self._parse_overpass,
            ProviderKind.HERE: self._parse_here,
            ProviderKind.OSM_XML: self._parse_osm_xml,
        }

    def parse(self, kind: ProviderKind, raw_body: Optional[str]) -> Optional[RoadInfo]:
        return self._parsers[ProviderKind(kind)](raw_body)

    def road_info_from_tags(self, tags: Dict[str, Any], element_id: Any = None) -> Optional[RoadInfo]:
        """Build a RoadInfo from an OSM tag map; None if it has no maxspeed tag."""
        if "maxspeed" not in tags:
            return None
        limit = parse_maxspeed(tags.get("maxspeed"), tags.get("highway"), self.residential_default_mph)
        return RoadInfo(
            speed_limit_mph=limit,
            road_name=_clean_text(tags.get("name")),
            external_id=_clean_text(element_id),
        )

    def _parse_overpass(self, raw: Optional[str]) -> Optional[RoadInfo]:
        # {"elements": [{"id": 123, "tags": {"maxspeed": "30 mph", "name": ..., "highway": ...}}]}
        first = _first_result(_load_json(raw), "elements")
        if first is None:
            return None
        tags = first.get("tags")
        if not isinstance(tags, dict):
            return None
        return self.road_info_from_tags(tags, first.get("id"))

    def _parse_here(self, raw: Optional[str]) -> Optional[RoadInfo]:
        # {"items": [{"id": ..., "address": {"street": ...}, "speedLimit": {"value": 50}}]}
        first = _first_result(_load_json(raw), "items")
        if first is None:
            return None
        speed = first.get("speedLimit")
        if not isinstance(speed, dict) or "value" not in speed:
            return None

        address = first.get("address")
        street = address.get("street") if isinstance(address, dict) else None
        return RoadInfo(
            speed_limit_mph=self._here_limit(speed),
            road_name=_clean_text(street),
            external_id=_clean_text(first.get("id")),
        )

    @staticmethod
    def _here_limit(speed: Dict[str, Any]) -> Optional[float]:
        value = speed.get("value")
        in_mph = str(speed.get("unit") or "").lower().startswith("mph")
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            mph = float(value) if in_mph else kmh_to_mph(float(value))
            return mph if is_plausible_mph(mph) else None
        if isinstance(value, str):
            if in_mph and not value.strip().lower().endswith("mph"):
                value = f"{value} mph"
            return _maxspeed_to_mph(value)
        return None

    def _parse_osm_xml(self, raw: Optional[str]) -> Optional[RoadInfo]:
        if raw is None or not raw.strip():
            return None
        try:
            root = ET.fromstring(raw)
        except ET.ParseError:
            return None
        way = root.find("way")
        if way is None:
            return None
        tags = {t.get("k"): t.get("v") for t in way.findall("tag")}
        return self.road_info_from_tags(tags, way.get("id"))


def parse(
    kind: ProviderKind,
    raw_body: Optional[str],
    residential_default_mph: float = DEFAULT_RESIDENTIAL_MPH,
) -> Optional[RoadInfo]:
    return ResponseParser(residential_default_mph).parse(kind, raw_body)
