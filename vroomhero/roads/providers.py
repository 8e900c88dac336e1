"""
Road data providers
Fetch raw road data for a coordinate from OpenStreetMap Overpass, HERE
reverse geocoding, or a bundled OSM XML file
"""

import json
import threading
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import requests

from vroomhero.roads.models import Coordinate, ProviderKind
from vroomhero.roads.offline import DEFAULT_MATCH_RADIUS_M, OsmDataset

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
HERE_REVGEOCODE_URL = "https://revgeocode.search.hereapi.com/v1/revgeocode"
DEFAULT_HIGHWAY_TYPES = ("residential", "primary", "secondary", "tertiary", "motorway")


class ProviderError(Exception):
    """Transport-level failure: unreachable host, timeout, non-2xx status, missing map file."""


class RoadDataProvider(ABC):
    """Source of raw road data bodies for the response parser."""

    kind: ProviderKind = ProviderKind.OVERPASS

    @abstractmethod
    def fetch(self, coordinate: Coordinate) -> str:
        """Raw response body for the road nearest to coordinate; raises ProviderError."""

    def close(self) -> None:
        pass


class _HttpProvider(RoadDataProvider):
    def __init__(self, connect_timeout_s: float = 60.0, read_timeout_s: float = 60.0,
                 session: Optional[requests.Session] = None):
        self.timeout = (connect_timeout_s, read_timeout_s)
        self.session = session or requests.Session()

    def _send(self, method: str, url: str, **kwargs) -> str:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{method} {url} failed: {e}") from e
        return response.text

    def close(self) -> None:
        self.session.close()


class OverpassProvider(_HttpProvider):
    """
    Queries the OpenStreetMap Overpass API for highway ways around a point
    """

    def __init__(
        self,
        url: str = OVERPASS_URL,
        search_radius_m: int = 10,
        connect_timeout_s: float = 60.0,
        read_timeout_s: float = 60.0,
        server_timeout_s: int = 30,
        highway_types: Sequence[str] = DEFAULT_HIGHWAY_TYPES,
        require_maxspeed: bool = True,
        output: str = "json",
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Overpass interpreter endpoint
            search_radius_m: Radius in meters to search for roads
            server_timeout_s: Timeout requested from the Overpass server
            highway_types: Highway tag values to match; empty matches any highway
            require_maxspeed: Only return ways that carry a maxspeed tag
            output: "json" or "xml"
        """
        super().__init__(connect_timeout_s, read_timeout_s, session)
        if output not in ("json", "xml"):
            raise ValueError(f"unsupported Overpass output: {output}")
        self.url = url
        self.search_radius_m = search_radius_m
        self.server_timeout_s = server_timeout_s
        self.highway_types = tuple(highway_types)
        self.require_maxspeed = require_maxspeed
        self.output = output
        self.kind = ProviderKind.OVERPASS if output == "json" else ProviderKind.OSM_XML

    def build_query(self, coordinate: Coordinate) -> str:
        if self.highway_types:
            highway = '["highway"~"^(' + "|".join(self.highway_types) + ')$"]'
        else:
            highway = '["highway"]'
        maxspeed = '["maxspeed"]' if self.require_maxspeed else ""
        return (
            f"[out:{self.output}][timeout:{self.server_timeout_s}];\n"
            f"way(around:{self.search_radius_m},{coordinate.latitude},{coordinate.longitude})"
            f"{highway}{maxspeed};\n"
            "out tags;"
        )

    def fetch(self, coordinate: Coordinate) -> str:
        query = self.build_query(coordinate)
        return self._send(
            "POST",
            self.url,
            data=query.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )


class HereProvider(_HttpProvider):
    """Reverse geocodes a point with the HERE API."""

    kind = ProviderKind.HERE

    def __init__(
        self,
        api_key: Optional[str],
        url: str = HERE_REVGEOCODE_URL,
        connect_timeout_s: float = 60.0,
        read_timeout_s: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("HERE provider needs an API key (HERE_API_KEY)")
        super().__init__(connect_timeout_s, read_timeout_s, session)
        self.api_key = api_key
        self.url = url

    def fetch(self, coordinate: Coordinate) -> str:
        params = {
            "at": f"{coordinate.latitude},{coordinate.longitude}",
            "apiKey": self.api_key,
        }
        return self._send("GET", self.url, params=params)


class OfflineProvider(RoadDataProvider):
    """
    Serves road data from a bundled OSM XML file

    The nearest highway way is rendered as an Overpass-style JSON body, so
    the Overpass parser reads offline answers too. Like the Overpass query,
    only ways with a maxspeed tag are considered unless require_maxspeed
    is off.
    """

    kind = ProviderKind.OVERPASS

    def __init__(self, map_file: str, radius_m: float = DEFAULT_MATCH_RADIUS_M,
                 require_maxspeed: bool = True, dataset: Optional[OsmDataset] = None):
        self.map_file = map_file
        self.radius_m = radius_m
        self.require_maxspeed = require_maxspeed
        self._dataset = dataset
        self._load_lock = threading.Lock()

    @property
    def dataset(self) -> OsmDataset:
        ds = self._dataset
        if ds is None:
            with self._load_lock:
                ds = self._dataset
                if ds is None:
                    print(f"[offline] loading map data from {self.map_file}")
                    try:
                        ds = OsmDataset.from_file(self.map_file)
                    except (OSError, ET.ParseError) as e:
                        raise ProviderError(f"cannot load offline map {self.map_file}: {e}") from e
                    self._dataset = ds
        return ds

    def fetch(self, coordinate: Coordinate) -> str:
        required = "maxspeed" if self.require_maxspeed else None
        way = self.dataset.nearest_way(coordinate, self.radius_m, required)
        elements = [way.to_element()] if way is not None else []
        return json.dumps({"elements": elements})
