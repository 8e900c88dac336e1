"""
Offline OSM XML map data and nearest-road matching.

The dataset keeps every node position and every way carrying a "highway"
tag. Matching projects the neighbourhood of the query point onto a local
flat plane (metres), which is accurate enough at the tens-of-metres radii
used for road snapping.
"""

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from vroomhero.roads.models import Coordinate

EARTH_RADIUS_M = 6_371_008.8
DEFAULT_MATCH_RADIUS_M = 10.0


@dataclass
class Way:
    way_id: str
    points: np.ndarray  # (n, 2) array of [lat, lon]
    tags: Dict[str, str] = field(default_factory=dict)

    def to_element(self) -> dict:
        """Overpass-style element for this way."""
        return {"type": "way", "id": self.way_id, "tags": dict(self.tags)}


class OsmDataset:
    """In-memory node/way graph loaded from OSM XML."""

    def __init__(self, nodes: Dict[str, Tuple[float, float]], ways: List[Way]):
        self.nodes = nodes
        self.ways = ways

    @classmethod
    def from_xml(cls, xml_text: str) -> "OsmDataset":
        return cls._from_root(ET.fromstring(xml_text))

    @classmethod
    def from_file(cls, path: str) -> "OsmDataset":
        return cls._from_root(ET.parse(path).getroot())

    @classmethod
    def _from_root(cls, root: ET.Element) -> "OsmDataset":
        nodes: Dict[str, Tuple[float, float]] = {}
        for node in root.iter("node"):
            try:
                nodes[node.get("id")] = (float(node.get("lat")), float(node.get("lon")))
            except (TypeError, ValueError):
                continue

        ways: List[Way] = []
        for way in root.iter("way"):
            tags = {t.get("k"): t.get("v") for t in way.findall("tag")}
            if "highway" not in tags:
                continue
            refs = [nd.get("ref") for nd in way.findall("nd")]
            coords = [nodes[r] for r in refs if r in nodes]
            if not coords:
                continue
            ways.append(Way(way_id=str(way.get("id")), points=np.asarray(coords, dtype=float), tags=tags))

        return cls(nodes, ways)

    def nearest_way(self, coordinate: Coordinate, radius_m: float = DEFAULT_MATCH_RADIUS_M,
                    required_tag: Optional[str] = None) -> Optional[Way]:
        return nearest_way(self.ways, coordinate, radius_m, required_tag)


def _project(points: np.ndarray, origin: Coordinate) -> np.ndarray:
    """Equirectangular projection of [lat, lon] rows to metres around origin."""
    scale = math.pi / 180.0 * EARTH_RADIUS_M
    dlat = points[:, 0] - origin.latitude
    dlon = points[:, 1] - origin.longitude
    x = dlon * scale * math.cos(math.radians(origin.latitude))
    y = dlat * scale
    return np.column_stack((x, y))


def distance_to_way_m(way: Way, coordinate: Coordinate) -> float:
    """Minimum distance in metres from coordinate to any segment of way."""
    pts = _project(way.points, coordinate)
    if len(pts) == 1:
        return float(np.hypot(pts[0, 0], pts[0, 1]))

    a = pts[:-1]
    ab = pts[1:] - a
    denom = np.einsum("ij,ij->i", ab, ab)
    # query point is the origin, so the projection parameter is -a.ab / |ab|^2
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(denom > 0.0, -np.einsum("ij,ij->i", a, ab) / denom, 0.0)
    t = np.clip(t, 0.0, 1.0)
    closest = a + ab * t[:, None]
    return float(np.min(np.hypot(closest[:, 0], closest[:, 1])))


def nearest_way(ways: List[Way], coordinate: Coordinate, radius_m: float = DEFAULT_MATCH_RADIUS_M,
                required_tag: Optional[str] = None) -> Optional[Way]:
    """Closest way within radius_m, optionally only among ways tagged required_tag; the first one wins on ties."""
    best: Optional[Way] = None
    best_dist = math.inf
    for way in ways:
        if required_tag is not None and required_tag not in way.tags:
            continue
        dist = distance_to_way_m(way, coordinate)
        if dist > radius_m:
            continue
        if dist < best_dist:
            best, best_dist = way, dist
    return best
