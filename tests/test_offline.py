import unittest

from vroomhero.roads.models import Coordinate
from vroomhero.roads.offline import OsmDataset, distance_to_way_m, nearest_way

M = 1 / 111_195.08  # degrees of latitude per metre
LAT, LON = 51.5, -0.1


def osm(*ways):
    """OSM XML with one east-west way per (id, metres north, tags) triple."""
    nodes, way_xml = [], []
    for i, (way_id, north_m, tags) in enumerate(ways):
        a, b = f"{i}1", f"{i}2"
        lat = LAT + north_m * M
        nodes.append(f'<node id="{a}" lat="{lat}" lon="{LON - 0.001}"/>')
        nodes.append(f'<node id="{b}" lat="{lat}" lon="{LON + 0.001}"/>')
        tag_xml = "".join(f'<tag k="{k}" v="{v}"/>' for k, v in tags.items())
        way_xml.append(f'<way id="{way_id}"><nd ref="{a}"/><nd ref="{b}"/>{tag_xml}</way>')
    return f'<osm version="0.6">{"".join(nodes)}{"".join(way_xml)}</osm>'


class NearestWayTests(unittest.TestCase):
    def test_loads_only_highways(self):
        ds = OsmDataset.from_xml(osm(
            ("1", 5, {"highway": "residential"}),
            ("2", 3, {"building": "yes"}),
        ))
        self.assertEqual([w.way_id for w in ds.ways], ["1"])
        self.assertEqual(len(ds.nodes), 4)

    def test_picks_closest_within_radius(self):
        ds = OsmDataset.from_xml(osm(
            ("far", 8, {"highway": "primary", "maxspeed": "50"}),
            ("near", 5, {"highway": "residential", "maxspeed": "30 mph"}),
            ("fence", 3, {"barrier": "fence"}),
        ))
        way = ds.nearest_way(Coordinate(LAT, LON), radius_m=10)
        self.assertEqual(way.way_id, "near")
        self.assertEqual(way.to_element()["tags"]["maxspeed"], "30 mph")

    def test_required_tag_skips_closer_untagged_way(self):
        ds = OsmDataset.from_xml(osm(
            ("limited", 8, {"highway": "primary", "maxspeed": "50"}),
            ("unlimited", 2, {"highway": "service"}),
        ))
        here = Coordinate(LAT, LON)
        self.assertEqual(ds.nearest_way(here, 10).way_id, "unlimited")
        self.assertEqual(ds.nearest_way(here, 10, required_tag="maxspeed").way_id, "limited")
        self.assertIsNone(nearest_way(ds.ways, here, 5, required_tag="maxspeed"))

    def test_nothing_inside_radius(self):
        ds = OsmDataset.from_xml(osm(("a", 15, {"highway": "primary"})))
        self.assertIsNone(ds.nearest_way(Coordinate(LAT, LON), radius_m=10))
        self.assertIsNotNone(ds.nearest_way(Coordinate(LAT, LON), radius_m=20))

    def test_tie_goes_to_first(self):
        ds = OsmDataset.from_xml(osm(
            ("first", 4, {"highway": "primary"}),
            ("second", 4, {"highway": "primary"}),
        ))
        self.assertEqual(nearest_way(ds.ways, Coordinate(LAT, LON), 10).way_id, "first")

    def test_segment_distance_uses_perpendicular(self):
        ds = OsmDataset.from_xml(osm(("a", 6, {"highway": "primary"})))
        self.assertAlmostEqual(distance_to_way_m(ds.ways[0], Coordinate(LAT, LON)), 6.0, delta=0.05)

    def test_distance_beyond_segment_end(self):
        ds = OsmDataset.from_xml(osm(("a", 0, {"highway": "primary"})))
        # 0.002 deg east of the query point, the segment ends 0.001 deg short
        past_end = Coordinate(LAT, LON + 0.002)
        self.assertGreater(distance_to_way_m(ds.ways[0], past_end), 60.0)


if __name__ == "__main__":
    unittest.main()
