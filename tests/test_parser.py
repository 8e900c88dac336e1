import json
import unittest

from vroomhero.roads.models import ProviderKind, RoadInfo
from vroomhero.roads.parser import ResponseParser, parse, parse_maxspeed


def overpass_body(*elements):
    return json.dumps({"elements": list(elements)})


class MaxspeedTests(unittest.TestCase):
    def test_plain_number_is_kmh(self):
        self.assertAlmostEqual(parse_maxspeed("30"), 30 / 1.60934, places=2)
        self.assertAlmostEqual(parse_maxspeed("80 km/h"), 49.70968, places=4)

    def test_mph_suffix_is_exact(self):
        self.assertEqual(parse_maxspeed("30 mph"), 30.0)
        self.assertEqual(parse_maxspeed("25MPH"), 25.0)

    def test_unparseable_residential_uses_default(self):
        self.assertEqual(parse_maxspeed("signals", highway="residential"), 25.0)
        self.assertEqual(parse_maxspeed("none", highway="residential", residential_default_mph=20.0), 20.0)

    def test_unparseable_elsewhere_is_absent(self):
        self.assertIsNone(parse_maxspeed("signals", highway="primary"))
        self.assertIsNone(parse_maxspeed(""))
        self.assertIsNone(parse_maxspeed(None))

    def test_implausible_values_rejected(self):
        self.assertIsNone(parse_maxspeed("400"))  # 248 mph
        self.assertIsNone(parse_maxspeed("0 mph"))
        self.assertEqual(parse_maxspeed("999 mph", highway="residential"), 25.0)

    def test_oversized_numbers_rejected(self):
        huge = "1" * 5000
        self.assertIsNone(parse_maxspeed(huge + " mph"))
        self.assertIsNone(parse_maxspeed(huge))
        self.assertEqual(parse_maxspeed(huge + " mph", highway="residential"), 25.0)


class OverpassParserTests(unittest.TestCase):
    def test_residential_scenario(self):
        raw = '{"elements":[{"id":"123","tags":{"maxspeed":"50","highway":"residential"}}]}'
        info = parse(ProviderKind.OVERPASS, raw)
        self.assertIsNotNone(info)
        self.assertAlmostEqual(info.speed_limit_mph, 31.07, places=2)
        self.assertEqual(info.external_id, "123")
        self.assertIsNone(info.road_name)

    def test_name_and_numeric_id(self):
        raw = overpass_body({"type": "way", "id": 4567, "tags": {"maxspeed": "30 mph", "name": "Main St"}})
        self.assertEqual(
            parse(ProviderKind.OVERPASS, raw),
            RoadInfo(speed_limit_mph=30.0, road_name="Main St", external_id="4567"),
        )

    def test_empty_name_is_absent(self):
        raw = overpass_body({"id": 1, "tags": {"maxspeed": "40 mph", "name": ""}})
        self.assertIsNone(parse(ProviderKind.OVERPASS, raw).road_name)

    def test_only_first_element_counts(self):
        raw = overpass_body(
            {"id": 1, "tags": {"highway": "primary"}},
            {"id": 2, "tags": {"maxspeed": "40 mph"}},
        )
        self.assertIsNone(parse(ProviderKind.OVERPASS, raw))

    def test_unparseable_limit_keeps_name(self):
        raw = overpass_body({"id": 9, "tags": {"maxspeed": "variable", "highway": "motorway", "name": "I-5"}})
        info = parse(ProviderKind.OVERPASS, raw)
        self.assertIsNone(info.speed_limit_mph)
        self.assertEqual(info.road_name, "I-5")

    def test_oversized_limit_keeps_name(self):
        raw = overpass_body({"id": 1, "tags": {"maxspeed": "1" * 5000 + " mph", "name": "Long Rd"}})
        info = parse(ProviderKind.OVERPASS, raw)
        self.assertIsNone(info.speed_limit_mph)
        self.assertEqual(info.road_name, "Long Rd")

    def test_no_data_bodies(self):
        for raw in ("", "   ", None, "not json", "[]", '{"elements": []}', '{"other": 1}',
                    '{"elements": "x"}', '{"elements": [1]}', '{"elements": [{"id": 1}]}'):
            self.assertIsNone(parse(ProviderKind.OVERPASS, raw), raw)

    def test_parse_is_idempotent(self):
        raw = overpass_body({"id": 5, "tags": {"maxspeed": "60", "name": "Ring"}})
        parser = ResponseParser()
        self.assertEqual(parser.parse(ProviderKind.OVERPASS, raw), parser.parse(ProviderKind.OVERPASS, raw))

    def test_configured_residential_default(self):
        raw = overpass_body({"id": 5, "tags": {"maxspeed": "RU:urban", "highway": "residential"}})
        info = ResponseParser(residential_default_mph=24.85).parse(ProviderKind.OVERPASS, raw)
        self.assertEqual(info.speed_limit_mph, 24.85)

    def test_rejects_implausible_default(self):
        with self.assertRaises(ValueError):
            ResponseParser(residential_default_mph=0)


class HereParserTests(unittest.TestCase):
    def test_street_and_kmh_limit(self):
        raw = json.dumps({"items": [{"id": "here:1", "address": {"street": "Unter den Linden"},
                                     "speedLimit": {"value": 50}}]})
        info = parse(ProviderKind.HERE, raw)
        self.assertAlmostEqual(info.speed_limit_mph, 31.06855, places=4)
        self.assertEqual(info.road_name, "Unter den Linden")
        self.assertEqual(info.external_id, "here:1")

    def test_mph_unit(self):
        raw = json.dumps({"items": [{"address": {"street": ""}, "speedLimit": {"value": "35", "unit": "mph"}}]})
        info = parse(ProviderKind.HERE, raw)
        self.assertEqual(info.speed_limit_mph, 35.0)
        self.assertIsNone(info.road_name)

    def test_missing_speed_limit_is_absent(self):
        raw = json.dumps({"items": [{"address": {"street": "Elm"}}]})
        self.assertIsNone(parse(ProviderKind.HERE, raw))
        self.assertIsNone(parse(ProviderKind.HERE, '{"items": []}'))

    def test_implausible_value(self):
        raw = json.dumps({"items": [{"speedLimit": {"value": 900}}]})
        self.assertIsNone(parse(ProviderKind.HERE, raw).speed_limit_mph)


class OsmXmlParserTests(unittest.TestCase):
    def test_first_way_tags(self):
        raw = """<?xml version="1.0" encoding="UTF-8"?>
<osm version="0.6">
  <way id="77">
    <tag k="highway" v="secondary"/>
    <tag k="maxspeed" v="20 mph"/>
    <tag k="name" v="High Street"/>
  </way>
  <way id="78"><tag k="maxspeed" v="70"/></way>
</osm>"""
        self.assertEqual(
            parse(ProviderKind.OSM_XML, raw),
            RoadInfo(speed_limit_mph=20.0, road_name="High Street", external_id="77"),
        )

    def test_malformed_xml(self):
        self.assertIsNone(parse(ProviderKind.OSM_XML, "<osm><way"))
        self.assertIsNone(parse(ProviderKind.OSM_XML, "<osm/>"))


if __name__ == "__main__":
    unittest.main()
