#!/usr/bin/env python3
"""
VroomHero launcher.

- default: terminal speedometer fed by the serial GPS
- --lookup LAT LON: resolve one coordinate and exit

Settings come from the environment (see vroomhero/config.py); the flags
below override the most common ones.
"""

import argparse
import dataclasses
import sys

from vroomhero.config import LookupConfig
from vroomhero.roads.models import Coordinate
from vroomhero.roads.service import LookupService
from vroomhero.run_speedometer import run


def lookup_once(config: LookupConfig, lat: float, lon: float) -> int:
    try:
        coordinate = Coordinate(lat, lon)
    except ValueError as e:
        print(f"[main] {e}", file=sys.stderr)
        return 2

    with LookupService.from_config(config) as service:
        info = service.lookup(coordinate)

    if info is None:
        print("Speed limit not found")
        return 1
    if info.speed_limit_mph is not None:
        print(f"Speed limit: {info.speed_limit_mph:.0f} MPH ({info.speed_limit_mph:.2f})")
    else:
        print("Speed limit: unknown")
    print(f"Road: {info.road_name or 'Unknown Road'}")
    if info.external_id:
        print(f"Way id: {info.external_id}")
    return 0


def main() -> int:
    p = argparse.ArgumentParser()
    p.add_argument(
        "--lookup",
        nargs=2,
        type=float,
        metavar=("LAT", "LON"),
        help="Look up one coordinate and exit.",
    )
    p.add_argument(
        "--provider",
        choices=("overpass", "here", "offline"),
        help="Road data source (ROAD_PROVIDER).",
    )
    p.add_argument("--radius", type=int, help="Search radius in meters (ROAD_SEARCH_RADIUS_M).")
    p.add_argument("--throttle-ms", type=int, help="Min time between remote calls (ROAD_THROTTLE_MS).")
    p.add_argument("--ttl-ms", type=int, help="Cache validity window (ROAD_CACHE_TTL_MS).")
    p.add_argument("--cache-db", help="sqlite cache path (ROAD_CACHE_DB).")
    p.add_argument("--map-file", help="Offline OSM XML file (OFFLINE_MAP_FILE).")
    p.add_argument("--quiet", action="store_true", help="Hide routine lookup logs.")
    args = p.parse_args()

    overrides = {
        "provider": args.provider,
        "search_radius_m": args.radius,
        "throttle_ms": args.throttle_ms,
        "cache_ttl_ms": args.ttl_ms,
        "cache_db": args.cache_db,
        "offline_map_file": args.map_file,
    }
    config = dataclasses.replace(
        LookupConfig.from_env(),
        **{k: v for k, v in overrides.items() if v is not None},
    )
    if args.quiet:
        config.log = False

    try:
        if args.lookup:
            return lookup_once(config, *args.lookup)
        return run(config)
    except ValueError as e:
        print(f"[main] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
