#!/usr/bin/env python3
"""
Replay a recorded GPS track through the lookup service.

Input: one JSON object per line with "ts_ms", "lat" and "lon".
Usage: python scripts/replay_track.py --input track.jsonl [--cache-db :memory:]

Lookups use the recorded timestamps, so throttling and cache expiry behave as
they did on the road. Provider settings come from the environment.
"""

import argparse
import dataclasses
import json

from vroomhero.config import LookupConfig
from vroomhero.roads.models import Coordinate
from vroomhero.roads.service import LookupService


def main() -> int:
    p = argparse.ArgumentParser()
    p.add_argument("--input", required=True, help="Path to JSONL GPS track.")
    p.add_argument("--cache-db", default=":memory:", help="sqlite cache path.")
    p.add_argument("--verbose", action="store_true", help="Print every lookup.")
    args = p.parse_args()

    config = dataclasses.replace(LookupConfig.from_env(), cache_db=args.cache_db, log=args.verbose)

    total = 0
    known = 0
    skipped = 0
    with LookupService.from_config(config) as service, open(args.input, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                d = json.loads(line)
                coordinate = Coordinate(float(d["lat"]), float(d["lon"]))
                ts = int(d["ts_ms"])
            except (ValueError, KeyError, TypeError):
                skipped += 1
                continue
            total += 1
            info = service.lookup(coordinate, ts)
            if info is not None and info.speed_limit_mph is not None:
                known += 1
        stats = service.stats.to_dict()

    if total == 0:
        print("No valid rows found.")
        return 1

    print(f"rows={total} skipped={skipped}")
    print(f"known_limit_ratio={known/total:.4f}")
    for name, value in stats.items():
        print(f"{name}={value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
