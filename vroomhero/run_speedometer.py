"""
Terminal speedometer.

Polls the GPS reader once per second, refreshes the speed readout and asks
the lookup service (off the main thread) for the speed limit of the road
under the current position.
"""

import time
from concurrent.futures import Future
from typing import Optional

from vroomhero.components.gps import GPSReader
from vroomhero.components.speedometer import Speedometer
from vroomhero.config import LookupConfig
from vroomhero.roads.models import now_ms
from vroomhero.roads.service import LookupService


def run(config: Optional[LookupConfig] = None, interval_s: float = 1.0, iterations: Optional[int] = None) -> int:
    config = config or LookupConfig.from_env()
    service = LookupService.from_config(config)
    gps = GPSReader(port=config.gps_port, baudrate=config.gps_baudrate)
    meter = Speedometer()
    inflight: Optional[Future] = None

    print(f"[speedometer] provider={config.provider} radius={config.search_radius_m}m "
          f"throttle={config.throttle_ms}ms ttl={config.cache_ttl_ms}ms cache={config.cache_db}")
    gps.start()
    count = 0
    try:
        while iterations is None or count < iterations:
            count += 1
            ts = now_ms()
            meter.update_speed(gps.speed_mph, ts)

            if inflight is not None and inflight.done():
                if not inflight.cancelled():
                    meter.update_road(inflight.result())
                inflight = None
            if inflight is None:
                inflight = service.lookup_async(gps.coordinate, ts)

            fix = "fix" if gps.has_fix else ("fake" if gps.is_fake else "no fix")
            print(f"[speedometer] {meter.render()} | {gps.satellites} sats {fix}")
            time.sleep(interval_s)
    except KeyboardInterrupt:
        print()
    finally:
        service.close()
        gps.stop()
        print(f"[speedometer] stopped; lookups: {service.stats.to_dict()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
