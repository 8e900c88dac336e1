"""Device-side speedometer components."""

from .gps import GPSReader
from .speedometer import Speedometer

__all__ = [
    "GPSReader",
    "Speedometer",
]
