# Serial NMEA GPS receiver (u-blox style modules on a UART or USB adapter).
# On a Raspberry Pi the UART is usually /dev/serial0:
#   ls -l /dev/serial0   # -> ttyS0 or ttyAMA0
# and Bluetooth must not hold it (dtoverlay=disable-bt in config.txt).

import threading
import time
from typing import Optional

import pynmea2
import serial

from vroomhero.roads.models import Coordinate
from vroomhero.roads.units import knots_to_mph

# GGA carries the fix and position, RMC carries speed and course.
# GP = GPS only, GN = multi-constellation receivers.
_FIX_SENTENCES = ("$GPGGA", "$GNGGA")
_MOTION_SENTENCES = ("$GPRMC", "$GNRMC")


class GPSReader:
    """Background NMEA reader with a fixed-position fallback when no receiver is attached"""

    DEFAULT_LAT = 37.3349
    DEFAULT_LON = -122.0090

    def __init__(self, port='/dev/serial0', baudrate=9600, fallback: Optional[Coordinate] = None):
        self.port = port
        self.baudrate = baudrate
        self.fallback = fallback or Coordinate(self.DEFAULT_LAT, self.DEFAULT_LON)
        self.serial = None
        self.running = False
        self.thread = None
        self.use_fake_data = False

        self._data = {
            'satellites': 0,
            'speed_mph': 0.0,
            'heading': 0.0,
            'latitude': self.fallback.latitude,
            'longitude': self.fallback.longitude,
            'has_fix': False,
            'updated_ms': 0,
        }
        self._lock = threading.Lock()

    def start(self):
        """Open the serial port and start the reader thread"""
        try:
            self.serial = serial.Serial(self.port, baudrate=self.baudrate, timeout=1)
            self.use_fake_data = False
            print(f"[gps] connected on {self.port} @ {self.baudrate}")
        except serial.SerialException as e:
            print(f"[gps] unavailable ({e}), using fixed position {self.fallback}")
            self.use_fake_data = True

        self.running = True
        self.thread = threading.Thread(target=self._read_loop, name="gps-reader", daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=2)
        if self.serial:
            self.serial.close()

    def _read_loop(self):
        while self.running:
            if self.use_fake_data:
                time.sleep(0.5)
                continue

            try:
                line = self.serial.readline().decode('ascii', errors='replace').strip()
            except serial.SerialException as e:
                print(f"[gps] serial read failed ({e}), switching to fixed position")
                self.use_fake_data = True
                continue
            if line:
                self.handle_sentence(line)

    def handle_sentence(self, line: str) -> None:
        """Apply one NMEA sentence to the current state"""
        if not line.startswith(_FIX_SENTENCES + _MOTION_SENTENCES):
            return
        try:
            msg = pynmea2.parse(line)
        except pynmea2.ParseError as e:
            print(f"[gps] bad sentence ({e}): {line!r}")
            return

        # Convert every field before touching state so a garbled one changes nothing.
        # An empty lat/lon field means no fix; 0.0 is a real position on the equator.
        update = {}
        try:
            if line.startswith(_FIX_SENTENCES):
                update['satellites'] = int(msg.num_sats or 0)
                update['has_fix'] = bool(msg.lat and msg.lon)
                if update['has_fix']:
                    update['latitude'] = float(msg.latitude)
                    update['longitude'] = float(msg.longitude)
            else:
                update['speed_mph'] = knots_to_mph(float(msg.spd_over_grnd or 0.0))
                update['heading'] = float(msg.true_course or 0.0)
        except (ValueError, TypeError) as e:
            print(f"[gps] bad sentence ({e}): {line!r}")
            return

        update['updated_ms'] = int(time.time() * 1000)
        with self._lock:
            self._data.update(update)

    @property
    def satellites(self):
        with self._lock:
            return self._data['satellites']

    @property
    def speed_mph(self):
        """Current speed over ground in mph"""
        with self._lock:
            return self._data['speed_mph']

    @property
    def heading(self):
        with self._lock:
            return self._data['heading']

    @property
    def coordinate(self) -> Coordinate:
        with self._lock:
            return Coordinate(self._data['latitude'], self._data['longitude'])

    @property
    def has_fix(self):
        with self._lock:
            return self._data['has_fix']

    @property
    def is_fake(self):
        """Whether the fixed fallback position is in use"""
        return self.use_fake_data
