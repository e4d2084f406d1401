"""Barometric altimeter with Kalman-filtered altitude and temperature."""

import logging
import math

from .config import DEFAULT_SEA_LEVEL_PRESSURE
from .kalman import KalmanFilter

_log = logging.getLogger(__name__)

SENSOR_ADDRESSES = (0x76, 0x77)


class SensorError(Exception):
    """The barometric sensor could not be found or gave an invalid reading."""


def _invalid(value):
    return value is None or math.isnan(value)


class Altimeter:
    """Reads a barometric pressure sensor and filters its output.

    ``sensor`` provides ``begin(address) -> bool``, ``configure()``,
    ``read_temperature()`` (deg C), ``read_pressure()`` (Pa) and
    ``read_altitude(sea_level_hpa)`` (m).
    """

    def __init__(self, sensor, sea_level_pressure=DEFAULT_SEA_LEVEL_PRESSURE, clock=None):
        self.sensor = sensor
        self.sea_level_pressure = sea_level_pressure
        self.altitude_filter = KalmanFilter(0.01, 0.1, 0.5, clock=clock)
        self.temperature_filter = KalmanFilter(0.001, 0.01, 0.1, clock=clock)
        self.raw_altitude = 0.0
        self.raw_temperature = 0.0
        self.altitude = 0.0
        self.temperature = 0.0
        self._initialized = False

    @property
    def ready(self):
        return self._initialized

    def initialize(self):
        """Find and configure the sensor, then take a first reading.

        Raises SensorError when no sensor answers or the first reading is
        invalid.
        """
        if not any(self.sensor.begin(address) for address in SENSOR_ADDRESSES):
            raise SensorError(
                "no barometric sensor found at addresses "
                + ", ".join(f"0x{a:02X}" for a in SENSOR_ADDRESSES)
            )

        self.sensor.configure()

        temperature = self.sensor.read_temperature()
        if _invalid(temperature):
            raise SensorError("invalid temperature reading")
        self.raw_temperature = temperature

        pressure = self.sensor.read_pressure()
        if _invalid(pressure) or pressure == 0:
            raise SensorError("invalid pressure reading")

        self.raw_altitude = self.sensor.read_altitude(self.sea_level_pressure)

        self.temperature = self.temperature_filter.update(self.raw_temperature)
        self.altitude = self.altitude_filter.update(self.raw_altitude)

        _log.info(
            "initial readings - temperature %.2f C, pressure %.2f hPa, altitude %.2f m",
            temperature,
            pressure / 100.0,
            self.raw_altitude,
        )
        self._initialized = True

    def update(self):
        """Take a new reading; invalid readings are logged and skipped."""
        if not self._initialized:
            try:
                self.initialize()
            except SensorError as exc:
                _log.warning("altimeter not ready: %s", exc)
                return

        temperature = self.sensor.read_temperature()
        if _invalid(temperature):
            _log.warning("invalid temperature reading")
        else:
            self.raw_temperature = temperature
            self.temperature = self.temperature_filter.update(temperature)

        pressure = self.sensor.read_pressure()
        if _invalid(pressure) or pressure == 0:
            _log.warning("invalid pressure reading")
            return

        altitude = self.sensor.read_altitude(self.sea_level_pressure)
        if _invalid(altitude):
            _log.warning("invalid altitude calculation")
            return
        self.raw_altitude = altitude
        self.altitude = self.altitude_filter.update(altitude)

    def set_sea_level_pressure(self, pressure):
        """Set the reference sea level pressure in hPa."""
        self.sea_level_pressure = pressure
        _log.info("sea level pressure set to %s hPa", pressure)

    def set_altitude_filter_params(self, q_angle, q_velocity, r_measure):
        self.altitude_filter.set_process_noise(q_angle, q_velocity)
        self.altitude_filter.set_measurement_noise(r_measure)

    def set_temperature_filter_params(self, q_angle, q_velocity, r_measure):
        self.temperature_filter.set_process_noise(q_angle, q_velocity)
        self.temperature_filter.set_measurement_noise(r_measure)

    def reset_filters(self):
        self.altitude_filter.reset()
        self.temperature_filter.reset()