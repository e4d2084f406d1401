"""Flight phase detection from altitude and orientation-corrected acceleration."""

import enum
import logging
import math
import time
from collections import deque

from .config import (
    ACCEL_BUFFER_SIZE,
    ALTITUDE_BUFFER_SIZE,
    BOOST_MIN_DURATION,
    COAST_MIN_DURATION,
    DEFAULT_DESCENT_ALTITUDE_THRESHOLD,
    DEFAULT_LAUNCH_ACCEL_THRESHOLD,
    DEFAULT_LAUNCH_ALTITUDE_THRESHOLD,
    DEFAULT_MIN_APOGEE_ALTITUDE,
    DEFAULT_VERTICAL_VELOCITY_THRESHOLD,
    DESCENT_CONFIRM_TIME,
)

_log = logging.getLogger(__name__)

_VELOCITY_INTERVAL = 100  # ms between vertical velocity estimates
_COAST_ACCEL_LIMIT = 0.2  # g, acceleration below which boost has ended


def _millis():
    return time.monotonic_ns() // 1_000_000


class FlightState(enum.Enum):
    GROUND = 0
    BOOST = 1
    COAST = 2
    APOGEE = 3
    DESCENT = 4


def vertical_acceleration(acc_x, acc_y, acc_z, pitch, roll):
    """Acceleration along the vertical axis in g, with one g removed.

    ``pitch`` and ``roll`` are in degrees.
    """
    pitch_rad = math.radians(pitch)
    roll_rad = math.radians(roll)
    vertical = (
        -acc_z * math.cos(pitch_rad) * math.cos(roll_rad)
        + acc_y * math.sin(roll_rad)
        + acc_x * math.sin(pitch_rad) * math.cos(roll_rad)
    )
    return vertical - 1.0


class FlightController:
    """Tracks the flight phase and fires the recovery relay at apogee.

    ``relay`` is called with ``True`` to energise the recovery relay and
    ``False`` to release it.  ``clock`` returns the time in milliseconds.
    """

    def __init__(self, relay, clock=None):
        self._relay = relay
        self._clock = clock if clock is not None else _millis

        self.launch_accel_threshold = DEFAULT_LAUNCH_ACCEL_THRESHOLD
        self.launch_altitude_threshold = DEFAULT_LAUNCH_ALTITUDE_THRESHOLD
        self.min_apogee_altitude = DEFAULT_MIN_APOGEE_ALTITUDE
        self.descent_altitude_threshold = DEFAULT_DESCENT_ALTITUDE_THRESHOLD
        self.vertical_velocity_threshold = DEFAULT_VERTICAL_VELOCITY_THRESHOLD

        self._altitudes = deque([0.0] * ALTITUDE_BUFFER_SIZE, maxlen=ALTITUDE_BUFFER_SIZE)
        self._accels = deque([0.0] * ACCEL_BUFFER_SIZE, maxlen=ACCEL_BUFFER_SIZE)

        self._state = FlightState.GROUND
        self._state_start_time = 0
        self._last_state_change = 0
        self._descent_start_time = 0
        self._apogee_detected = False
        self._launch_detected = False

        self._max_altitude = 0.0
        self._last_altitude = 0.0
        self._last_average_altitude = 0.0
        self._vertical_velocity = 0.0
        self._last_vertical_acc = 0.0
        self._last_velocity_calc = 0

    @property
    def state(self):
        return self._state

    @property
    def max_altitude(self):
        return self._max_altitude

    @property
    def vertical_velocity(self):
        """Latest vertical velocity estimate in m/s."""
        return self._vertical_velocity

    @property
    def vertical_acceleration(self):
        """Latest vertical acceleration in g, relative to free fall."""
        return self._last_vertical_acc

    @property
    def apogee_detected(self):
        return self._apogee_detected

    @property
    def launch_detected(self):
        return self._launch_detected

    def begin(self):
        """Release the relay and clear the averaging buffers."""
        self._relay(False)
        self._altitudes.extend([0.0] * ALTITUDE_BUFFER_SIZE)
        self._accels.extend([0.0] * ACCEL_BUFFER_SIZE)

    def set_launch_thresholds(self, accel, alt):
        self.launch_accel_threshold = accel
        self.launch_altitude_threshold = alt

    def set_apogee_thresholds(self, min_alt, descent_alt, vertical_vel):
        self.min_apogee_altitude = min_alt
        self.descent_altitude_threshold = descent_alt
        self.vertical_velocity_threshold = vertical_vel

    def update(self, current_altitude, pitch, roll, acc_x, acc_y, acc_z):
        """Feed one sample: altitude in m, angles in degrees, accelerations in g."""
        now = self._clock()

        vertical_acc = vertical_acceleration(acc_x, acc_y, acc_z, pitch, roll)
        self._last_vertical_acc = vertical_acc

        self._accels.append(vertical_acc)
        average_accel = sum(self._accels) / len(self._accels)

        self._altitudes.append(current_altitude)
        average_altitude = sum(self._altitudes) / len(self._altitudes)

        elapsed = now - self._last_velocity_calc
        if elapsed >= _VELOCITY_INTERVAL:
            self._vertical_velocity = (current_altitude - self._last_altitude) / (elapsed / 1000.0)
            self._last_altitude = current_altitude
            self._last_velocity_calc = now

        if average_altitude > self._max_altitude:
            self._max_altitude = average_altitude

        self._update_state(now, current_altitude, average_altitude, average_accel)
        self._last_average_altitude = average_altitude

    def _update_state(self, now, current_altitude, average_altitude, vertical_acc):
        new_state = self._state
        in_state = now - self._state_start_time

        if self._state is FlightState.GROUND:
            if (
                vertical_acc > self.launch_accel_threshold
                and current_altitude > self.launch_altitude_threshold
            ):
                new_state = FlightState.BOOST
                self._launch_detected = True
                _log.info("launch detected, entering BOOST phase")

        elif self._state is FlightState.BOOST:
            if in_state > BOOST_MIN_DURATION and abs(vertical_acc) < _COAST_ACCEL_LIMIT:
                new_state = FlightState.COAST
                _log.info("entering COAST phase")

        elif self._state is FlightState.COAST:
            descending = (
                in_state > COAST_MIN_DURATION
                and current_altitude > self.min_apogee_altitude
                and self._vertical_velocity < self.vertical_velocity_threshold
                and average_altitude < self._max_altitude - self.descent_altitude_threshold
            )
            if descending:
                if now - self._descent_start_time >= DESCENT_CONFIRM_TIME:
                    new_state = FlightState.APOGEE
                    self._apogee_detected = True
                    _log.info("apogee detected at altitude %.2f m", self._max_altitude)
                    self._relay(True)
            elif self._vertical_velocity >= 0:
                self._descent_start_time = now

        elif self._state is FlightState.APOGEE:
            if current_altitude < self._max_altitude - self.descent_altitude_threshold * 2:
                new_state = FlightState.DESCENT
                _log.info("entering DESCENT phase")

        if new_state is not self._state:
            self._state = new_state
            self._last_state_change = now
            self._state_start_time = now