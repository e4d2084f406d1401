"""One-dimensional Kalman filter tracking a value and its rate of change."""

import math
import time


def _millis():
    return time.monotonic_ns() // 1_000_000


class KalmanFilter:
    """Constant-velocity Kalman filter over a single measured quantity.

    ``clock`` returns the current time in milliseconds; it is used to work
    out the time step when ``update`` is called without one.
    """

    def __init__(self, q_angle=0.001, q_velocity=0.003, r_measure=0.03, clock=None):
        self.q_angle = q_angle
        self.q_velocity = q_velocity
        self.r_measure = r_measure
        self._clock = clock if clock is not None else _millis
        self._x = 0.0
        self._v = 0.0
        self._p = [[1.0, 0.0], [0.0, 1.0]]
        self._last_time = 0
        self._initialized = False

    @property
    def state(self):
        """Current filtered estimate."""
        return self._x

    @property
    def velocity(self):
        """Current rate-of-change estimate (units per second)."""
        return self._v

    @property
    def uncertainty(self):
        """Standard deviation of the estimate."""
        return math.sqrt(self._p[0][0])

    @property
    def initialized(self):
        return self._initialized

    def initialize(self, initial_value):
        """Start the filter at ``initial_value`` with unit covariance."""
        self._x = initial_value
        self._v = 0.0
        self._p = [[1.0, 0.0], [0.0, 1.0]]
        self._last_time = self._clock()
        self._initialized = True

    def update(self, measurement, dt=0.0):
        """Fold in a measurement and return the new estimate.

        A non-positive ``dt`` means the step is taken from the clock,
        limited to the range 0.001 s to 1 s.
        """
        if not self._initialized:
            self.initialize(measurement)
            return measurement

        if dt <= 0.0:
            now = self._clock()
            dt = (now - self._last_time) / 1000.0
            self._last_time = now
            dt = min(max(dt, 0.001), 1.0)

        (p00, p01), (p10, p11) = self._p

        x_pred = self._x + dt * self._v
        v_pred = self._v

        dt2 = dt * dt
        dt3 = dt2 * dt
        dt4 = dt3 * dt
        q00 = self.q_angle * dt4 / 4.0
        q01 = self.q_angle * dt3 / 2.0
        q11 = self.q_angle * dt2 + self.q_velocity * dt

        p00_pred = p00 + dt * (p01 + p10) + dt2 * p11 + q00
        p01_pred = p01 + dt * p11 + q01
        p10_pred = p10 + dt * p11 + q01
        p11_pred = p11 + q11

        residual = measurement - x_pred
        s = p00_pred + self.r_measure
        k0 = p00_pred / s
        k1 = p10_pred / s

        self._x = x_pred + k0 * residual
        self._v = v_pred + k1 * residual

        new_p00 = (1.0 - k0) * p00_pred
        new_p01 = (1.0 - k0) * p01_pred
        new_p10 = -k1 * p00_pred + p10_pred
        new_p11 = -k1 * p01_pred + p11_pred

        if new_p00 < 0.0:
            new_p00 = 0.001
        if new_p11 < 0.0:
            new_p11 = 0.001

        self._p = [[new_p00, new_p01], [new_p10, new_p11]]
        return self._x

    def reset(self):
        """Return to the uninitialised state."""
        self._x = 0.0
        self._v = 0.0
        self._p = [[1.0, 0.0], [0.0, 1.0]]
        self._last_time = 0
        self._initialized = False

    def set_process_noise(self, q_angle, q_velocity):
        self.q_angle = q_angle
        self.q_velocity = q_velocity

    def set_measurement_noise(self, r_measure):
        self.r_measure = r_measure