"""Quaternion extended Kalman filter fusing gyroscope and accelerometer data."""

import logging
import math
import time

_log = logging.getLogger(__name__)

_GYRO_DEADBAND = 0.02  # rad/s, roughly one degree per second
_ACCEL_MIN = 8.5  # m/s^2, lower bound for using the accelerometer
_ACCEL_MAX = 11.0  # m/s^2, upper bound for using the accelerometer
_DEBUG_EVERY = 100


def _millis():
    return time.monotonic_ns() // 1_000_000


def quaternion_multiply(q1, q2):
    """Hamilton product of two quaternions given as (w, x, y, z)."""
    a0, a1, a2, a3 = q1
    b0, b1, b2, b3 = q2
    return (
        a0 * b0 - a1 * b1 - a2 * b2 - a3 * b3,
        a0 * b1 + a1 * b0 + a2 * b3 - a3 * b2,
        a0 * b2 - a1 * b3 + a2 * b0 + a3 * b1,
        a0 * b3 + a1 * b2 - a2 * b1 + a3 * b0,
    )


def _conjugate(q):
    w, x, y, z = q
    return (w, -x, -y, -z)


def rotate_vector(q, v):
    """Rotate the 3-vector ``v`` by quaternion ``q`` (q * [0, v] * q*)."""
    temp = quaternion_multiply(q, (0.0, *v))
    rotated = quaternion_multiply(temp, _conjugate(q))
    return rotated[1:]


def quaternion_to_euler(q):
    """Return (yaw, pitch, roll) in degrees for the quaternion ``q``."""
    q0, q1, q2, q3 = q

    sinr_cosp = 2.0 * (q0 * q1 + q2 * q3)
    cosr_cosp = 1.0 - 2.0 * (q1 * q1 + q2 * q2)
    roll = math.degrees(math.atan2(sinr_cosp, cosr_cosp))

    sinp = 2.0 * (q0 * q2 - q3 * q1)
    if abs(sinp) >= 1.0:
        pitch = math.copysign(90.0, sinp)
    else:
        pitch = math.degrees(math.asin(sinp))

    siny_cosp = 2.0 * (q0 * q3 + q1 * q2)
    cosy_cosp = 1.0 - 2.0 * (q2 * q2 + q3 * q3)
    yaw = math.degrees(math.atan2(siny_cosp, cosy_cosp))

    return yaw, pitch, roll


def _magnitude(v):
    return math.sqrt(sum(c * c for c in v))


def _normalized(v):
    mag = _magnitude(v)
    if mag > 1e-8:
        return tuple(c / mag for c in v)
    return tuple(v)


def _identity(n):
    return [[1.0 if i == j else 0.0 for j in range(n)] for i in range(n)]


def _diagonal(values):
    n = len(values)
    return [[values[i] if i == j else 0.0 for j in range(n)] for i in range(n)]


def _transpose(a):
    return [list(row) for row in zip(*a)]


def _matmul(a, b):
    columns = list(zip(*b))
    return [[sum(x * y for x, y in zip(row, col)) for col in columns] for row in a]


def _invert3(s):
    """Inverse of a 3x3 matrix, or None when it is (nearly) singular."""
    (a, b, c), (d, e, f), (g, h, i) = s
    det = a * (e * i - f * h) - b * (d * i - f * g) + c * (d * h - e * g)
    if abs(det) < 1e-8:
        return None
    return [
        [(e * i - f * h) / det, (c * h - b * i) / det, (b * f - c * e) / det],
        [(f * g - d * i) / det, (a * i - c * g) / det, (c * d - a * f) / det],
        [(d * h - e * g) / det, (b * g - a * h) / det, (a * e - b * d) / det],
    ]


class IMUExtendedKalmanFilter:
    """Orientation filter with state [q0, q1, q2, q3, bias_x, bias_y, bias_z].

    Gyroscope rates (rad/s) drive the prediction; accelerometer readings
    (m/s^2) correct it when their magnitude is close to one g.  ``clock``
    returns milliseconds and is used when ``update`` gets no time step.
    """

    def __init__(self, q_angle=0.001, q_bias=0.0001, r_accel=0.5, clock=None):
        self.q_angle = q_angle
        self.q_bias = q_bias
        self.r_accel = r_accel
        self._clock = clock if clock is not None else _millis
        self._state = [1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
        self._p = _identity(7)
        self._last_time = 0
        self._initialized = False
        self._update_count = 0

    @property
    def initialized(self):
        return self._initialized

    def initialize(self, accel_x, accel_y, accel_z):
        """Set the orientation from a stationary accelerometer reading."""
        ax, ay, az = _normalized((accel_x, accel_y, accel_z))

        pitch = math.asin(max(-1.0, min(1.0, -ax)))
        roll = math.atan2(ay, az)
        yaw = 0.0  # not observable from the accelerometer

        cp, sp = math.cos(pitch * 0.5), math.sin(pitch * 0.5)
        cr, sr = math.cos(roll * 0.5), math.sin(roll * 0.5)
        cy, sy = math.cos(yaw * 0.5), math.sin(yaw * 0.5)

        self._state = [
            cp * cr * cy + sp * sr * sy,
            sp * cr * cy - cp * sr * sy,
            cp * sr * cy + sp * cr * sy,
            cp * cr * sy - sp * sr * cy,
            0.0,
            0.0,
            0.0,
        ]
        self._p = _diagonal([0.1] * 4 + [0.01] * 3)
        self._last_time = self._clock()
        self._initialized = True

    def update(self, gyro_x, gyro_y, gyro_z, accel_x, accel_y, accel_z, dt=0.0):
        """Advance the filter with one IMU sample.

        The first call only initialises the orientation.  A non-positive
        ``dt`` is taken from the clock and limited to 0.001 s to 0.1 s.
        """
        if not self._initialized:
            self.initialize(accel_x, accel_y, accel_z)
            return

        if dt <= 0.0:
            now = self._clock()
            dt = (now - self._last_time) / 1000.0
            self._last_time = now
            dt = min(max(dt, 0.001), 0.1)

        gyro = tuple(g if abs(g) > _GYRO_DEADBAND else 0.0 for g in (gyro_x, gyro_y, gyro_z))
        accel = (accel_x, accel_y, accel_z)

        self._predict(gyro, dt)

        accel_mag = _magnitude(accel)
        in_range = _ACCEL_MIN < accel_mag < _ACCEL_MAX

        self._update_count += 1
        if self._update_count >= _DEBUG_EVERY:
            self._update_count = 0
            _log.debug(
                "EKF accel magnitude %.3f m/s^2 - %s",
                accel_mag,
                "updating" if in_range else "skipping (out of range)",
            )

        if in_range:
            self._correct(accel)

    def _predict(self, gyro, dt):
        bias = self._state[4:]
        corrected = tuple(g - b for g, b in zip(gyro, bias))
        omega = _magnitude(corrected)
        rotate = omega > 1e-6
        half_dt = dt * 0.5

        if rotate:
            s = math.sin(omega * half_dt)
            dq = (math.cos(omega * half_dt), *(c / omega * s for c in corrected))
            self._state[:4] = quaternion_multiply(tuple(self._state[:4]), dq)
            self._normalize_quaternion()

        f = _identity(7)
        if rotate:
            c = math.cos(omega * half_dt)
            hx, hy, hz = (g * half_dt for g in corrected)
            q0, q1, q2, q3 = self._state[:4]
            f[0] = [c, -hx, -hy, -hz, q1 * half_dt, q2 * half_dt, q3 * half_dt]
            f[1] = [hx, c, hz, -hy, -q0 * half_dt, q3 * half_dt, -q2 * half_dt]
            f[2] = [hy, -hz, c, hx, -q3 * half_dt, -q0 * half_dt, q1 * half_dt]
            f[3] = [hz, hy, -hx, c, q2 * half_dt, -q1 * half_dt, -q0 * half_dt]

        self._propagate_covariance(f, dt)

    def _propagate_covariance(self, f, dt):
        q = _diagonal([self.q_angle * dt] * 4 + [self.q_bias * dt] * 3)
        fpft = _matmul(_matmul(f, self._p), _transpose(f))
        self._p = [[a + b for a, b in zip(row, qrow)] for row, qrow in zip(fpft, q)]

    def _correct(self, accel):
        measured = _normalized(accel)
        q0, q1, q2, q3 = self._state[:4]
        expected = rotate_vector(_conjugate((q0, q1, q2, q3)), (0.0, 0.0, -1.0))
        innovation = [m - e for m, e in zip(measured, expected)]

        h = [
            [2.0 * q2, 2.0 * q3, 2.0 * q0, 2.0 * q1, 0.0, 0.0, 0.0],
            [-2.0 * q1, -2.0 * q0, 2.0 * q3, 2.0 * q2, 0.0, 0.0, 0.0],
            [-2.0 * q0, 2.0 * q1, 2.0 * q2, -2.0 * q3, 0.0, 0.0, 0.0],
        ]
        ht = _transpose(h)
        s = _matmul(_matmul(h, self._p), ht)
        for i, row in enumerate(s):
            row[i] += self.r_accel

        inv_s = _invert3(s)
        if inv_s is None:
            return

        gain = _matmul(_matmul(self._p, ht), inv_s)
        self._state = [
            x + sum(k * y for k, y in zip(krow, innovation))
            for x, krow in zip(self._state, gain)
        ]
        self._normalize_quaternion()

        kh = _matmul(gain, h)
        ikh = [
            [ident - v for ident, v in zip(irow, khrow)]
            for irow, khrow in zip(_identity(7), kh)
        ]
        self._p = _matmul(ikh, self._p)

    def _normalize_quaternion(self):
        norm = _magnitude(self._state[:4])
        if norm > 1e-8:
            self._state[:4] = [c / norm for c in self._state[:4]]
        else:
            self._state[:4] = [1.0, 0.0, 0.0, 0.0]

    def euler_angles(self):
        """Current orientation as (yaw, pitch, roll) in degrees."""
        return quaternion_to_euler(self._state[:4])

    def quaternion(self):
        """Current orientation as (w, x, y, z)."""
        return tuple(self._state[:4])

    def gyro_bias(self):
        """Estimated gyroscope bias (x, y, z) in rad/s."""
        return tuple(self._state[4:])

    def confidence(self):
        """Trace of the covariance matrix; lower means more certain."""
        return sum(self._p[i][i] for i in range(7))

    def reset(self):
        """Return to the identity orientation and uninitialised state."""
        self._state = [1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
        self._p = _identity(7)
        self._last_time = 0
        self._initialized = False

    def set_process_noise(self, q_angle, q_bias):
        self.q_angle = q_angle
        self.q_bias = q_bias

    def set_measurement_noise(self, r_accel):
        self.r_accel = r_accel