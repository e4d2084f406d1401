import math

import pytest

from flightcomputer.ekf import (
    IMUExtendedKalmanFilter,
    quaternion_multiply,
    quaternion_to_euler,
    rotate_vector,
)

LEVEL = (0.0, 0.0, 9.81)
OUT_OF_RANGE = (0.0, 0.0, 20.0)


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def norm(q):
    return math.sqrt(sum(c * c for c in q))


def test_multiply_by_identity_returns_same_quaternion():
    q = (0.5, 0.5, -0.5, 0.5)
    assert quaternion_multiply(q, (1.0, 0.0, 0.0, 0.0)) == pytest.approx(q)
    assert quaternion_multiply((1.0, 0.0, 0.0, 0.0), q) == pytest.approx(q)


def test_multiply_by_conjugate_gives_squared_norm():
    q = (0.2, 0.4, -0.1, 0.7)
    conj = (0.2, -0.4, 0.1, -0.7)
    result = quaternion_multiply(q, conj)
    assert result[0] == pytest.approx(sum(c * c for c in q))
    assert result[1:] == pytest.approx((0.0, 0.0, 0.0))


def test_rotate_vector_quarter_turn_about_z():
    half = math.pi / 4
    q = (math.cos(half), 0.0, 0.0, math.sin(half))
    assert rotate_vector(q, (1.0, 0.0, 0.0)) == pytest.approx((0.0, 1.0, 0.0), abs=1e-12)


def test_rotate_vector_preserves_length():
    q = (0.5, 0.5, 0.5, 0.5)
    v = (3.0, -4.0, 12.0)
    assert norm(rotate_vector(q, v)) == pytest.approx(13.0)


def test_euler_of_identity_is_zero():
    assert quaternion_to_euler((1.0, 0.0, 0.0, 0.0)) == pytest.approx((0.0, 0.0, 0.0))


@pytest.mark.parametrize("angle", [0.3, -1.2, 2.5])
def test_euler_yaw_from_z_rotation(angle):
    q = (math.cos(angle / 2), 0.0, 0.0, math.sin(angle / 2))
    yaw, pitch, roll = quaternion_to_euler(q)
    assert yaw == pytest.approx(math.degrees(angle))
    assert pitch == pytest.approx(0.0, abs=1e-9)
    assert roll == pytest.approx(0.0, abs=1e-9)


def test_euler_pitch_saturates_at_gimbal_lock():
    half = math.pi / 4
    _, pitch, _ = quaternion_to_euler((math.cos(half) * 1.0000001, 0.0, math.sin(half), 0.0))
    assert pitch == 90.0


def test_new_filter_is_identity_with_unit_covariance():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    assert not ekf.initialized
    assert ekf.quaternion() == (1.0, 0.0, 0.0, 0.0)
    assert ekf.gyro_bias() == (0.0, 0.0, 0.0)
    assert ekf.confidence() == pytest.approx(7.0)


def test_first_update_initializes_from_level_accelerometer():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.update(0.5, 0.5, 0.5, *LEVEL)
    assert ekf.initialized
    assert ekf.quaternion() == pytest.approx((1.0, 0.0, 0.0, 0.0))
    assert ekf.confidence() == pytest.approx(0.43)


def test_gyro_integration_without_correction():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(*LEVEL)
    ekf.update(0.0, 0.0, 1.0, *OUT_OF_RANGE, dt=0.1)
    q = ekf.quaternion()
    assert q == pytest.approx((math.cos(0.05), 0.0, 0.0, math.sin(0.05)))
    assert ekf.euler_angles()[0] == pytest.approx(math.degrees(0.1))


def test_gyro_deadband_suppresses_small_rates():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(*LEVEL)
    ekf.update(0.01, -0.015, 0.02, *OUT_OF_RANGE, dt=0.1)
    assert ekf.quaternion() == pytest.approx((1.0, 0.0, 0.0, 0.0))


def test_clock_time_step_is_capped():
    clock = FakeClock(1000)
    ekf = IMUExtendedKalmanFilter(clock=clock)
    ekf.initialize(*LEVEL)
    clock.now += 5000
    ekf.update(0.0, 0.0, 1.0, *OUT_OF_RANGE)
    assert ekf.euler_angles()[0] == pytest.approx(math.degrees(0.1))


def test_zero_process_noise_keeps_covariance_when_still():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(*LEVEL)
    ekf.set_process_noise(0.0, 0.0)
    before = ekf.confidence()
    ekf.update(0.0, 0.0, 0.0, *OUT_OF_RANGE, dt=0.05)
    assert ekf.confidence() == pytest.approx(before)


def test_process_noise_grows_covariance():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(*LEVEL)
    before = ekf.confidence()
    ekf.update(0.0, 0.0, 0.0, *OUT_OF_RANGE, dt=0.05)
    assert ekf.confidence() > before


def test_accelerometer_correction_reduces_uncertainty():
    corrected = IMUExtendedKalmanFilter(clock=FakeClock())
    skipped = IMUExtendedKalmanFilter(clock=FakeClock())
    tilt = math.radians(10.0)
    accel = (0.0, 9.81 * math.sin(tilt), 9.81 * math.cos(tilt))
    for ekf in (corrected, skipped):
        ekf.initialize(*LEVEL)
    corrected.update(0.0, 0.0, 0.0, *accel, dt=0.01)
    skipped.update(0.0, 0.0, 0.0, *OUT_OF_RANGE, dt=0.01)
    assert corrected.confidence() < skipped.confidence()
    assert norm(corrected.quaternion()) == pytest.approx(1.0)


def test_quaternion_stays_normalized_over_many_updates():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(*LEVEL)
    for _ in range(150):
        ekf.update(0.3, -0.2, 0.5, 0.5, 0.2, 9.7, dt=0.01)
    assert norm(ekf.quaternion()) == pytest.approx(1.0)
    assert all(math.isfinite(c) for c in ekf.gyro_bias())


def test_reset_returns_to_initial_state():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.initialize(0.0, 5.0, 8.0)
    ekf.update(0.0, 0.0, 1.0, *OUT_OF_RANGE, dt=0.1)
    ekf.reset()
    assert not ekf.initialized
    assert ekf.quaternion() == (1.0, 0.0, 0.0, 0.0)
    assert ekf.confidence() == pytest.approx(7.0)


def test_set_measurement_noise_is_stored():
    ekf = IMUExtendedKalmanFilter(clock=FakeClock())
    ekf.set_measurement_noise(2.5)
    ekf.set_process_noise(0.02, 0.003)
    assert (ekf.r_accel, ekf.q_angle, ekf.q_bias) == (2.5, 0.02, 0.003)