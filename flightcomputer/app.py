"""Main flight computer loop tying sensors, flight logic, buzzer and radio together."""

import dataclasses
import time

from .altimeter import SensorError
from .buzzer import Note, SongType
from .config import (
    BMP_ALTITUDE_Q_ANGLE,
    BMP_ALTITUDE_Q_VELOCITY,
    BMP_ALTITUDE_R_MEASURE,
    BMP_TEMP_Q_ANGLE,
    BMP_TEMP_Q_VELOCITY,
    BMP_TEMP_R_MEASURE,
    DEFAULT_SEA_LEVEL_PRESSURE,
    GPS_BAUD_RATE,
    LORA_FREQUENCY,
    MPU_ACCEL_Q_ANGLE,
    MPU_ACCEL_Q_VELOCITY,
    MPU_ACCEL_R_MEASURE,
    MPU_INTERRUPT_PIN,
    MPU_ORIENTATION_EKF_Q_ANGLE,
    MPU_ORIENTATION_EKF_Q_BIAS,
    MPU_ORIENTATION_EKF_R_ACCEL,
    OUTPUT_INTERVAL,
    VOLTAGE_PIN_0,
    VOLTAGE_PIN_1,
    adc_to_voltage,
)
from .flight import FlightState

INTERRUPT_CHECK_INTERVAL = 2000  # ms
_DEBUG_EVERY = 5

_STATE_MESSAGES = {
    FlightState.GROUND: ("GROUND",),
    FlightState.BOOST: ("BOOST - Launch Detected! 🔥",),
    FlightState.COAST: ("COAST - Motor Burnout 🌙",),
    FlightState.APOGEE: ("APOGEE - Maximum Altitude Reached! 🎯",),
    FlightState.DESCENT: (
        "DESCENT - Landing! 🪂",
        "🎵 Playing Tetris Theme for Safe Landing!",
    ),
}


def _millis():
    return time.monotonic_ns() // 1_000_000


@dataclasses.dataclass
class SensorData:
    """One snapshot of every sensor the flight computer reads."""

    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    acc_x: float = 0.0
    acc_y: float = 0.0
    acc_z: float = 0.0
    temperature: float = 0.0
    altitude: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    satellites: int = 0
    voltage0: float = 0.0
    voltage1: float = 0.0


class FlightComputer:
    """Runs the flight computer: initialisation and one pass of the main loop.

    ``imu`` provides ``initialize() -> bool``, ``handle_interrupt()``,
    ``set_orientation_ekf_params(q_angle, q_bias, r_accel)``,
    ``set_acceleration_filter_params(q_angle, q_velocity, r_measure)``,
    ``gyro_bias() -> (x, y, z)``, ``filter_confidence()``, and the
    attributes ``ready``, ``yaw``, ``pitch``, ``roll``, ``accel_x``,
    ``accel_y``, ``accel_z``, ``raw_yaw``, ``raw_pitch``, ``raw_roll``,
    ``raw_accel_x``, ``raw_accel_y``, ``raw_accel_z``, ``interrupt_count``,
    ``packet_count`` and ``overflow_count``.

    ``gps`` provides ``initialize_with_lock(baud_rate) -> bool``,
    ``update()``, ``has_valid_location()`` and the attributes ``ready``,
    ``latitude``, ``longitude`` and ``satellites``.

    ``read_adc(channel)`` returns a raw ADC reading, ``clock`` returns the
    time in milliseconds and ``output`` receives each line of status text.
    """

    def __init__(
        self,
        flight_controller,
        buzzer,
        altimeter,
        telemetry,
        imu,
        gps,
        read_adc,
        clock=None,
        output=None,
    ):
        self.flight_controller = flight_controller
        self.buzzer = buzzer
        self.altimeter = altimeter
        self.telemetry = telemetry
        self.imu = imu
        self.gps = gps
        self._read_adc = read_adc
        self._clock = clock if clock is not None else _millis
        self._output = output if output is not None else print

        self.sensor_data = SensorData()
        self.last_flight_state = FlightState.GROUND
        self._last_output_time = 0
        self._last_interrupt_check = 0
        self._last_interrupt_count = 0
        self._status_counter = 0

    def _delay(self, ms):
        # A silent tone on the buzzer waits for the given time.
        self.buzzer.play_tone(0, ms)

    def _report(self, name, ok):
        self._output(f"{name}: {'✓ Success' if ok else '✗ Failed'}")

    def initialize_components(self):
        """Bring up every component; returns whether all of them started.

        When any component fails the error warning is played.
        """
        self._output("=== Rocket Flight Computer Initialization ===")
        all_ok = True

        self.flight_controller.begin()

        self.buzzer.stop_tone()
        self._report("Buzzer", True)

        if self.imu.initialize():
            self._report("MPU6050", True)
            self.imu.set_orientation_ekf_params(
                MPU_ORIENTATION_EKF_Q_ANGLE,
                MPU_ORIENTATION_EKF_Q_BIAS,
                MPU_ORIENTATION_EKF_R_ACCEL,
            )
            self.imu.set_acceleration_filter_params(
                MPU_ACCEL_Q_ANGLE, MPU_ACCEL_Q_VELOCITY, MPU_ACCEL_R_MEASURE
            )
            self._output("  Enhanced IMU EKF configured")
        else:
            self._report("MPU6050", False)
            all_ok = False

        try:
            self.altimeter.initialize()
        except SensorError as exc:
            self._report("BMP280", False)
            self._output(f"  {exc}")
            all_ok = False
        else:
            self._report("BMP280", True)
            self.altimeter.set_sea_level_pressure(DEFAULT_SEA_LEVEL_PRESSURE)
            self.altimeter.set_altitude_filter_params(
                BMP_ALTITUDE_Q_ANGLE, BMP_ALTITUDE_Q_VELOCITY, BMP_ALTITUDE_R_MEASURE
            )
            self.altimeter.set_temperature_filter_params(
                BMP_TEMP_Q_ANGLE, BMP_TEMP_Q_VELOCITY, BMP_TEMP_R_MEASURE
            )
            self._output("  Kalman filters configured")

        gps_ok = bool(self.gps.initialize_with_lock(GPS_BAUD_RATE))
        self._report("GPS", gps_ok)
        all_ok = all_ok and gps_ok

        try:
            self.telemetry.initialize(LORA_FREQUENCY)
        except ConnectionError as exc:
            self._report("LoRa", False)
            self._output(f"  {exc}")
            all_ok = False
        else:
            self._report("LoRa", True)
            self.telemetry.transmission_interval = OUTPUT_INTERVAL

        if not all_ok:
            self._output("⚠️ Some sensors failed! Playing error warning...")
            self.buzzer.play_song(SongType.ERROR_WARNING)
            self._delay(500)

        self._output("")
        self._output("=== Ready for Flight! ===")
        self._output(
            "Data format: State Yaw Pitch Roll VAcc VVel V0 V1 Temp Alt MaxAlt GPS"
        )
        self._output("")

        self._last_output_time = self._clock()
        return all_ok

    def step(self):
        """Run one pass of the main loop."""
        self.imu.handle_interrupt()
        self.altimeter.update()
        self.gps.update()

        if self.telemetry.ready:
            self.telemetry.receive()

        self._check_interrupts()

        if self._clock() - self._last_output_time >= OUTPUT_INTERVAL:
            self.read_sensor_data()
            self.update_flight_controller()
            self._output(self.format_status())
            self._transmit_telemetry()
            self._last_output_time = self._clock()

        self.imu.handle_interrupt()

    def _check_interrupts(self):
        if self._clock() - self._last_interrupt_check < INTERRUPT_CHECK_INTERVAL:
            return
        count = self.imu.interrupt_count
        if count == self._last_interrupt_count:
            self._output("⚠️ WARNING: No MPU interrupts detected in last 2 seconds!")
            self._output(f"   MPU Ready: {'YES' if self.imu.ready else 'NO'}")
            self._output(f"   Interrupt Pin {MPU_INTERRUPT_PIN}")
        self._last_interrupt_count = count
        self._last_interrupt_check = self._clock()

    def read_sensor_data(self):
        """Collect a fresh snapshot of all sensors and return it."""
        altimeter_ready = self.altimeter.ready
        gps_valid = self.gps.has_valid_location()
        self.sensor_data = SensorData(
            yaw=self.imu.yaw,
            pitch=self.imu.pitch,
            roll=self.imu.roll,
            acc_x=self.imu.accel_x,
            acc_y=self.imu.accel_y,
            acc_z=self.imu.accel_z,
            temperature=self.altimeter.temperature if altimeter_ready else 0.0,
            altitude=self.altimeter.altitude if altimeter_ready else 0.0,
            latitude=self.gps.latitude if gps_valid else 0.0,
            longitude=self.gps.longitude if gps_valid else 0.0,
            satellites=self.gps.satellites if self.gps.ready else 0,
            voltage0=adc_to_voltage(self._read_adc(VOLTAGE_PIN_0)),
            voltage1=adc_to_voltage(self._read_adc(VOLTAGE_PIN_1)),
        )
        return self.sensor_data

    def update_flight_controller(self):
        """Feed the latest snapshot to the flight controller and react to phase changes."""
        data = self.sensor_data
        self.flight_controller.update(
            data.altitude, data.pitch, data.roll, data.acc_x, data.acc_y, data.acc_z
        )
        new_state = self.flight_controller.state
        if new_state is not self.last_flight_state:
            self.handle_state_change(new_state)
            self.last_flight_state = new_state

    def _transmit_telemetry(self):
        if not (self.telemetry.ready and self.telemetry.should_transmit()):
            return
        data = self.sensor_data
        self.telemetry.transmit_sensor_data(
            data.yaw,
            data.pitch,
            data.roll,
            data.acc_x,
            data.acc_y,
            data.acc_z,
            data.temperature,
            data.altitude,
            data.latitude,
            data.longitude,
            data.satellites,
            data.voltage0,
            data.voltage1,
        )

    def format_status(self):
        """One status line; every fifth line also carries filter diagnostics."""
        data = self.sensor_data
        imu = self.imu
        parts = [
            f"State: {self.flight_controller.state.name}",
            f" | RAW - Y:{imu.raw_yaw:.2f} P:{imu.raw_pitch:.2f} R:{imu.raw_roll:.2f}"
            f" AccX:{imu.raw_accel_x:.3f} AccY:{imu.raw_accel_y:.3f}"
            f" AccZ:{imu.raw_accel_z:.3f}",
            f" | EKF - Y:{data.yaw:.2f} P:{data.pitch:.2f} R:{data.roll:.2f}"
            f" AccX:{data.acc_x:.3f} AccY:{data.acc_y:.3f} AccZ:{data.acc_z:.3f}",
        ]

        self._status_counter += 1
        if self._status_counter >= _DEBUG_EVERY:
            self._status_counter = 0
            bias_x, bias_y, bias_z = imu.gyro_bias()
            confidence = imu.filter_confidence()
            parts.append(
                f" | EKF Status - {'Ready' if imu.ready else 'NOT_READY'}"
                f" Bias[{bias_x:.4f},{bias_y:.4f},{bias_z:.4f}]"
                f" Conf:{confidence:.2f}"
                f" | Debug - Interrupts:{imu.interrupt_count}"
                f" Packets:{imu.packet_count} Overflows:{imu.overflow_count}"
            )

        parts.append(
            f" | Flight - VAcc:{self.flight_controller.vertical_acceleration:.2f}"
            f" VVel:{self.flight_controller.vertical_velocity:.2f}"
        )
        if self.altimeter.ready:
            parts.append(f" Alt:{data.altitude:.1f}m Temp:{data.temperature:.1f}°C")
        parts.append(f" | Power - V0:{data.voltage0:.1f}V V1:{data.voltage1:.1f}V")
        return "".join(parts)

    def handle_state_change(self, new_state):
        """Announce a new flight phase and play its notification."""
        new_state = FlightState(new_state)
        first, *rest = _STATE_MESSAGES[new_state]
        self._output(f"🚀 STATE CHANGE: {first}")
        for line in rest:
            self._output(line)

        if new_state is FlightState.GROUND:
            self.buzzer.play_tone(Note.C4, 200)
        elif new_state is FlightState.COAST:
            self._delay(50)
        elif new_state is FlightState.DESCENT:
            self.buzzer.play_song(SongType.TETRIS)