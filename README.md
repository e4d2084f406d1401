# flightcomputer

This package holds the logic of a small model-rocket flight computer as plain
Python objects. It does not talk to hardware itself. You pass each device in
from outside: a pressure sensor, a radio, a buzzer output, an ADC reader, a
relay callback and a millisecond clock. The same code can then drive real
devices, a simulator or a test.

## Modules

- `flightcomputer.config`: the flight computer's constants, such as intervals,
  pins, filter noise parameters, detection thresholds and radio settings.
  `adc_to_voltage(adc_value)` turns a raw 10-bit ADC reading into the battery
  voltage before the voltage divider.
- `flightcomputer.kalman`: `KalmanFilter`, a one-dimensional Kalman filter
  that tracks a value and its rate of change.
  - `update(measurement, dt=0.0)` returns the new estimate. When `dt` is
    zero or negative, the time step is read from the clock and limited to
    0.001–1 s.
  - Other members: `state`, `velocity`, `uncertainty`, `initialized`,
    `initialize()`, `reset()`, `set_process_noise()` and
    `set_measurement_noise()`.
- `flightcomputer.ekf`: `IMUExtendedKalmanFilter`, a quaternion extended
  Kalman filter. It fuses gyroscope rates (rad/s) with accelerometer readings
  (m/s²) and also estimates the gyroscope bias.
  - The accelerometer correction is used only when the magnitude of the
    reading lies between 8.5 and 11 m/s².
  - `euler_angles()` returns `(yaw, pitch, roll)` in degrees.
    `quaternion()`, `gyro_bias()` and `confidence()` return the other parts
    of the estimate; `confidence()` is the trace of the covariance.
  - Helper functions: `quaternion_multiply`, `rotate_vector` and
    `quaternion_to_euler`.
- `flightcomputer.altimeter`: `Altimeter`, which wraps a barometric sensor.
  - It keeps filtered `altitude` and `temperature` alongside `raw_altitude`
    and `raw_temperature`.
  - `initialize()` tries the addresses 0x76 and 0x77. It raises
    `SensorError` when no sensor answers or the first reading is invalid.
  - `update()` logs invalid readings and skips them. If the altimeter is not
    yet initialised, it tries to initialise it first.
- `flightcomputer.flight`: `FlightState` and `FlightController`.
  - `FlightController` is a state machine that moves from GROUND to BOOST,
    COAST, APOGEE and DESCENT.
  - At apogee it calls the relay callback with `True`.
  - `vertical_acceleration(acc_x, acc_y, acc_z, pitch, roll)` returns the
    orientation-compensated acceleration in g, with one g removed.
- `flightcomputer.buzzer`: `Note` frequencies, `SongType` and `Buzzer`.
  - `SongType` covers the notification melodies and a few well-known tunes.
  - `note_schedule(melody, durations, tempo)` yields
    `(frequency, sound_ms, duration_ms)` for each note.
  - `Buzzer.play_song()` plays a song synchronously through an output
    object. That object must provide `tone()`, `no_tone()` and `sleep()`.
- `flightcomputer.telemetry`: radio frames and the link that carries them.
  - `SensorPacket` is a packed little-endian radio frame of `PACKET_SIZE`
    (65) bytes, with an XOR checksum as the last byte.
  - `SensorPacket.unpack()` raises `PacketError` when the size or the
    checksum is wrong.
  - `TelemetryLink` sends and receives packets through a radio object. Its
    `initialize()` raises `ConnectionError` when the radio does not start.
    `receive()` drops malformed packets and ignores the link's own.
  - The module also has `compute_checksum()` and `format_packet()`.
- `flightcomputer.app`: `FlightComputer` ties all the parts together, and
  `SensorData` holds one snapshot of the readings.
  - `initialize_components()` starts every part and returns whether all of
    them came up. When one fails, it plays the error melody.
  - Each call to `step()` runs one pass of the main loop. Sensor data is
    read, the flight phase updated and a status line emitted every 100 ms.

## Filtering a signal

```python
from flightcomputer.kalman import KalmanFilter

altitude_filter = KalmanFilter(0.01, 0.1, 0.5)
for reading in (0.0, 0.4, 1.1, 1.9):
    print(altitude_filter.update(reading, 0.1))
```

## Detecting flight phases

```python
from flightcomputer.flight import FlightController, FlightState

controller = FlightController(relay=lambda on: print("relay", on), clock=clock)
controller.begin()
controller.update(altitude, pitch, roll, acc_x, acc_y, acc_z)
if controller.state is FlightState.APOGEE:
    ...
```

The arguments to `update()` are:

- `altitude` in metres;
- `pitch` and `roll` in degrees;
- `acc_x`, `acc_y` and `acc_z` in g.

`clock` is any callable that returns the time in milliseconds.

## Telemetry frames

```python
from flightcomputer.telemetry import SensorPacket

packet = SensorPacket(
    timestamp=1000, yaw=0.0, pitch=1.5, roll=-0.5,
    acc_x=0.0, acc_y=0.0, acc_z=1.0, temperature=21.0, altitude=120.0,
    latitude=0.0, longitude=0.0, voltage0=7.4, voltage1=7.4,
    satellites=0, device_id=1, packet_count=1,
)
frame = packet.pack()               # 65 bytes, checksum filled in
same = SensorPacket.unpack(frame)   # raises PacketError on a bad size or checksum
```

## What the package does not do

The package contains no drivers and no command to run:

- There is no code to read an inertial measurement unit or a GPS receiver.
  `FlightComputer` expects `imu` and `gps` objects with the members described
  in its docstring, and you supply them.
- The same holds for the barometric sensor behind `Altimeter`, the radio
  behind `TelemetryLink` and the buzzer output.
- Running the flight computer means building these objects and calling
  `FlightComputer.step()` in your own loop.

## Tests

```
pip install -e .[test]
pytest
```