"""Configuration constants for the flight computer."""

# Timing
OUTPUT_INTERVAL = 100  # data output interval (ms)
SERIAL_BAUD_RATE = 115200

# Communication
GPS_BAUD_RATE = 9600
LORA_FREQUENCY = 915_000_000  # Hz
LORA_DEVICE_ID = 1

# Pins (analog channels 0 and 1 for battery monitoring)
VOLTAGE_PIN_0 = 0
VOLTAGE_PIN_1 = 1
RELAY_PIN = 7
MPU_INTERRUPT_PIN = 3
BUZZER_PIN = 2

# Voltage measurement
ADC_REFERENCE_VOLTAGE = 3.3
ADC_RESOLUTION = 1023.0
VOLTAGE_DIVIDER_RATIO = (2.5 / 1.9) * 2.0

# Sensors
DEFAULT_SEA_LEVEL_PRESSURE = 1013.25  # hPa
MPU6050_ADDRESS = 0x69
MPU_DATA_UPDATE_INTERVAL = 100  # ms
GPS_LOCK_TIMEOUT = 60_000  # ms
GPS_STATUS_UPDATE_INTERVAL = 5_000  # ms

# Orientation EKF
MPU_ORIENTATION_EKF_Q_ANGLE = 0.001
MPU_ORIENTATION_EKF_Q_BIAS = 0.0001
MPU_ORIENTATION_EKF_R_ACCEL = 0.5

# Acceleration filters
MPU_ACCEL_Q_ANGLE = 0.01
MPU_ACCEL_Q_VELOCITY = 0.1
MPU_ACCEL_R_MEASURE = 0.1

# Barometric altitude filter
BMP_ALTITUDE_Q_ANGLE = 0.01
BMP_ALTITUDE_Q_VELOCITY = 0.1
BMP_ALTITUDE_R_MEASURE = 0.5

# Temperature filter
BMP_TEMP_Q_ANGLE = 0.001
BMP_TEMP_Q_VELOCITY = 0.01
BMP_TEMP_R_MEASURE = 0.1

# Launch detection
DEFAULT_LAUNCH_ACCEL_THRESHOLD = 2.0  # g
DEFAULT_LAUNCH_ALTITUDE_THRESHOLD = 10.0  # m

# Apogee detection
DEFAULT_MIN_APOGEE_ALTITUDE = 20.0  # m
DEFAULT_DESCENT_ALTITUDE_THRESHOLD = 2.0  # m
DEFAULT_VERTICAL_VELOCITY_THRESHOLD = -1.0  # m/s

# Averaging buffers
ALTITUDE_BUFFER_SIZE = 15
ACCEL_BUFFER_SIZE = 10

# Phase durations (ms)
BOOST_MIN_DURATION = 500
COAST_MIN_DURATION = 500
DESCENT_CONFIRM_TIME = 200

# LoRa radio
LORA_SPREADING_FACTOR = 7
LORA_SIGNAL_BANDWIDTH = 125_000  # Hz
LORA_CODING_RATE = 5
LORA_TX_POWER = 17  # dBm


def adc_to_voltage(adc_value):
    """Convert a raw ADC reading to the battery voltage before the divider."""
    return (adc_value * ADC_REFERENCE_VOLTAGE / ADC_RESOLUTION) * VOLTAGE_DIVIDER_RATIO