"""Model-rocket flight computer logic: Kalman filtering, flight-phase detection, telemetry packets and buzzer melodies."""

__version__ = "0.1.0"