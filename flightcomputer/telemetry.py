"""Binary sensor telemetry packets and the radio link that carries them."""

import dataclasses
import logging
import struct
import time
from functools import reduce
from operator import xor

from .config import (
    LORA_CODING_RATE,
    LORA_DEVICE_ID,
    LORA_FREQUENCY,
    LORA_SIGNAL_BANDWIDTH,
    LORA_SPREADING_FACTOR,
    LORA_TX_POWER,
)

_log = logging.getLogger(__name__)

# timestamp, yaw, pitch, roll, acc x/y/z, temperature, altitude,
# latitude, longitude, voltage0, voltage1, satellites, device id,
# packet count, checksum -- little-endian and unpadded.
_FORMAT = struct.Struct("<I8f2d2fBBHB")
PACKET_SIZE = _FORMAT.size

DEFAULT_TRANSMISSION_INTERVAL = 5000  # ms


def _millis():
    return time.monotonic_ns() // 1_000_000


class PacketError(ValueError):
    """A packet has the wrong size, a bad checksum or unencodable fields."""


def compute_checksum(data):
    """XOR of every byte in ``data``."""
    return reduce(xor, bytes(data), 0)


@dataclasses.dataclass
class SensorPacket:
    """One telemetry sample as sent over the radio."""

    timestamp: int
    yaw: float
    pitch: float
    roll: float
    acc_x: float
    acc_y: float
    acc_z: float
    temperature: float
    altitude: float
    latitude: float
    longitude: float
    voltage0: float
    voltage1: float
    satellites: int
    device_id: int
    packet_count: int

    def pack(self):
        """Encode the packet, with its checksum as the final byte."""
        try:
            body = _FORMAT.pack(
                self.timestamp,
                self.yaw,
                self.pitch,
                self.roll,
                self.acc_x,
                self.acc_y,
                self.acc_z,
                self.temperature,
                self.altitude,
                self.latitude,
                self.longitude,
                self.voltage0,
                self.voltage1,
                self.satellites,
                self.device_id,
                self.packet_count,
                0,
            )
        except struct.error as exc:
            raise PacketError(f"cannot encode packet: {exc}") from exc
        return body[:-1] + bytes([compute_checksum(body[:-1])])

    @classmethod
    def unpack(cls, data):
        """Decode ``data``; raises PacketError on bad size or checksum."""
        data = bytes(data)
        if len(data) != PACKET_SIZE:
            raise PacketError(
                f"invalid packet size ({len(data)} bytes, expected {PACKET_SIZE})"
            )
        *fields, checksum = _FORMAT.unpack(data)
        if compute_checksum(data[:-1]) != checksum:
            raise PacketError("checksum validation failed")
        return cls(*fields)


def format_packet(packet, rssi, snr):
    """One-line human readable summary of a received packet."""
    text = (
        f"LoRa RX [{packet.device_id}]: "
        f"Y:{packet.yaw:.1f} P:{packet.pitch:.1f} R:{packet.roll:.1f} "
        f"T:{packet.temperature:.1f}°C A:{packet.altitude:.1f}m "
        f"V0:{packet.voltage0:.2f}V V1:{packet.voltage1:.2f}V"
    )
    if packet.satellites > 0:
        text += (
            f" GPS:{packet.latitude:.6f},{packet.longitude:.6f}"
            f"({packet.satellites}sat)"
        )
    text += f" #{packet.packet_count} RSSI:{rssi} SNR:{snr:.1f}"
    return text


class TelemetryLink:
    """Sends and receives sensor packets through a LoRa-style radio.

    ``radio`` provides ``begin(frequency) -> bool``,
    ``configure(spreading_factor, bandwidth, coding_rate, tx_power)``,
    ``listen()``, ``idle()``, ``send(data) -> bool``,
    ``read_packet() -> bytes | None``, ``packet_rssi()`` and
    ``packet_snr()``.  ``clock`` returns the time in milliseconds.
    """

    def __init__(self, radio, device_id=LORA_DEVICE_ID, clock=None):
        self._radio = radio
        self.device_id = device_id
        self._clock = clock if clock is not None else _millis
        self.transmission_interval = DEFAULT_TRANSMISSION_INTERVAL
        self._packet_counter = 0
        self._last_transmission = 0
        self._initialized = False
        self._receiving = False

    @property
    def ready(self):
        return self._initialized

    @property
    def packet_count(self):
        """Number of packets sent so far (wraps at 16 bits)."""
        return self._packet_counter

    @property
    def last_rssi(self):
        return self._radio.packet_rssi()

    @property
    def last_snr(self):
        return self._radio.packet_snr()

    def initialize(
        self,
        frequency=LORA_FREQUENCY,
        spreading_factor=LORA_SPREADING_FACTOR,
        bandwidth=LORA_SIGNAL_BANDWIDTH,
        coding_rate=LORA_CODING_RATE,
        tx_power=LORA_TX_POWER,
    ):
        """Start the radio and begin listening; raises ConnectionError on failure."""
        _log.info("initializing LoRa at %.1f MHz", frequency / 1_000_000)
        if not self._radio.begin(frequency):
            raise ConnectionError("LoRa initialization failed")
        self._radio.configure(spreading_factor, bandwidth, coding_rate, tx_power)
        self._initialized = True
        _log.info(
            "LoRa configured: %.1f MHz, SF%d, %.1f kHz, CR 4/%d, %d dBm, "
            "device %d, %d-byte packets",
            frequency / 1_000_000,
            spreading_factor,
            bandwidth / 1000,
            coding_rate,
            tx_power,
            self.device_id,
            PACKET_SIZE,
        )
        self.start_receiving()

    def start_receiving(self):
        if self._initialized and not self._receiving:
            self._radio.listen()
            self._receiving = True

    def stop_receiving(self):
        if self._initialized and self._receiving:
            self._radio.idle()
            self._receiving = False

    def transmit_sensor_data(
        self,
        yaw,
        pitch,
        roll,
        acc_x,
        acc_y,
        acc_z,
        temperature,
        altitude,
        latitude,
        longitude,
        satellites,
        voltage0,
        voltage1,
    ):
        """Send one sample; returns whether the radio accepted it."""
        if not self._initialized:
            return False

        self._packet_counter = (self._packet_counter + 1) & 0xFFFF
        packet = SensorPacket(
            timestamp=self._clock() & 0xFFFFFFFF,
            yaw=yaw,
            pitch=pitch,
            roll=roll,
            acc_x=acc_x,
            acc_y=acc_y,
            acc_z=acc_z,
            temperature=temperature,
            altitude=altitude,
            latitude=latitude,
            longitude=longitude,
            voltage0=voltage0,
            voltage1=voltage1,
            satellites=satellites,
            device_id=self.device_id,
            packet_count=self._packet_counter,
        )
        data = packet.pack()

        self.stop_receiving()
        success = bool(self._radio.send(data))
        if success:
            self._last_transmission = self._clock()
            _log.info(
                "LoRa TX [%d]: packet #%d (%d bytes)",
                self.device_id,
                self._packet_counter,
                len(data),
            )
        else:
            _log.warning("LoRa transmission failed")
        self.start_receiving()
        return success

    def should_transmit(self):
        """True once the transmission interval has passed since the last send."""
        return self._clock() - self._last_transmission >= self.transmission_interval

    def receive(self):
        """Return a valid packet from another device, or None.

        Malformed packets are logged and dropped; packets carrying this
        link's own device id are ignored.
        """
        if not (self._initialized and self._receiving):
            return None
        data = self._radio.read_packet()
        if not data:
            return None
        try:
            packet = SensorPacket.unpack(data)
        except PacketError as exc:
            _log.warning("LoRa RX: %s", exc)
            return None
        if packet.device_id == self.device_id:
            return None
        _log.info(
            "%s", format_packet(packet, self._radio.packet_rssi(), self._radio.packet_snr())
        )
        return packet