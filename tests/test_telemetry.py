import pytest

from flightcomputer.telemetry import (
    PACKET_SIZE,
    PacketError,
    SensorPacket,
    TelemetryLink,
    compute_checksum,
    format_packet,
)


class FakeRadio:
    def __init__(self, begin_ok=True, send_ok=True):
        self.begin_ok = begin_ok
        self.send_ok = send_ok
        self.sent = []
        self.incoming = []
        self.mode = None
        self.configured = None

    def begin(self, frequency):
        self.frequency = frequency
        return self.begin_ok

    def configure(self, spreading_factor, bandwidth, coding_rate, tx_power):
        self.configured = (spreading_factor, bandwidth, coding_rate, tx_power)

    def listen(self):
        self.mode = "listen"

    def idle(self):
        self.mode = "idle"

    def send(self, data):
        self.sent.append(data)
        return self.send_ok

    def read_packet(self):
        return self.incoming.pop(0) if self.incoming else None

    def packet_rssi(self):
        return -42

    def packet_snr(self):
        return 9.5


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def make_packet(**overrides):
    values = dict(
        timestamp=1234,
        yaw=1.5,
        pitch=-2.25,
        roll=0.5,
        acc_x=0.125,
        acc_y=-0.25,
        acc_z=9.75,
        temperature=21.5,
        altitude=100.25,
        latitude=45.5,
        longitude=-122.75,
        voltage0=3.75,
        voltage1=4.0,
        satellites=7,
        device_id=2,
        packet_count=17,
    )
    values.update(overrides)
    return SensorPacket(**values)


def send_args(**overrides):
    values = dict(
        yaw=1.5, pitch=2.5, roll=3.5, acc_x=0.5, acc_y=0.25, acc_z=1.0,
        temperature=20.0, altitude=50.0, latitude=10.5, longitude=20.25,
        satellites=5, voltage0=3.5, voltage1=3.75,
    )
    values.update(overrides)
    return values


def test_packet_size_is_packed_layout():
    assert PACKET_SIZE == 65
    assert len(make_packet().pack()) == PACKET_SIZE


def test_compute_checksum_is_xor():
    assert compute_checksum(b"") == 0
    assert compute_checksum(b"\x01\x02\x04") == 7
    assert compute_checksum(b"\xaa\xaa") == 0


def test_pack_unpack_round_trip():
    packet = make_packet()
    assert SensorPacket.unpack(packet.pack()) == packet


def test_packed_layout_invariants():
    data = make_packet().pack()
    assert data[:4] == (1234).to_bytes(4, "little")
    assert data[-1] == compute_checksum(data[:-1])
    assert data[-3:-1] == (17).to_bytes(2, "little")
    assert data[-4] == 2
    assert data[-5] == 7


def test_unpack_rejects_wrong_size():
    data = make_packet().pack()
    with pytest.raises(PacketError):
        SensorPacket.unpack(data[:-1])
    with pytest.raises(PacketError):
        SensorPacket.unpack(data + b"\x00")


def test_unpack_rejects_bad_checksum():
    data = bytearray(make_packet().pack())
    data[5] ^= 0xFF
    with pytest.raises(PacketError):
        SensorPacket.unpack(bytes(data))


def test_pack_rejects_out_of_range_field():
    with pytest.raises(PacketError):
        make_packet(satellites=300).pack()


def test_format_packet_with_gps():
    text = format_packet(make_packet(), -42, 9.5)
    assert text.startswith("LoRa RX [2]: Y:1.5 ")
    assert "GPS:45.500000,-122.750000(7sat)" in text
    assert text.endswith("#17 RSSI:-42 SNR:9.5")


def test_format_packet_without_gps():
    text = format_packet(make_packet(satellites=0), -42, 9.5)
    assert "GPS:" not in text
    assert "V0:3.75V V1:4.00V" in text


def test_initialize_configures_and_listens():
    radio = FakeRadio()
    link = TelemetryLink(radio, device_id=1, clock=FakeClock())
    link.initialize()
    assert link.ready is True
    assert radio.frequency == 915_000_000
    assert radio.configured == (7, 125_000, 5, 17)
    assert radio.mode == "listen"


def test_initialize_failure_raises():
    link = TelemetryLink(FakeRadio(begin_ok=False), device_id=1, clock=FakeClock())
    with pytest.raises(ConnectionError):
        link.initialize()
    assert link.ready is False


def test_transmit_before_initialize_returns_false():
    radio = FakeRadio()
    link = TelemetryLink(radio, device_id=1, clock=FakeClock())
    assert link.transmit_sensor_data(**send_args()) is False
    assert radio.sent == []


def test_transmit_sends_decodable_packets():
    radio = FakeRadio()
    clock = FakeClock(500)
    link = TelemetryLink(radio, device_id=3, clock=clock)
    link.initialize()
    assert link.transmit_sensor_data(**send_args()) is True
    assert link.transmit_sensor_data(**send_args(altitude=60.0)) is True
    first, second = (SensorPacket.unpack(d) for d in radio.sent)
    assert first.packet_count == 1
    assert second.packet_count == 2
    assert first.device_id == 3
    assert first.timestamp == 500
    assert second.altitude == 60.0
    assert link.packet_count == 2
    assert radio.mode == "listen"


def test_transmit_failure_reported():
    link = TelemetryLink(FakeRadio(send_ok=False), device_id=1, clock=FakeClock())
    link.initialize()
    assert link.transmit_sensor_data(**send_args()) is False


def test_should_transmit_follows_interval():
    clock = FakeClock(0)
    link = TelemetryLink(FakeRadio(), device_id=1, clock=clock)
    link.initialize()
    link.transmission_interval = 100
    clock.now = 1000
    link.transmit_sensor_data(**send_args())
    clock.now = 1099
    assert link.should_transmit() is False
    clock.now = 1100
    assert link.should_transmit() is True


def test_receive_returns_packet_from_other_device():
    radio = FakeRadio()
    link = TelemetryLink(radio, device_id=1, clock=FakeClock())
    link.initialize()
    packet = make_packet(device_id=2)
    radio.incoming.append(packet.pack())
    assert link.receive() == packet


def test_receive_ignores_own_and_invalid_packets():
    radio = FakeRadio()
    link = TelemetryLink(radio, device_id=2, clock=FakeClock())
    link.initialize()
    radio.incoming.append(make_packet(device_id=2).pack())
    assert link.receive() is None
    radio.incoming.append(b"\x00" * 10)
    assert link.receive() is None
    corrupt = bytearray(make_packet(device_id=5).pack())
    corrupt[-1] ^= 1
    radio.incoming.append(bytes(corrupt))
    assert link.receive() is None
    assert link.receive() is None


def test_receive_requires_listening():
    radio = FakeRadio()
    link = TelemetryLink(radio, device_id=1, clock=FakeClock())
    radio.incoming.append(make_packet(device_id=2).pack())
    assert link.receive() is None
    link.initialize()
    link.stop_receiving()
    assert link.receive() is None
    assert len(radio.incoming) == 1