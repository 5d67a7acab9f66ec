"""Tests for session module."""

import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

import session
from aggregator import AggregateState
from composition import ImpedanceSource, Sex, UserProfile
from decode import Source
from session import (
    STEP_ON_HINT,
    WAITING_STATUS,
    ScaleNotFound,
    ScaleSession,
    classify_characteristic,
    find_scale,
)

MALE = UserProfile(age=30, height_cm=170, sex=Sex.MALE)

WEIGHT_PACKET = bytes([0x00, 0x00, 0x40, 0x38])  # 72.0 kg, SI
BIA_PACKET = bytes([0x08, 0x02])  # 520 ohm


class Recorder:
    """Collects everything a session hands to its collaborators."""

    def __init__(self):
        self.results = []
        self.statuses = []
        self.records = []
        self.profile_reads = 0

    def profile(self):
        self.profile_reads += 1
        return MALE

    def session(self, **kwargs):
        return ScaleSession(
            profile_provider=self.profile,
            on_result=lambda composition, state: self.results.append((composition, state)),
            on_status=self.statuses.append,
            on_log_record=self.records.append,
            **kwargs,
        )


class TestClassifyCharacteristic:
    """Tests for classify_characteristic function."""

    def test_known_characteristics(self):
        assert classify_characteristic("00002a9d-0000-1000-8000-00805f9b34fb") is Source.WEIGHT
        assert classify_characteristic("0000FFB2-0000-1000-8000-00805F9B34FB") is Source.BIA
        assert classify_characteristic("0000ffb3-0000-1000-8000-00805f9b34fb") is Source.VENDOR

    def test_unknown_characteristic(self):
        assert classify_characteristic("00002a19-0000-1000-8000-00805f9b34fb") is None


class TestHandleNotification:
    """Tests for ScaleSession.handle_notification."""

    def test_weight_reading(self):
        recorder = Recorder()
        session = recorder.session()
        session.begin()

        composition = session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)

        assert composition is not None
        assert composition.weight_kg == 72.0
        assert composition.impedance_source is ImpedanceSource.DEFAULT
        assert recorder.results == [(composition, session.state)]
        assert session.status == WAITING_STATUS

    def test_log_record_per_reading(self):
        recorder = Recorder()
        session = recorder.session()
        session.begin()

        session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)

        [record] = recorder.records
        assert record["weight_kg"] == pytest.approx(72.0)
        assert record["impedance_ohm"] == 500.0
        assert record["impedance_source"] == "default"
        assert record["profile"] == MALE.snapshot()
        assert "timestamp" in record

    def test_impedance_then_weight(self):
        recorder = Recorder()
        session = recorder.session()
        session.begin()

        first = session.handle_notification(Source.BIA, BIA_PACKET)
        second = session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)

        assert first is None
        assert recorder.results[0][1].impedance_ohm == 520.0
        assert second.impedance_ohm == 520.0
        assert second.impedance_source is ImpedanceSource.MEASURED

    def test_profile_read_every_pass(self):
        recorder = Recorder()
        session = recorder.session()
        session.begin()

        session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)
        session.handle_notification(Source.BIA, BIA_PACKET)

        assert recorder.profile_reads == 2

    def test_no_reading_leaves_state(self):
        recorder = Recorder()
        session = recorder.session()
        session.begin()
        session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)
        before = session.state

        assert session.handle_notification(Source.BIA, b"\x00\x00") is None

        assert session.state == before
        assert len(recorder.records) == 1

    def test_dropped_outside_session(self):
        recorder = Recorder()
        session = recorder.session()

        assert session.handle_notification(Source.WEIGHT, WEIGHT_PACKET) is None
        assert recorder.results == []
        assert recorder.records == []

    def test_end_discards_state(self):
        session = Recorder().session()
        session.begin()
        session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)

        session.end()

        assert session.state is None
        assert not session.is_active


class TestDataTimeout:
    """Tests for the no-data hint."""

    def test_hint_after_timeout(self):
        recorder = Recorder()

        async def scenario():
            session = recorder.session(data_timeout=0.01)
            session.begin()
            await asyncio.sleep(0.05)
            state = session.state
            session.end()
            return state

        state = asyncio.run(scenario())

        assert recorder.statuses == [STEP_ON_HINT]
        assert state == AggregateState()

    def test_reading_resets_timeout(self):
        recorder = Recorder()

        async def scenario():
            session = recorder.session(data_timeout=0.2)
            session.begin()
            await asyncio.sleep(0.1)
            session.handle_notification(Source.WEIGHT, WEIGHT_PACKET)
            await asyncio.sleep(0.15)
            statuses = list(recorder.statuses)
            await asyncio.sleep(0.15)
            session.end()
            return statuses

        before_expiry = asyncio.run(scenario())

        assert STEP_ON_HINT not in before_expiry
        assert recorder.statuses[-1] == STEP_ON_HINT
        assert recorder.results[0][1].weight_kg == pytest.approx(72.0)

    def test_no_hint_after_end(self):
        recorder = Recorder()

        async def scenario():
            session = recorder.session(data_timeout=0.01)
            session.begin()
            session.end()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert recorder.statuses == []


WEIGHT_UUID = "00002a9d-0000-1000-8000-00805f9b34fb"
BIA_UUID = "0000ffb2-0000-1000-8000-00805f9b34fb"
VENDOR_UUID = "0000ffb3-0000-1000-8000-00805f9b34fb"
BATTERY_UUID = "00002a19-0000-1000-8000-00805f9b34fb"


class FakeCharacteristic:
    def __init__(self, uuid, properties=("notify",)):
        self.uuid = uuid
        self.properties = list(properties)


class FakeService:
    def __init__(self, *characteristics):
        self.uuid = "0000ffb0-0000-1000-8000-00805f9b34fb"
        self.characteristics = list(characteristics)


class FakeClient:
    """Stands in for BleakClient; the class attributes configure each test."""

    services = []
    connect_error = None
    failing_uuids = ()
    notify_on_subscribe = {}
    instances = []

    def __init__(self, address, disconnected_callback=None, timeout=None):
        self.address = address
        self.disconnected_callback = disconnected_callback
        self.timeout = timeout
        self.is_connected = False
        self.notifying = []
        self.stopped = []
        self.disconnect_calls = 0
        type(self).instances.append(self)

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        self.is_connected = True

    async def start_notify(self, char, callback):
        if char.uuid in self.failing_uuids:
            raise BleakError("notify not permitted")
        self.notifying.append(char.uuid)
        packet = self.notify_on_subscribe.get(char.uuid)
        if packet is not None:
            callback(char, bytearray(packet))

    async def stop_notify(self, char):
        self.stopped.append(char.uuid)

    async def disconnect(self):
        self.disconnect_calls += 1
        self.is_connected = False


@pytest.fixture
def fake_client(monkeypatch):
    class Client(FakeClient):
        services = []
        connect_error = None
        failing_uuids = ()
        notify_on_subscribe = {}
        instances = []

    monkeypatch.setattr(session, "BleakClient", Client)
    return Client


class TestConnect:
    """Tests for ScaleSession.connect and disconnect."""

    def test_subscribes_known_notify_characteristics(self, fake_client):
        fake_client.services = [
            FakeService(
                FakeCharacteristic(WEIGHT_UUID, ("indicate",)),
                FakeCharacteristic(BIA_UUID),
                FakeCharacteristic(VENDOR_UUID, ("read", "write")),
                FakeCharacteristic(BATTERY_UUID),
            )
        ]
        recorder = Recorder()
        scale = recorder.session()

        asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))

        [client] = fake_client.instances
        assert client.address == "AA:BB:CC:DD:EE:FF"
        assert client.notifying == [WEIGHT_UUID, BIA_UUID]
        assert scale.is_active
        assert recorder.statuses == ["Connecting...", f"Connected to {session.SCALE_NAME}"]

    def test_routes_notifications_during_subscription(self, fake_client):
        fake_client.services = [FakeService(FakeCharacteristic(WEIGHT_UUID))]
        fake_client.notify_on_subscribe = {WEIGHT_UUID: WEIGHT_PACKET}
        recorder = Recorder()
        scale = recorder.session()

        asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))

        [(composition, state)] = recorder.results
        assert composition.weight_kg == 72.0
        assert state.weight_kg == pytest.approx(72.0)
        assert len(recorder.records) == 1

    def test_failed_subscription_is_skipped(self, fake_client):
        fake_client.services = [
            FakeService(FakeCharacteristic(BIA_UUID), FakeCharacteristic(WEIGHT_UUID))
        ]
        fake_client.failing_uuids = (BIA_UUID,)
        recorder = Recorder()
        scale = recorder.session()

        asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))

        assert fake_client.instances[0].notifying == [WEIGHT_UUID]
        assert recorder.statuses[-1] == f"Connected to {session.SCALE_NAME}"

    def test_connection_error_sets_status_and_raises(self, fake_client):
        fake_client.connect_error = BleakError("out of range")
        recorder = Recorder()
        scale = recorder.session()

        with pytest.raises(BleakError, match="out of range"):
            asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))

        assert recorder.statuses == ["Connecting...", "Connection failed: out of range"]
        assert not scale.is_active

    def test_connection_timeout_raises(self, fake_client):
        fake_client.connect_error = asyncio.TimeoutError()
        scale = Recorder().session()

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))

        assert scale.status.startswith("Connection failed")

    def test_finds_scale_when_no_address(self, fake_client, monkeypatch):
        device = object()

        async def find_scale():
            return device

        monkeypatch.setattr(session, "find_scale", find_scale)
        scale = Recorder().session()

        asyncio.run(scale.connect())

        assert fake_client.instances[0].address is device

    def test_disconnect(self, fake_client):
        fake_client.services = [
            FakeService(FakeCharacteristic(WEIGHT_UUID), FakeCharacteristic(BIA_UUID))
        ]
        recorder = Recorder()
        scale = recorder.session()

        async def scenario():
            await scale.connect("AA:BB:CC:DD:EE:FF")
            await scale.disconnect()

        asyncio.run(scenario())

        [client] = fake_client.instances
        assert client.stopped == [WEIGHT_UUID, BIA_UUID]
        assert client.disconnect_calls == 1
        assert scale.state is None
        assert recorder.statuses[-1] == "Disconnected"

    def test_device_disconnect_ends_session(self, fake_client):
        recorder = Recorder()
        scale = recorder.session()

        asyncio.run(scale.connect("AA:BB:CC:DD:EE:FF"))
        client = fake_client.instances[0]
        client.disconnected_callback(client)

        assert not scale.is_active
        assert recorder.statuses[-1] == "Disconnected"


class TestFindScale:
    """Tests for find_scale function."""

    def test_found(self, monkeypatch):
        device = SimpleNamespace(name="MY_SCALE", address="AA:BB:CC:DD:EE:FF")
        calls = []

        class Scanner:
            @staticmethod
            async def find_device_by_name(name, timeout=None):
                calls.append((name, timeout))
                return device

        monkeypatch.setattr(session, "BleakScanner", Scanner)

        assert asyncio.run(find_scale("MY_SCALE", timeout=1.0)) is device
        assert calls == [("MY_SCALE", 1.0)]

    def test_not_found(self, monkeypatch):
        class Scanner:
            @staticmethod
            async def find_device_by_name(name, timeout=None):
                return None

        monkeypatch.setattr(session, "BleakScanner", Scanner)

        with pytest.raises(ScaleNotFound):
            asyncio.run(find_scale("MY_SCALE", timeout=1.0))
