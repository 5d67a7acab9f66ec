"""BLE connection session: subscribe to the scale and route notifications."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from bleak import BleakClient, BleakGATTCharacteristic, BleakScanner, BLEDevice
from bleak.exc import BleakError

from aggregator import AggregateState, ReadingAggregator
from composition import BodyComposition, UserProfile, calculate_body_composition
from config import (
    BIA_MEASUREMENT_UUID,
    CONNECT_TIMEOUT_SECONDS,
    DATA_TIMEOUT_SECONDS,
    SCALE_NAME,
    VENDOR_NOTIFY_UUIDS,
    WEIGHT_MEASUREMENT_UUID,
)
from decode import Source, decode_notification

log = logging.getLogger(__name__)

STEP_ON_HINT = f"Connected to {SCALE_NAME}. Step on the scale to begin measurement."
WAITING_STATUS = "Waiting for data..."

ResultCallback = Callable[[BodyComposition | None, AggregateState], None]


class ScaleNotFound(BleakError):
    """No scale advertising under the configured name."""


def classify_characteristic(uuid: str) -> Source | None:
    """Map a characteristic UUID to the decoder that handles it."""
    uuid = uuid.lower()
    if uuid == WEIGHT_MEASUREMENT_UUID:
        return Source.WEIGHT
    if uuid == BIA_MEASUREMENT_UUID:
        return Source.BIA
    if uuid in VENDOR_NOTIFY_UUIDS:
        return Source.VENDOR
    return None


def build_log_record(state: AggregateState, profile: UserProfile) -> dict:
    return {
        "timestamp": datetime.now().isoformat(),
        "weight_kg": state.weight_kg,
        "impedance_ohm": state.impedance_ohm,
        "impedance_source": state.impedance_source.value,
        "profile": profile.snapshot(),
    }


class ScaleSession:
    """One connection to the scale and the readings gathered over it."""

    def __init__(
        self,
        profile_provider: Callable[[], UserProfile],
        on_result: ResultCallback | None = None,
        on_status: Callable[[str], None] | None = None,
        on_log_record: Callable[[dict], None] | None = None,
        data_timeout: float = DATA_TIMEOUT_SECONDS,
    ) -> None:
        self._profile_provider = profile_provider
        self._on_result = on_result
        self._on_status = on_status
        self._on_log_record = on_log_record
        self._data_timeout = data_timeout

        self._client: BleakClient | None = None
        self._subscribed: list[BleakGATTCharacteristic] = []
        self._aggregator: ReadingAggregator | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None
        self.status = "Idle"

    @property
    def is_active(self) -> bool:
        return self._aggregator is not None

    @property
    def state(self) -> AggregateState | None:
        return self._aggregator.state if self._aggregator else None

    def _set_status(self, status: str) -> None:
        self.status = status
        log.info("Status: %s", status)
        if self._on_status:
            self._on_status(status)

    # Lifecycle

    def begin(self) -> None:
        """Start a fresh aggregate and arm the data timeout."""
        self._aggregator = ReadingAggregator()
        self._restart_data_timeout()

    def end(self) -> None:
        """Discard the aggregate and cancel the data timeout."""
        self._cancel_data_timeout()
        self._aggregator = None

    async def connect(self, address_or_ble_device: str | BLEDevice | None = None) -> None:
        """Connect and subscribe to every known notification characteristic.

        Routing is installed before this returns, so notifications that arrive
        right after connecting are not lost.
        """
        if address_or_ble_device is None:
            address_or_ble_device = await find_scale()

        self._set_status("Connecting...")
        client = BleakClient(
            address_or_ble_device,
            disconnected_callback=self._on_disconnected,
            timeout=CONNECT_TIMEOUT_SECONDS,
        )
        try:
            await client.connect()
        except (BleakError, asyncio.TimeoutError) as err:
            self._set_status(f"Connection failed: {err}")
            raise
        self._client = client
        self.begin()

        for service in client.services:
            log.debug(
                "Service %s -> characteristics: %s",
                service.uuid,
                [char.uuid for char in service.characteristics],
            )
            for char in service.characteristics:
                source = classify_characteristic(char.uuid)
                if source is None or not {"notify", "indicate"} & set(char.properties):
                    continue
                await self._subscribe(client, char, source)

        if not self._subscribed:
            log.warning("No weight, BIA or vendor characteristic found")
        elif not any(classify_characteristic(c.uuid) is Source.BIA for c in self._subscribed):
            log.info("BIA characteristic not available, impedance will be estimated")

        self._set_status(f"Connected to {SCALE_NAME}")

    async def _subscribe(
        self, client: BleakClient, char: BleakGATTCharacteristic, source: Source
    ) -> None:
        def callback(_: BleakGATTCharacteristic, data: bytearray) -> None:
            self.handle_notification(source, bytes(data))

        try:
            await client.start_notify(char, callback)
        except BleakError as err:
            log.warning("Could not subscribe to %s: %s", char.uuid, err)
            return
        self._subscribed.append(char)
        log.info("Subscribed to %s notifications on %s", source.value, char.uuid)

    async def disconnect(self) -> None:
        self.end()
        client, self._client = self._client, None
        if client is None:
            return
        for char in self._subscribed:
            try:
                await client.stop_notify(char)
            except BleakError as err:
                log.debug("stop_notify %s failed: %s", char.uuid, err)
        self._subscribed = []
        if client.is_connected:
            await client.disconnect()
        self._set_status("Disconnected")

    def _on_disconnected(self, _: BleakClient) -> None:
        self.end()
        self._subscribed = []
        self._set_status("Disconnected")

    # Notifications

    def handle_notification(self, source: Source, data: bytes) -> BodyComposition | None:
        """Decode, merge and estimate one notification.

        Returns the new composition, or None if the packet held no reading or
        no weight is known yet.
        """
        if self._aggregator is None:
            log.debug("Dropping %s notification outside a session", source.value)
            return None

        measurement = decode_notification(source, data)
        if measurement is None:
            return None

        profile = self._profile_provider()
        state = self._aggregator.update(measurement, profile)
        log.info(
            "Reading: weight=%s kg impedance=%s ohm (%s)",
            state.weight_kg,
            state.impedance_ohm,
            state.impedance_source.value,
        )

        if self._on_log_record:
            self._on_log_record(build_log_record(state, profile))

        composition = None
        if state.has_weight:
            composition = calculate_body_composition(
                state.weight_kg,
                state.impedance_ohm,
                profile,
                impedance_source=state.impedance_source,
            )
        else:
            log.info("No weight yet, waiting for the weight characteristic")

        if self._on_result:
            self._on_result(composition, state)

        self._restart_data_timeout()
        self._set_status(WAITING_STATUS)
        return composition

    # Data timeout

    def _restart_data_timeout(self) -> None:
        self._cancel_data_timeout()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timeout_handle = loop.call_later(self._data_timeout, self._on_data_timeout)

    def _cancel_data_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_data_timeout(self) -> None:
        self._timeout_handle = None
        if self.is_active:
            self._set_status(STEP_ON_HINT)


async def find_scale(name: str = SCALE_NAME, timeout: float = CONNECT_TIMEOUT_SECONDS) -> BLEDevice:
    """Scan for the scale by its advertised name."""
    log.info("Scanning for '%s'...", name)
    device = await BleakScanner.find_device_by_name(name, timeout=timeout)
    if device is None:
        raise ScaleNotFound(f"No device named '{name}' found")
    log.info("Found device: %s (%s)", device.name, device.address)
    return device
