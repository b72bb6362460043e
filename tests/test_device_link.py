"""
BiteForce sensor link tests against fake Bluetooth scanner and client
"""
import asyncio
import struct
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from app.core.error_handling import ConnectionFailed, UnsupportedTransport
from app.services.device_link import (
    BITEFORCE_CHARACTERISTIC_UUID,
    BITEFORCE_SERVICE_UUID,
    DeviceLink,
    LinkState,
    decode_force_payload,
)


def force_bytes(value: float) -> bytearray:
    return bytearray(struct.pack("<f", value))


class FakeScanner:
    def __init__(self, device=None, error=None, gate: asyncio.Event = None):
        self.device = device
        self.error = error
        self.gate = gate
        self.timeout = None
        self.matched = None

    async def find_device_by_filter(self, filterfunc, timeout=None):
        self.timeout = timeout
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.device is None:
            return None
        advertisement = SimpleNamespace(service_uuids=[BITEFORCE_SERVICE_UUID.upper()])
        self.matched = filterfunc(self.device, advertisement)
        return self.device if self.matched else None


class FakeClient:
    def __init__(self, connect_error=None, gate: asyncio.Event = None):
        self.connect_error = connect_error
        self.gate = gate
        self.is_connected = False
        self.connect_started = False
        self.notify_uuid = None
        self.notify_callback = None
        self.disconnected_callback = None
        self.disconnect_calls = 0

    def factory(self, device, disconnected_callback=None):
        self.disconnected_callback = disconnected_callback
        return self

    async def connect(self):
        self.connect_started = True
        if self.gate is not None:
            await self.gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self.is_connected = True

    async def start_notify(self, uuid, callback):
        self.notify_uuid = uuid
        self.notify_callback = callback

    async def stop_notify(self, uuid):
        self.notify_callback = None

    async def disconnect(self):
        self.disconnect_calls += 1
        self.is_connected = False


SENSOR = SimpleNamespace(name="ESP32-BiteForce", address="24:6F:28:AA:BB:CC")


def make_link(scanner=None, client=None, scan_timeout=2.5):
    scanner = scanner or FakeScanner(device=SENSOR)
    client = client or FakeClient()
    return DeviceLink(scanner=scanner, client_factory=client.factory, scan_timeout=scan_timeout), scanner, client


@pytest.mark.unit
def test_decode_force_payload():
    assert decode_force_payload(force_bytes(42.5)) == pytest.approx(42.5)
    assert decode_force_payload(force_bytes(-1.25)) == pytest.approx(-1.25)
    assert decode_force_payload(force_bytes(7.0) + b"\x00\x01") == pytest.approx(7.0)
    assert decode_force_payload(b"\x01\x02") is None
    assert decode_force_payload(b"") is None
    assert decode_force_payload(force_bytes(float("nan"))) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connect_subscribes_to_force_characteristic():
    link, scanner, client = make_link()
    await link.connect()

    assert link.state == LinkState.CONNECTED
    assert link.is_connected
    assert link.device_name == "ESP32-BiteForce"
    assert scanner.timeout == 2.5
    assert scanner.matched is True
    assert client.notify_uuid == BITEFORCE_CHARACTERISTIC_UUID


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notifications_update_latest_force_and_listeners():
    link, _, client = make_link()
    received = []
    link.add_listener(received.append)
    await link.connect()

    client.notify_callback(None, force_bytes(12.5))
    client.notify_callback(None, bytearray(b"\x00"))
    client.notify_callback(None, force_bytes(float("nan")))

    assert link.latest_force == pytest.approx(12.5)
    assert received == [pytest.approx(12.5)]

    link.remove_listener(received.append)
    client.notify_callback(None, force_bytes(30.0))
    assert link.latest_force == pytest.approx(30.0)
    assert len(received) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_sensor_found():
    link, _, client = make_link(scanner=FakeScanner(device=None))
    with pytest.raises(ConnectionFailed):
        await link.connect()
    assert link.state == LinkState.DISCONNECTED
    assert client.disconnected_callback is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bluetooth_unavailable():
    link, _, _ = make_link(scanner=FakeScanner(error=BleakError("No Bluetooth adapters found.")))
    with pytest.raises(UnsupportedTransport) as exc_info:
        await link.connect()
    assert exc_info.value.status_code == 503
    assert link.state == LinkState.DISCONNECTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_handshake_failure_releases_client():
    client = FakeClient(connect_error=BleakError("Device with address was not found"))
    link, _, _ = make_link(client=client)
    with pytest.raises(ConnectionFailed):
        await link.connect()
    assert link.state == LinkState.DISCONNECTED
    assert not client.is_connected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connect_twice_is_rejected():
    link, _, _ = make_link()
    await link.connect()
    with pytest.raises(ConnectionFailed):
        await link.connect()
    assert link.state == LinkState.CONNECTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disconnect_is_idempotent():
    link, _, client = make_link()
    await link.connect()
    client.notify_callback(None, force_bytes(18.0))

    await link.disconnect()
    await link.disconnect()

    assert link.state == LinkState.DISCONNECTED
    assert link.latest_force == 0.0
    assert client.disconnect_calls == 1
    assert client.notify_callback is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disconnect_on_fresh_link():
    link, _, client = make_link()
    await link.disconnect()
    assert link.state == LinkState.DISCONNECTED
    assert client.disconnect_calls == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disconnect_while_scanning_aborts_connect():
    gate = asyncio.Event()
    link, _, client = make_link(scanner=FakeScanner(device=SENSOR, gate=gate))

    task = asyncio.create_task(link.connect())
    await asyncio.sleep(0)
    assert link.state == LinkState.CONNECTING

    await link.disconnect()
    gate.set()
    with pytest.raises(ConnectionFailed):
        await task

    assert link.state == LinkState.DISCONNECTED
    assert not client.connect_started


@pytest.mark.asyncio
@pytest.mark.unit
async def test_disconnect_during_handshake_closes_client():
    gate = asyncio.Event()
    client = FakeClient(gate=gate)
    link, _, _ = make_link(client=client)

    task = asyncio.create_task(link.connect())
    while not client.connect_started:
        await asyncio.sleep(0)

    await link.disconnect()
    gate.set()
    with pytest.raises(ConnectionFailed):
        await task

    assert link.state == LinkState.DISCONNECTED
    assert not client.is_connected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_link_loss_resets_state():
    link, _, client = make_link()
    await link.connect()
    client.notify_callback(None, force_bytes(25.0))

    client.is_connected = False
    client.disconnected_callback(client)

    assert link.state == LinkState.DISCONNECTED
    assert link.latest_force == 0.0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_context_manager_disconnects():
    link, _, client = make_link()
    async with link:
        assert link.is_connected
    assert link.state == LinkState.DISCONNECTED
    assert client.disconnect_calls == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_while_scanning_resets_state():
    link, scanner, _ = make_link(scanner=FakeScanner(device=SENSOR, gate=asyncio.Event()))

    task = asyncio.create_task(link.connect())
    while scanner.timeout is None:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert link.state == LinkState.DISCONNECTED

    scanner.gate = None
    await link.connect()
    assert link.state == LinkState.CONNECTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unexpected_scanner_error_resets_state():
    link, _, _ = make_link(scanner=FakeScanner(error=RuntimeError("adapter went away")))
    with pytest.raises(RuntimeError):
        await link.connect()
    assert link.state == LinkState.DISCONNECTED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_during_handshake_releases_client():
    client = FakeClient(gate=asyncio.Event())
    link, _, _ = make_link(client=client)

    task = asyncio.create_task(link.connect())
    while not client.connect_started:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert link.state == LinkState.DISCONNECTED
    assert not client.is_connected
