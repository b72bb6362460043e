"""
BiteForce Sensor Link
Connects to the ESP32 bite-force peripheral over Bluetooth LE and streams
decoded force readings (newtons) to listeners.

Usage:
    async with DeviceLink() as link:
        link.add_listener(lambda force: print(f"{force:.2f} N"))
        ...
"""

import asyncio
import enum
import logging
import math
import struct
from typing import Callable, List, Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from config import settings
from app.core.error_handling import ConnectionFailed, UnsupportedTransport

logger = logging.getLogger(__name__)

BITEFORCE_SERVICE_UUID = "4fafc201-1fb5-459e-8fcc-c5c9c331914b"
BITEFORCE_CHARACTERISTIC_UUID = "beb5483e-36e1-4688-b7f5-ea07361b26a8"

# Payload is a single little-endian IEEE-754 float32
FORCE_PAYLOAD_FORMAT = "<f"
FORCE_PAYLOAD_SIZE = struct.calcsize(FORCE_PAYLOAD_FORMAT)

ForceListener = Callable[[float], None]


class LinkState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def decode_force_payload(data: bytes) -> Optional[float]:
    """
    Decode a notification payload into a force value.

    Returns None for payloads that are too short or carry NaN; those are
    dropped without raising.
    """
    if not data or len(data) < FORCE_PAYLOAD_SIZE:
        return None
    (force,) = struct.unpack_from(FORCE_PAYLOAD_FORMAT, bytes(data), 0)
    if math.isnan(force):
        return None
    return force


def _advertises_biteforce(device, advertisement) -> bool:
    return BITEFORCE_SERVICE_UUID in [u.lower() for u in advertisement.service_uuids]


class DeviceLink:
    """
    Connection to a single BiteForce peripheral.

    The scanner and client factory are injectable so the link can run
    against fakes in tests.
    """

    def __init__(
        self,
        scanner=BleakScanner,
        client_factory=BleakClient,
        scan_timeout: Optional[float] = None,
    ):
        self._scanner = scanner
        self._client_factory = client_factory
        self._scan_timeout = scan_timeout if scan_timeout is not None else settings.DEVICE_SCAN_TIMEOUT
        self._client = None
        self._listeners: List[ForceListener] = []
        self.state = LinkState.DISCONNECTED
        self.latest_force: float = 0.0
        self.device_name: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.state == LinkState.CONNECTED

    def add_listener(self, listener: ForceListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ForceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def connect(self) -> None:
        """
        Discover the sensor, open the GATT connection and subscribe to
        force notifications.

        Raises:
            UnsupportedTransport: Bluetooth discovery cannot run on this host
            ConnectionFailed: no sensor found, handshake rejected, or the
                attempt was aborted by disconnect()
        """
        if self.state != LinkState.DISCONNECTED:
            raise ConnectionFailed(f"Connect requested while {self.state.value}")

        self.state = LinkState.CONNECTING
        logger.info("Scanning for BiteForce sensor")

        try:
            device = await self._scanner.find_device_by_filter(
                _advertises_biteforce, timeout=self._scan_timeout
            )
        except (BleakError, OSError) as e:
            self._reset()
            logger.error(f"Bluetooth discovery unavailable: {e}")
            raise UnsupportedTransport(f"Bluetooth LE is not available: {e}") from e
        except BaseException:
            # Cancelled or unexpected scanner failure; never leave the link stuck in CONNECTING
            if self.state == LinkState.CONNECTING:
                self._reset()
            raise

        self._ensure_still_connecting()
        if device is None:
            self._reset()
            raise ConnectionFailed("No BiteForce sensor found")

        client = self._client_factory(device, disconnected_callback=self._on_link_lost)
        self._client = client
        try:
            await client.connect()
            self._ensure_still_connecting()
            await client.start_notify(BITEFORCE_CHARACTERISTIC_UUID, self._handle_notification)
            self._ensure_still_connecting()
        except ConnectionFailed:
            await self._release(client)
            raise
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            await self._release(client)
            logger.error(f"BiteForce sensor handshake failed: {e}")
            raise ConnectionFailed(str(e) or "Failed to connect to device") from e
        except BaseException:
            await self._release(client)
            raise

        self.state = LinkState.CONNECTED
        self.device_name = getattr(device, "name", None)
        logger.info(f"Connected to BiteForce sensor {self.device_name or getattr(device, 'address', '')}")

    async def disconnect(self) -> None:
        """Stop notifications and close the transport. Safe to call repeatedly."""
        client = self._client
        was_active = self.state != LinkState.DISCONNECTED
        self._reset()
        if client is not None:
            await self._close_client(client)
        if was_active:
            logger.info("Disconnected from BiteForce sensor")

    async def __aenter__(self) -> "DeviceLink":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _handle_notification(self, sender, data: bytearray) -> None:
        force = decode_force_payload(data)
        if force is None:
            logger.debug(f"Dropped malformed force payload ({len(data) if data else 0} bytes)")
            return
        self.latest_force = force
        for listener in list(self._listeners):
            listener(force)

    def _on_link_lost(self, client) -> None:
        if client is self._client and self.state == LinkState.CONNECTED:
            logger.warning("BiteForce sensor link dropped")
            self._reset()

    def _ensure_still_connecting(self) -> None:
        if self.state != LinkState.CONNECTING:
            raise ConnectionFailed("Connection attempt aborted")

    def _reset(self) -> None:
        self._client = None
        self.state = LinkState.DISCONNECTED
        self.latest_force = 0.0
        self.device_name = None

    async def _release(self, client) -> None:
        if self._client is client:
            self._reset()
        await self._close_client(client)

    async def _close_client(self, client) -> None:
        try:
            if client.is_connected:
                try:
                    await client.stop_notify(BITEFORCE_CHARACTERISTIC_UUID)
                except (BleakError, KeyError, ValueError) as e:
                    logger.debug(f"stop_notify during teardown: {e}")
                await client.disconnect()
        except (BleakError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Error closing BiteForce sensor connection: {e}")
