"""BLE Nordic UART Service (NUS) transport built on bleak.

Separates raw BLE mechanics from the session / bridge code.

Design goals:
* Small and dependency-light (bleak only).
* Async / single event loop; no threads created here.
* A narrow ``Transport`` protocol so the session and bridge can run against a
  fake peripheral in tests.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Tuple

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak.backends.device import BLEDevice  # type: ignore
from bleak.backends.scanner import AdvertisementData  # type: ignore
from bleak.backends.characteristic import BleakGATTCharacteristic  # type: ignore


# NUS UUIDs (Nordic's 128-bit base UUID form)
NUS_SERVICE_UUID = "6E400001-B5A3-F393-E0A9-E50E24DCCA9E"
NUS_RX_CHAR_UUID = "6E400002-B5A3-F393-E0A9-E50E24DCCA9E"  # Write
NUS_TX_CHAR_UUID = "6E400003-B5A3-F393-E0A9-E50E24DCCA9E"  # Notify


class NUSError(BleakError):
    """Base class for setup failures of a NUS terminal session."""


class NoAdapterError(NUSError):
    pass


class DeviceNotFoundError(NUSError):
    pass


class ConnectionFailedError(NUSError):
    pass


class RxCharacteristicNotFoundError(NUSError):
    pass


class TxCharacteristicNotFoundError(NUSError):
    pass


@dataclass
class DiscoveredDevice:
    """A peripheral seen during a scan; ``handle`` is transport specific."""

    address: str
    name: Optional[str]
    rssi: int
    handle: Any = field(default=None, repr=False, compare=False)


class Transport(Protocol):
    """Capabilities the session needs from a BLE stack."""

    async def scan(self, timeout: float) -> List[Any]:
        """Scan for ``timeout`` seconds; return peripherals in the order seen."""

    async def describe(self, peripheral: Any) -> DiscoveredDevice:
        """Return identity and advertised name of a scanned peripheral."""

    async def connect(self, device: DiscoveredDevice) -> None: ...

    async def discover_characteristics(self) -> List[str]: ...

    async def write(self, char_uuid: str, data: bytes) -> None: ...

    async def subscribe(self, char_uuid: str, callback: Callable[[bytes], None]) -> None: ...

    async def disconnect(self) -> None: ...


def _is_missing_adapter(exc: BleakError) -> bool:
    msg = str(exc).lower()
    return "adapter" in msg or "not available" in msg or "powered off" in msg


class BleakTransport:
    """``Transport`` implementation over bleak.

    Typical usage:

        transport = BleakTransport(adapter="hci0")
        peripherals = await transport.scan(5.0)
        device = await transport.describe(peripherals[0])
        await transport.connect(device)
    """

    def __init__(self, adapter: Optional[str] = None) -> None:
        self._adapter = adapter
        self._client: Optional[BleakClient] = None
        self._notify_char: Optional[str] = None
        self._log = logging.getLogger("ble_nus.BleakTransport")

    # ------------------------------------------------------------------
    async def scan(self, timeout: float) -> List[Tuple[BLEDevice, AdvertisementData]]:
        """Collect every advertising device for the whole scan window.

        There is no early exit on a match; the returned list keeps the order in
        which devices were first seen.
        """
        seen: dict[str, tuple[BLEDevice, AdvertisementData]] = {}

        def _detection(device: BLEDevice, adv: AdvertisementData):  # pragma: no cover - BLE runtime path
            if not device or not device.address:
                return
            seen[device.address] = (device, adv)

        kwargs = {"adapter": self._adapter} if self._adapter else {}
        scanner = BleakScanner(detection_callback=_detection, **kwargs)
        try:
            await scanner.start()
        except BleakError as e:
            if _is_missing_adapter(e):
                raise NoAdapterError(f"No Bluetooth adapter available: {e}") from e
            raise
        try:
            await asyncio.sleep(timeout)
        finally:
            await scanner.stop()
        return list(seen.values())

    # ------------------------------------------------------------------
    async def describe(self, peripheral: Tuple[BLEDevice, AdvertisementData]) -> DiscoveredDevice:
        device, adv = peripheral
        name = (adv.local_name if adv else None) or device.name
        rssi = adv.rssi if adv and adv.rssi is not None else -200
        return DiscoveredDevice(address=device.address, name=name, rssi=rssi, handle=device)

    # ------------------------------------------------------------------
    async def connect(self, device: DiscoveredDevice) -> None:
        def _handle_disconnect(_: BleakClient):  # pragma: no cover - runtime path
            self._log.debug("Device disconnected callback fired")

        client = BleakClient(
            device.handle or device.address, disconnected_callback=_handle_disconnect)
        await client.connect()
        self._client = client

    # ------------------------------------------------------------------
    async def discover_characteristics(self) -> List[str]:
        """Return the UUIDs of every characteristic the peripheral exposes."""
        client = self._require_client()
        # bleak resolves services as part of connect()
        svcs = client.services
        uuids: List[str] = []
        for s in svcs:
            for c in s.characteristics:
                self._log.debug("Service %s char %s [%s]", s.uuid, c.uuid, ",".join(c.properties))
                uuids.append(c.uuid)
        return uuids

    # ------------------------------------------------------------------
    async def write(self, char_uuid: str, data: bytes) -> None:
        """Write without response; completion does not mean the firmware got it."""
        await self._require_client().write_gatt_char(char_uuid, data, response=False)

    # ------------------------------------------------------------------
    async def subscribe(self, char_uuid: str, callback: Callable[[bytes], None]) -> None:
        def _notification_handler(_char: BleakGATTCharacteristic, data: bytearray) -> None:
            callback(bytes(data))

        await self._require_client().start_notify(char_uuid, _notification_handler)
        self._notify_char = char_uuid

    # ------------------------------------------------------------------
    async def disconnect(self) -> None:
        """Stop notifications and disconnect if connected.

        Teardown errors from the backend are ignored; the services may already
        be gone when this runs.
        """
        client = self._client
        if client and client.is_connected:
            try:
                if self._notify_char:
                    try:
                        await client.stop_notify(self._notify_char)
                    except (AttributeError, BleakError):
                        pass
            finally:
                try:
                    await client.disconnect()
                except BleakError:
                    pass
        self._notify_char = None

    def _require_client(self) -> BleakClient:
        if not self._client or not self._client.is_connected:
            raise BleakError("Not connected")
        return self._client
