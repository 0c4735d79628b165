"""Device lookup and the NUS UART session.

``find_device`` performs one fixed-length scan and picks the first peripheral
whose advertised name contains the filter. ``NUSSession`` owns the connection
and the two resolved characteristics, and turns notifications into an ordered
async stream.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from bleak.exc import BleakError

from .ble_nus import (
    ConnectionFailedError,
    DeviceNotFoundError,
    DiscoveredDevice,
    NUS_RX_CHAR_UUID,
    NUS_TX_CHAR_UUID,
    RxCharacteristicNotFoundError,
    Transport,
    TxCharacteristicNotFoundError,
)

LOG = logging.getLogger("nus_terminal.session")


async def find_device(transport: Transport, name_filter: str, scan_timeout: float) -> DiscoveredDevice:
    """Scan for ``scan_timeout`` seconds and return the first name match.

    Matching is case-sensitive substring containment on the advertised local
    name. A candidate whose name cannot be read is skipped.
    """
    LOG.info("Trying to find device (filter: %s)", name_filter)
    peripherals = await transport.scan(scan_timeout)
    for peripheral in peripherals:
        try:
            device = await transport.describe(peripheral)
        except BleakError as e:
            LOG.debug("Skipping candidate, name lookup failed: %s", e)
            continue
        if device.name and name_filter and name_filter in device.name:
            LOG.info("Found %s (%s)", device.name, device.address)
            return device
    raise DeviceNotFoundError(f"Could not find a device with name containing '{name_filter}'")


class NUSSession:
    """A connected NUS peripheral.

    Created with ``await NUSSession.connect(transport, device)``, then
    ``discover()`` and ``subscribe()`` must complete before data flows.
    """

    def __init__(self, transport: Transport, device: DiscoveredDevice) -> None:
        self.device = device
        self._transport = transport
        self._rx_char: Optional[str] = None
        self._tx_char: Optional[str] = None
        self._notifications: asyncio.Queue[bytes] = asyncio.Queue()
        # bleak makes no promise about concurrent writes
        self._write_lock = asyncio.Lock()
        self.dropped_sends = 0

    # ------------------------------------------------------------------
    @classmethod
    async def connect(cls, transport: Transport, device: DiscoveredDevice) -> "NUSSession":
        try:
            await transport.connect(device)
        except (BleakError, asyncio.TimeoutError) as e:
            raise ConnectionFailedError(f"Failed to connect to {device.name} ({device.address}): {e}") from e
        return cls(transport, device)

    # ------------------------------------------------------------------
    async def discover(self) -> "NUSSession":
        """Resolve the RX (write) and TX (notify) characteristics."""
        uuids = {u.lower() for u in await self._transport.discover_characteristics()}
        if NUS_RX_CHAR_UUID.lower() not in uuids:
            raise RxCharacteristicNotFoundError("RX characteristic not found")
        if NUS_TX_CHAR_UUID.lower() not in uuids:
            raise TxCharacteristicNotFoundError("TX characteristic not found")
        self._rx_char = NUS_RX_CHAR_UUID.lower()
        self._tx_char = NUS_TX_CHAR_UUID.lower()
        return self

    # ------------------------------------------------------------------
    async def subscribe(self) -> None:
        if self._tx_char is None:
            raise RuntimeError("discover() must run before subscribe()")
        await self._transport.subscribe(self._tx_char, self._notifications.put_nowait)

    # ------------------------------------------------------------------
    async def send(self, data: bytes) -> bool:
        """Write ``data`` to RX without response.

        Transport errors are absorbed: the write is counted in
        ``dropped_sends`` and False is returned.
        """
        if self._rx_char is None:
            raise RuntimeError("discover() must run before send()")
        async with self._write_lock:
            try:
                await self._transport.write(self._rx_char, data)
            except Exception:
                self.dropped_sends += 1
                return False
        return True

    # ------------------------------------------------------------------
    async def notifications(self) -> AsyncIterator[bytes]:
        """Yield notification payloads in arrival order, forever."""
        while True:
            yield await self._notifications.get()

    # ------------------------------------------------------------------
    async def close(self) -> None:
        await self._transport.disconnect()
