from collections import deque
from typing import Callable, List, Optional

import pytest
from bleak.exc import BleakError

from nus_terminal.ble_nus import DiscoveredDevice, NUS_RX_CHAR_UUID, NUS_TX_CHAR_UUID


class FakeTransport:
    """In-memory peripheral: scan results are plain names (None = no name)."""

    def __init__(self, names=(), chars=None, broken_names=(), fail_connect=False, fail_writes=0):
        self.names = list(names)
        self.broken_names = set(broken_names)
        self.chars = list(chars) if chars is not None else [
            "00002a00-0000-1000-8000-00805f9b34fb",
            NUS_RX_CHAR_UUID.lower(),
            NUS_TX_CHAR_UUID.lower(),
        ]
        self.fail_connect = fail_connect
        self.fail_writes = fail_writes
        self.connected_to: Optional[DiscoveredDevice] = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.writes: List[tuple] = []
        self.subscribed: Optional[str] = None
        self._callback: Optional[Callable[[bytes], None]] = None

    async def scan(self, timeout):
        self.scan_timeout = timeout
        return list(range(len(self.names)))

    async def describe(self, peripheral):
        name = self.names[peripheral]
        if name in self.broken_names:
            raise BleakError("properties unavailable")
        return DiscoveredDevice(address=f"AA:BB:CC:DD:EE:{peripheral:02X}", name=name, rssi=-50)

    async def connect(self, device):
        self.connect_calls += 1
        if self.fail_connect:
            raise BleakError("connection refused")
        self.connected_to = device

    async def discover_characteristics(self):
        return list(self.chars)

    async def write(self, char_uuid, data):
        if self.fail_writes:
            self.fail_writes -= 1
            raise BleakError("write failed")
        self.writes.append((char_uuid, bytes(data)))

    async def subscribe(self, char_uuid, callback):
        self.subscribed = char_uuid
        self._callback = callback

    async def disconnect(self):
        self.disconnect_calls += 1

    def notify(self, data: bytes) -> None:
        assert self._callback is not None, "not subscribed"
        self._callback(data)

    @property
    def sent(self) -> List[bytes]:
        return [data for _, data in self.writes]


class FakeTerminal:
    """Replays a script of key events; None entries are empty polls."""

    def __init__(self, script=(), on_poll=None):
        self.script = deque(script)
        self.on_poll = on_poll
        self.output: List[str] = []
        self.entered = False
        self.left = False
        self.polls = 0

    def enter(self):
        self.entered = True

    def leave(self):
        self.left = True

    def poll_event(self):
        self.polls += 1
        if self.on_poll:
            self.on_poll(self.polls)
        if self.script:
            return self.script.popleft()
        return None

    def write(self, text):
        self.output.append(text)


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def make_terminal():
    return FakeTerminal
