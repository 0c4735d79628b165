"""Async bridge between the local terminal and a NUS peripheral.

Manages:
* Device lookup, connect, characteristic discovery, subscribe
* Relaying notifications to the screen
* Polling the keyboard and dispatching encoded keystrokes as independent writes
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from .ble_nus import Transport
from .keys import CTRL_L, encode_key, is_exit_key
from .session import NUSSession, find_device
from .terminal import Terminal
from .utils import decode_text

LOG = logging.getLogger("nus_terminal.bridge")


@dataclass
class BridgeSettings:
    name: str  # substring of the advertised name
    scan_timeout: float = 5.0
    poll_interval: float = 0.05


class NUSBridge:
    def __init__(self, settings: BridgeSettings, transport: Transport, terminal: Terminal) -> None:
        self._settings = settings
        self._transport = transport
        self._terminal = terminal
        self._session: Optional[NUSSession] = None
        self._sends: Set[asyncio.Task] = set()
        self._relay_task: Optional[asyncio.Task] = None

    # ---------------------- public API ---------------------------------
    @property
    def session(self) -> Optional[NUSSession]:
        return self._session

    @property
    def dropped_sends(self) -> int:
        return self._session.dropped_sends if self._session else 0

    async def setup(self) -> NUSSession:
        """Find, connect, discover and subscribe. Raises NUSError/BleakError."""
        device = await find_device(self._transport, self._settings.name, self._settings.scan_timeout)
        session = await NUSSession.connect(self._transport, device)
        self._session = session
        await session.discover()
        await session.subscribe()
        return session

    async def run(self) -> int:
        """Run a whole terminal session; returns the process exit code.

        Setup errors propagate before the terminal is switched to raw mode.
        """
        session = await self.setup()
        self._terminal.enter()
        try:
            await self._run_active(session)
        finally:
            self._terminal.leave()
        LOG.info("NUS terminal exited")
        if session.dropped_sends:
            LOG.debug("%d write(s) to the device failed and were dropped", session.dropped_sends)
        return 0

    async def close(self) -> None:
        """Disconnect from the peripheral. Pending sends are abandoned."""
        if self._session is not None:
            await self._session.close()

    # ---------------------- internal logic -----------------------------
    async def _run_active(self, session: NUSSession) -> None:
        self._spawn_send(session, CTRL_L)
        self._relay_task = asyncio.create_task(self._relay_notifications(session))
        await self._poll_keys(session)

    def _spawn_send(self, session: NUSSession, data: bytes) -> None:
        task = asyncio.create_task(session.send(data))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    async def _relay_notifications(self, session: NUSSession) -> None:
        async for chunk in session.notifications():
            self._terminal.write(decode_text(chunk))

    async def _poll_keys(self, session: NUSSession) -> None:
        while True:
            event = self._terminal.poll_event()
            if event is None:
                await asyncio.sleep(self._settings.poll_interval)
                continue
            if is_exit_key(event):
                return
            data = encode_key(event)
            if data is not None:
                self._spawn_send(session, data)
