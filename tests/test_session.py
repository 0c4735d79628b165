import asyncio

import pytest
from bleak.exc import BleakError

from nus_terminal.ble_nus import (
    ConnectionFailedError,
    DeviceNotFoundError,
    NUS_RX_CHAR_UUID,
    NUS_TX_CHAR_UUID,
    NUSError,
    RxCharacteristicNotFoundError,
    TxCharacteristicNotFoundError,
)
from nus_terminal.session import NUSSession, find_device


def test_find_device_returns_first_match_in_scan_order(make_transport):
    t = make_transport(["Foo-1", "Bar-2", "Foo-2"])
    dev = asyncio.run(find_device(t, "Foo", 5.0))
    assert dev.name == "Foo-1"
    assert t.scan_timeout == 5.0


def test_find_device_substring_is_case_sensitive(make_transport):
    t = make_transport(["my-uart", None, "My-UART-Dev"])
    dev = asyncio.run(find_device(t, "UART", 1.0))
    assert dev.name == "My-UART-Dev"


def test_find_device_not_found_makes_no_connection(make_transport):
    t = make_transport(["Bar-1", None, "Baz"])
    with pytest.raises(DeviceNotFoundError):
        asyncio.run(find_device(t, "Foo", 1.0))
    assert t.connect_calls == 0


def test_find_device_skips_candidates_with_unreadable_name(make_transport):
    t = make_transport(["Foo-broken", "Foo-ok"], broken_names={"Foo-broken"})
    dev = asyncio.run(find_device(t, "Foo", 1.0))
    assert dev.name == "Foo-ok"


def test_find_device_only_broken_candidates_is_not_found(make_transport):
    t = make_transport(["Foo-broken"], broken_names={"Foo-broken"})
    with pytest.raises(DeviceNotFoundError):
        asyncio.run(find_device(t, "Foo", 1.0))


def test_errors_are_bleak_errors():
    assert issubclass(NUSError, BleakError)
    assert issubclass(DeviceNotFoundError, NUSError)


def _open(t, name="Dev"):
    async def run():
        dev = await find_device(t, name, 1.0)
        session = await NUSSession.connect(t, dev)
        await session.discover()
        await session.subscribe()
        return session
    return run


def test_connect_failure_is_wrapped(make_transport):
    t = make_transport(["Dev"], fail_connect=True)
    with pytest.raises(ConnectionFailedError):
        asyncio.run(_open(t)())


def test_missing_rx_characteristic(make_transport):
    t = make_transport(["Dev"], chars=[NUS_TX_CHAR_UUID])
    with pytest.raises(RxCharacteristicNotFoundError):
        asyncio.run(_open(t)())
    assert t.subscribed is None


def test_missing_tx_characteristic(make_transport):
    t = make_transport(["Dev"], chars=[NUS_RX_CHAR_UUID])
    with pytest.raises(TxCharacteristicNotFoundError):
        asyncio.run(_open(t)())


def test_uuid_match_ignores_case(make_transport):
    t = make_transport(["Dev"], chars=[NUS_RX_CHAR_UUID.upper(), NUS_TX_CHAR_UUID.upper()])
    session = asyncio.run(_open(t)())
    assert session.device.name == "Dev"
    assert t.subscribed == NUS_TX_CHAR_UUID.lower()


def test_send_writes_to_rx(make_transport):
    t = make_transport(["Dev"])

    async def run():
        session = await _open(t)()
        assert await session.send(b"a") is True
    asyncio.run(run())
    assert t.writes == [(NUS_RX_CHAR_UUID.lower(), b"a")]


def test_send_failure_is_absorbed_and_counted(make_transport):
    t = make_transport(["Dev"], fail_writes=1)

    async def run():
        session = await _open(t)()
        first = await session.send(b"x")
        second = await session.send(b"y")
        return session, first, second
    session, first, second = asyncio.run(run())
    assert (first, second) == (False, True)
    assert session.dropped_sends == 1
    assert t.sent == [b"y"]


def test_send_before_discover_is_an_error(make_transport):
    t = make_transport(["Dev"])

    async def run():
        dev = await find_device(t, "Dev", 1.0)
        session = await NUSSession.connect(t, dev)
        await session.send(b"a")
    with pytest.raises(RuntimeError):
        asyncio.run(run())


def test_notifications_in_order_without_dedup(make_transport):
    t = make_transport(["Dev"])

    async def run():
        session = await _open(t)()
        for chunk in (b"ok\r\n", b"ok\r\n", b"> "):
            t.notify(chunk)
        got = []
        async for chunk in session.notifications():
            got.append(chunk)
            if len(got) == 3:
                break
        return got
    assert asyncio.run(run()) == [b"ok\r\n", b"ok\r\n", b"> "]
