"""Public package interface for nus_terminal.

An interactive serial terminal over the Nordic UART Service (NUS) on BLE. The
main console entrypoint is ``nus_terminal.nus_terminal:main``.
"""

from importlib.metadata import version, PackageNotFoundError

from .ble_nus import (
    BleakTransport,
    ConnectionFailedError,
    DeviceNotFoundError,
    DiscoveredDevice,
    NoAdapterError,
    NUSError,
    RxCharacteristicNotFoundError,
    Transport,
    TxCharacteristicNotFoundError,
    NUS_SERVICE_UUID,
    NUS_RX_CHAR_UUID,
    NUS_TX_CHAR_UUID,
)
from .bridge import BridgeSettings, NUSBridge
from .keys import KeyCode, KeyEvent, KeyModifiers, encode_key, is_exit_key
from .session import NUSSession, find_device

try:  # pragma: no cover - metadata environment
    __version__ = version("nus-terminal")
except PackageNotFoundError:  # pragma: no cover - source tree usage
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "BleakTransport",
    "Transport",
    "DiscoveredDevice",
    "NUSSession",
    "find_device",
    "NUSBridge",
    "BridgeSettings",
    "KeyCode",
    "KeyEvent",
    "KeyModifiers",
    "encode_key",
    "is_exit_key",
    "NUSError",
    "NoAdapterError",
    "DeviceNotFoundError",
    "ConnectionFailedError",
    "RxCharacteristicNotFoundError",
    "TxCharacteristicNotFoundError",
    "NUS_SERVICE_UUID",
    "NUS_RX_CHAR_UUID",
    "NUS_TX_CHAR_UUID",
]
