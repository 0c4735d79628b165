"""CLI tool: interactive serial terminal over the Nordic UART Service (NUS) via BLE.

Features:
* Scans for a fixed window and picks the first device whose name contains --name.
* Keystrokes are sent as a serial terminal would send them (Ctrl keys, arrows, CR).
* Device output is shown as it arrives, on the alternate screen.
* Press Esc to quit.

Environment: NUS_NAME (default for --name), NUS_SCAN_TIMEOUT (seconds, default
5.0), NUS_ADAPTER (Linux hciX), NUS_VERBOSE (enable debug logging).
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import colorama
from bleak.exc import BleakError

from .ble_nus import BleakTransport, NoAdapterError, Transport
from .bridge import BridgeSettings, NUSBridge
from .terminal import RawTerminal, Terminal
from .utils import env_default, supports_color


colorama.just_fix_windows_console()
COLOR = supports_color()
RESET = colorama.Style.RESET_ALL
FG_GREEN = colorama.Fore.GREEN
FG_YELLOW = colorama.Fore.YELLOW
FG_RED = colorama.Fore.RED


LOG = logging.getLogger("nus_terminal")


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="nus-terminal",
        description="Serial terminal over the Nordic UART Service (BLE). Press Esc to quit.")
    name_def = env_default("NUS_NAME")
    p.add_argument("-n", "--name", default=name_def, required=name_def is None,
                   help="BLE device name filter, substring match (or set NUS_NAME)")
    args = p.parse_args(argv)
    if not args.name:
        p.error("--name must not be empty")

    timeout_def = env_default("NUS_SCAN_TIMEOUT", "5.0") or "5.0"
    try:
        args.scan_timeout = float(timeout_def)
    except ValueError:
        p.error(f"NUS_SCAN_TIMEOUT must be a number of seconds, got '{timeout_def}'")
    if args.scan_timeout <= 0:
        p.error("NUS_SCAN_TIMEOUT must be positive")
    args.adapter = env_default("NUS_ADAPTER")
    args.verbose = (env_default("NUS_VERBOSE", "") or "") not in ("", "0")
    return args


def format_event(msg: str, level: str = "info") -> str:
    if not COLOR:
        return msg
    if level == "ok":
        return FG_GREEN + msg + RESET
    if level == "warn":
        return FG_YELLOW + msg + RESET
    if level == "err":
        return FG_RED + msg + RESET
    return msg


def _print_hints(e: BleakError) -> None:
    msg = str(e).lower()
    if isinstance(e, NoAdapterError) or "failed to execute management command" in msg:
        print(
            "Hint: Ensure Bluetooth adapter is powered and not blocked (rfkill).", file=sys.stderr)
    if "permission" in msg and sys.platform.startswith("linux"):
        print(
            "Hint: Missing permissions. Consider adding user to 'bluetooth' group or setcap 'cap_net_raw+eip' on python.",
            file=sys.stderr,
        )


async def run_terminal(
    args: argparse.Namespace,
    transport: Optional[Transport] = None,
    terminal: Optional[Terminal] = None,
) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    if transport is None:
        transport = BleakTransport(adapter=args.adapter)
    if terminal is None:
        terminal = RawTerminal()
    bridge = NUSBridge(BridgeSettings(name=args.name, scan_timeout=args.scan_timeout),
                       transport, terminal)
    try:
        return await bridge.run()
    except BleakError as e:
        print(format_event(f"BLE error: {e}", "err"), file=sys.stderr)
        _print_hints(e)
        return 1
    finally:
        await bridge.close()


def main() -> None:
    """Console entrypoint for nus-terminal CLI."""
    args = parse_args(sys.argv[1:])
    try:
        sys.exit(asyncio.run(run_terminal(args)))
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":  # pragma: no cover
    main()
