"""Shared utilities for the NUS terminal."""
from __future__ import annotations

import os
import sys
from typing import Optional


def env_default(name: str, fallback: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, fallback)


def supports_color() -> bool:
    if sys.platform == "win32":  # colorama fixes up the console on Windows
        return True
    return sys.stderr.isatty()


def decode_text(raw: bytes) -> str:
    """Decode device output as UTF-8, replacing invalid sequences."""
    return raw.decode("utf-8", errors="replace")
