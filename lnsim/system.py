"""Host platform detection."""

from __future__ import annotations

import sys
from typing import Literal

Platform = Literal["mac", "windows", "linux", "unknown"]


def normalize_platform(name: str | None = None) -> Platform:
    """Map a ``sys.platform`` value to mac/windows/linux/unknown."""
    name = sys.platform if name is None else name
    if name == "darwin":
        return "mac"
    if name in ("win32", "cygwin"):
        return "windows"
    if name.startswith("linux"):
        return "linux"
    return "unknown"


platform: Platform = normalize_platform()


def is_mac() -> bool:
    return platform == "mac"


def is_windows() -> bool:
    return platform == "windows"


def is_linux() -> bool:
    return platform == "linux"
