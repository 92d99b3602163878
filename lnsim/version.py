"""Version information for lnsim.

The version is read from:
1. The VERSION file next to this module
2. The most recent git tag as fallback
"""

import os
import subprocess
from pathlib import Path


def _git(*args: str) -> str | None:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).parent,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def _read_file(name: str) -> str | None:
    path = Path(__file__).parent / name
    if not path.exists():
        return None
    try:
        return path.read_text().strip() or None
    except OSError:
        return None


def get_version() -> str:
    """Get the lnsim version.

    Returns:
        Version string (e.g., "0.3.1"), or "0.0.0" when unknown
    """
    version = _read_file("VERSION")
    if version:
        return version

    tag = _git("describe", "--tags", "--abbrev=0")
    if tag:
        return tag[1:] if tag.startswith("v") else tag

    return "0.0.0"


__version__ = get_version()


def get_commit() -> str:
    """Get the commit SHA.

    Reads LNSIM_GIT_SHA first, then a GIT_SHA file, then git rev-parse.
    """
    env_sha = os.getenv("LNSIM_GIT_SHA", "").strip()
    if env_sha:
        return env_sha

    return _read_file("GIT_SHA") or _git("rev-parse", "HEAD") or "unknown"
