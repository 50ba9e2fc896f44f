"""Version utilities for RTX Patcher."""

from __future__ import annotations

from importlib import metadata

DEFAULT_VERSION = "1.0.0"


def load_version() -> str:
    try:
        version = metadata.version("rtx-patcher")
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION
    return str(version or "").strip() or DEFAULT_VERSION
