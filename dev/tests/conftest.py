from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

MARKERS = {
    "x64": "bin/win64/gmod.exe",
    "x86": "bin/gmod.exe",
    "main": "gmod.exe",
    "legacy": "hl2.exe",
}


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "integration: filesystem pipeline tests")


def binary_with(inserts: Dict[int, bytes], size: int = 1024) -> bytes:
    """Zero-filled buffer with ``inserts`` written at the given offsets."""
    data = bytearray(size)
    for offset, chunk in inserts.items():
        data[offset:offset + len(chunk)] = chunk
    return bytes(data)


@pytest.fixture
def make_install(tmp_path: Path) -> Callable[..., Path]:
    """Build a fake game install: ``garrysmod/`` plus the marker for ``kind``."""

    def _make(kind: Optional[str] = "x64", files: Optional[Dict[str, bytes]] = None,
              name: str = "GarrysMod") -> Path:
        root = tmp_path / name
        (root / "garrysmod").mkdir(parents=True)
        marker = MARKERS.get(kind or "")
        if marker:
            marker_path = root / marker
            marker_path.parent.mkdir(parents=True, exist_ok=True)
            marker_path.write_bytes(b"MZ")
        for relative, data in (files or {}).items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        return root

    return _make
