"""Shared type aliases and small types for app controllers."""

from __future__ import annotations

import threading
from typing import Callable

from ..patching.models import PatchPhase, ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]
LogCallback = Callable[[str], None]


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def event(self) -> threading.Event:
        return self._event

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


__all__ = [
    "CancelToken",
    "LogCallback",
    "PatchPhase",
    "ProgressCallback",
    "ProgressEvent",
]
