"""App-level APIs.

This package contains thin controller functions intended to be called by the CLI
or other front ends. It keeps callers decoupled from the engine internals.
"""

from . import api

__all__ = ["api"]
