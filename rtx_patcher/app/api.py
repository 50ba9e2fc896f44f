"""Public controller API surface for the CLI and integrations.

Centralizes stable imports to keep callers decoupled from controller internals.
"""

from __future__ import annotations

from ..core.architecture import InstallInfo
from ..patching.backup import BackupInfo, RestoreReport
from ..patching.models import Architecture, PatchOutcome, PatchReport
from ..utils.result import Err, Ok, Result, error_details, error_message, is_err, is_ok, unwrap, unwrap_or
from .async_api import async_apply_patches, async_restore_backup
from .models import CancelToken, LogCallback, PatchPhase, ProgressCallback, ProgressEvent
from .patch_controller import (
    apply_patches,
    detect_install,
    get_backups,
    resolve_definitions,
    restore_patched_files,
)
from .progress_streams import apply_patches_stream

__all__ = [
    "Architecture",
    "BackupInfo",
    "CancelToken",
    "InstallInfo",
    "LogCallback",
    "PatchOutcome",
    "PatchPhase",
    "PatchReport",
    "ProgressCallback",
    "ProgressEvent",
    "RestoreReport",
    "apply_patches",
    "apply_patches_stream",
    "async_apply_patches",
    "async_restore_backup",
    "detect_install",
    "get_backups",
    "resolve_definitions",
    "restore_patched_files",
    "Err",
    "Ok",
    "Result",
    "error_details",
    "error_message",
    "is_ok",
    "is_err",
    "unwrap",
    "unwrap_or",
]
