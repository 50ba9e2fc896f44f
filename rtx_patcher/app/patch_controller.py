"""Controller functions for patch runs, install detection and backup restore.

Thin layer between callers (CLI, async wrappers) and the engine: it resolves
where the definitions come from, wires callbacks and keeps configuration
explicit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

import requests

from ..config.models import PatcherConfig
from ..core.architecture import ArchitectureResolver, InstallInfo
from ..core.sources import fetch_patch_text, load_patch_text
from ..exceptions import PatchSourceError
from ..patching.backup import BackupInfo, RestoreReport, list_backups, restore_backup
from ..patching.engine import PatchEngine
from ..patching.models import Architecture, PatchReport, ProgressEvent
from .models import CancelToken, LogCallback, ProgressCallback

logger = logging.getLogger(__name__)


def detect_install(install_root: Union[str, Path], config: Optional[PatcherConfig] = None) -> InstallInfo:
    config = config or PatcherConfig()
    return ArchitectureResolver(config.resolver).detect(install_root)


def resolve_definitions(
    location: Optional[str] = None,
    *,
    source: Optional[str] = None,
    config: Optional[PatcherConfig] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """Return definition text from a path/URL, a named source, or the first configured source."""
    config = config or PatcherConfig()
    if location:
        return load_patch_text(location, session=session, timeout=config.request_timeout)

    if source:
        selected = config.find_source(source)
        if selected is None:
            known = ", ".join(s.name for s in config.sources) or "none"
            raise PatchSourceError(f"Unknown patch source {source!r} (known: {known})")
    elif config.sources:
        selected = config.sources[0]
    else:
        raise PatchSourceError("No patch definitions given and no sources configured")

    logger.info("Using patch source %s", selected.name)
    return fetch_patch_text(selected, session=session, timeout=config.request_timeout)


def apply_patches(
    install_root: Union[str, Path],
    definitions: Union[str, bytes],
    *,
    config: Optional[PatcherConfig] = None,
    architecture: Union[str, Architecture, None] = None,
    progress_cb: Optional[ProgressCallback] = None,
    log_cb: Optional[LogCallback] = None,
    cancel_token: Optional[CancelToken] = None,
) -> PatchReport:
    """Run the full pipeline against ``install_root``; fatal errors propagate."""

    def _sink(event: ProgressEvent) -> None:
        if progress_cb is not None:
            progress_cb(event)
        if log_cb is not None and event.message:
            log_cb(f"[{event.percent:3d}%] {event.message}")

    engine = PatchEngine(
        config,
        progress_cb=_sink if (progress_cb or log_cb) else None,
        cancel_token=cancel_token,
    )
    return engine.run(definitions, install_root, architecture)


def get_backups(install_root: Union[str, Path], config: Optional[PatcherConfig] = None) -> List[BackupInfo]:
    config = config or PatcherConfig()
    return list_backups(install_root, config.backup)


def restore_patched_files(
    install_root: Union[str, Path],
    backup_dir: Union[str, Path, None] = None,
    *,
    config: Optional[PatcherConfig] = None,
    cancel_token: Optional[CancelToken] = None,
    log_cb: Optional[LogCallback] = None,
) -> RestoreReport:
    config = config or PatcherConfig()
    return restore_backup(install_root, backup_dir, config=config.backup,
                          cancel_token=cancel_token, log_cb=log_cb)
