"""Per-run backups of patched files.

Each run that modifies at least one file gets one directory directly under the
install root, named ``<prefix><timestamp>``. It mirrors the install-relative
paths of the modified files and holds nothing else.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..config.models import BackupConfig
from ..exceptions import BackupFailed, PatcherError
from ..security.security_utils import clear_read_only, ensure_within

if TYPE_CHECKING:
    from ..app.models import CancelToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupInfo:
    path: Path
    created_at: Optional[datetime]
    file_count: int


@dataclass(frozen=True)
class RestoreReport:
    backup_dir: str
    processed: int
    restored: int
    errors: List[str]
    cancelled: bool


def _timestamp(config: BackupConfig, now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(config.timestamp_format)


def backup_dir_name(config: BackupConfig, now: Optional[datetime] = None) -> str:
    return f"{config.dir_prefix}{_timestamp(config, now)}"


def create_backup_dir(install_root: Union[str, Path], config: Optional[BackupConfig] = None,
                      now: Optional[datetime] = None) -> Path:
    """Create the run's backup directory, suffixing ``_N`` if the name is taken."""
    config = config or BackupConfig()
    root = Path(install_root).resolve()
    base_name = backup_dir_name(config, now)
    candidate = root / base_name
    counter = 1
    while candidate.exists():
        candidate = root / f"{base_name}_{counter}"
        counter += 1
    try:
        candidate.mkdir(parents=False)
    except OSError as exc:
        raise BackupFailed(f"Cannot create backup directory: {exc}", backup_dir=str(candidate)) from exc
    logger.info("Created backup directory %s", candidate)
    return candidate


def backup_file(backup_dir: Path, install_root: Union[str, Path], source_path: Path, data: bytes) -> Path:
    """Write the pristine ``data`` of ``source_path`` under its install-relative path."""
    root = Path(install_root).resolve()
    relative = Path(source_path).resolve().relative_to(root)
    target = backup_dir / relative
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise BackupFailed(f"Cannot back up {relative.as_posix()}: {exc}",
                           file_path=str(source_path), backup_dir=str(backup_dir)) from exc
    logger.debug("Backed up %s -> %s", source_path, target)
    return target


def _parse_created(name: str, config: BackupConfig) -> Optional[datetime]:
    stamp = name[len(config.dir_prefix):]
    # strip a collision suffix such as "_1"
    for candidate in (stamp, stamp.rsplit("_", 1)[0]):
        try:
            return datetime.strptime(candidate, config.timestamp_format)
        except ValueError:
            continue
    return None


def list_backups(install_root: Union[str, Path], config: Optional[BackupConfig] = None) -> List[BackupInfo]:
    """Backup directories of an install root, newest first."""
    config = config or BackupConfig()
    root = Path(install_root).resolve()
    if not root.is_dir():
        return []

    backups = []
    for child in root.iterdir():
        if not child.is_dir() or not child.name.startswith(config.dir_prefix):
            continue
        file_count = sum(1 for item in child.rglob("*") if item.is_file())
        backups.append(BackupInfo(child, _parse_created(child.name, config), file_count))

    backups.sort(key=lambda b: (b.created_at or datetime.min, b.path.name), reverse=True)
    return backups


def restore_backup(
    install_root: Union[str, Path],
    backup_dir: Union[str, Path, None] = None,
    *,
    config: Optional[BackupConfig] = None,
    cancel_token: Optional["CancelToken"] = None,
    log_cb: Optional[Callable[[str], None]] = None,
) -> RestoreReport:
    """Copy every file of ``backup_dir`` (default: newest) back over the install."""
    root = Path(install_root).resolve()
    if backup_dir is None:
        available = list_backups(root, config)
        if not available:
            raise BackupFailed(f"No backups found under {root}", details={"phase": "restore"})
        source_dir = available[0].path
    else:
        source_dir = Path(backup_dir)
        if not source_dir.is_absolute():
            source_dir = root / source_dir
    source_dir = source_dir.resolve()
    if not source_dir.is_dir():
        raise BackupFailed(f"Backup directory not found: {source_dir}",
                           backup_dir=str(source_dir), details={"phase": "restore"})

    processed = 0
    restored = 0
    errors: List[str] = []
    cancelled = False

    for item in sorted(source_dir.rglob("*")):
        if not item.is_file():
            continue
        if cancel_token is not None and cancel_token.is_cancelled():
            cancelled = True
            break

        processed += 1
        relative = item.relative_to(source_dir)
        try:
            target = ensure_within(root / relative, root)
            if target.exists():
                clear_read_only(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(item, target)
            restored += 1
            if log_cb is not None:
                log_cb(f"Restored: {relative.as_posix()}")
        except (OSError, PatcherError) as exc:
            msg = f"Restore failed for {relative.as_posix()}: {exc}"
            logger.error(msg)
            errors.append(msg)
            if log_cb is not None:
                log_cb(msg)

    logger.info("Restored %d/%d file(s) from %s", restored, processed, source_dir)
    return RestoreReport(
        backup_dir=str(source_dir),
        processed=processed,
        restored=restored,
        errors=errors,
        cancelled=cancelled,
    )
