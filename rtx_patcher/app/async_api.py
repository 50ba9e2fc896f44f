"""Async wrappers for controller operations."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Union

from ..config.models import PatcherConfig
from ..patching.backup import RestoreReport
from ..patching.models import Architecture, PatchReport
from ..utils.result import Err, Ok, Result
from .models import CancelToken, ProgressCallback
from .patch_controller import apply_patches, restore_patched_files


async def async_apply_patches(
    install_root: Union[str, Path],
    definitions: Union[str, bytes],
    *,
    config: Optional[PatcherConfig] = None,
    architecture: Union[str, Architecture, None] = None,
    progress_cb: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancelToken] = None,
) -> Result[PatchReport]:
    try:
        result = await asyncio.to_thread(
            apply_patches,
            install_root,
            definitions,
            config=config,
            architecture=architecture,
            progress_cb=progress_cb,
            cancel_token=cancel_token,
        )
        return Ok(result)
    except Exception as exc:
        return Err(exc)


async def async_restore_backup(
    install_root: Union[str, Path],
    backup_dir: Union[str, Path, None] = None,
    *,
    config: Optional[PatcherConfig] = None,
    cancel_token: Optional[CancelToken] = None,
) -> Result[RestoreReport]:
    try:
        result = await asyncio.to_thread(
            restore_patched_files,
            install_root,
            backup_dir,
            config=config,
            cancel_token=cancel_token,
        )
        return Ok(result)
    except Exception as exc:
        return Err(exc)
