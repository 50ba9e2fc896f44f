#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""RTX Patcher - Path safety checks.

Patch definitions come from remote repositories, so every file reference is
treated as untrusted input: it must be relative, must not traverse upwards and
must resolve inside the install root.
"""

import logging
import os
import re
from pathlib import Path, PurePosixPath
from typing import Union

from ..exceptions import InvalidPathError

logger = logging.getLogger(__name__)

_DRIVE_RE = re.compile(r"^[a-zA-Z]:")


def is_valid_directory(path: Union[str, Path], must_exist: bool = True) -> bool:
    """Check whether ``path`` is (or could be) a directory."""
    try:
        path_obj = Path(path).resolve()
    except (OSError, RuntimeError) as e:
        logger.error(f"Path validation failed for {path}: {e}")
        return False

    if must_exist and not path_obj.exists():
        logger.warning(f"Directory does not exist: {path_obj}")
        return False
    if path_obj.exists() and not path_obj.is_dir():
        logger.warning(f"Path is not a directory: {path_obj}")
        return False
    return True


def is_path_traversal_attack(path: str) -> bool:
    """Detect typical path traversal patterns."""
    suspicious_patterns = [
        r'\.{2}/', r'\.{2}\\',
        r'/\.{2}', r'\\\.{2}',
        r'^\.{2}$', r'^\.{2}/',
        r'%2e%2e', r'%2E%2E',
    ]

    for pattern in suspicious_patterns:
        if re.search(pattern, path):
            logger.warning(f"Possible path traversal detected: {path}")
            return True
    return False


def is_safe_relative_reference(reference: str) -> bool:
    """Check a patch file reference (no traversal, no absolute paths, no drives, no NULs)."""
    if not reference:
        return False
    if "\x00" in reference:
        return False
    if reference.startswith(('/', '\\')):
        return False
    if _DRIVE_RE.match(reference):
        return False
    if is_path_traversal_attack(reference):
        return False
    parts = PurePosixPath(reference.replace("\\", "/")).parts
    return ".." not in parts


def ensure_within(path: Union[str, Path], root: Union[str, Path]) -> Path:
    """Resolve ``path`` and make sure it lies under ``root`` (prefix-safe)."""
    resolved = Path(path).resolve()
    root_resolved = Path(root).resolve()
    try:
        resolved.relative_to(root_resolved)
    except ValueError:
        logger.warning(f"Security warning: path outside install root denied: {resolved}")
        raise InvalidPathError(f"Path escapes the install root: {path}", path=str(path))
    return resolved


def resolve_reference(root: Union[str, Path], reference: str) -> Path:
    """Join a forward-slash reference onto ``root`` after validating it."""
    if not is_safe_relative_reference(reference):
        raise InvalidPathError(f"Unsafe file reference in patch definitions: {reference!r}", path=reference)
    candidate = Path(root).joinpath(*PurePosixPath(reference.replace("\\", "/")).parts)
    return ensure_within(candidate, root)


def clear_read_only(path: Union[str, Path]) -> None:
    """Add the owner-write bit so the file can be replaced."""
    target = Path(path)
    mode = target.stat().st_mode
    if not mode & 0o200:
        os.chmod(target, mode | 0o200)
