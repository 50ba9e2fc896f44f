#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
RTX Patcher - Install classification and file resolution

An install root is classified by probing marker executables in configured
order (64-bit first). Patch file references are mapped onto the install root,
following the 32-bit layout where binaries live under ``garrysmod/bin``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional, Union

from ..config.models import ResolverConfig
from ..exceptions import UnsupportedArchitecture
from ..patching.models import Architecture
from ..security.security_utils import ensure_within, resolve_reference

logger = logging.getLogger(__name__)

LEGACY_INSTALL_TYPE = "legacy"


@dataclass(frozen=True)
class InstallInfo:
    """Result of probing an install root."""

    root: Path
    architecture: Architecture
    install_type: Optional[str] = None
    marker: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.architecture is not Architecture.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": str(self.root),
            "architecture": self.architecture.value,
            "install_type": self.install_type,
            "marker": self.marker,
        }


class ArchitectureResolver:
    """Classifies install roots and resolves patch file references to disk paths."""

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def detect(self, install_root: Union[str, Path]) -> InstallInfo:
        root = Path(install_root).resolve()
        if not root.is_dir():
            logger.warning(f"Install root is not a directory: {root}")
            return InstallInfo(root, Architecture.UNKNOWN)

        if not (root / self.config.content_dir).is_dir():
            logger.warning(f"No '{self.config.content_dir}' directory under {root}")
            return InstallInfo(root, Architecture.UNKNOWN)

        for marker in self.config.markers:
            if root.joinpath(*PurePosixPath(marker.path).parts).is_file():
                architecture = Architecture.parse(marker.architecture)
                logger.info(f"Detected {marker.install_type} ({architecture.value}) via {marker.path}")
                return InstallInfo(root, architecture, marker.install_type, marker.path)

        for legacy in self.config.legacy_markers:
            if root.joinpath(*PurePosixPath(legacy).parts).is_file():
                logger.warning(f"Legacy install detected via {legacy}; not supported")
                return InstallInfo(root, Architecture.UNKNOWN, LEGACY_INSTALL_TYPE, legacy)

        logger.warning(f"No known executable found under {root}")
        return InstallInfo(root, Architecture.UNKNOWN)

    def require_architecture(self, install_root: Union[str, Path],
                             override: Union[str, Architecture, None] = None) -> InstallInfo:
        """Detect the install, apply an explicit override, and refuse unknown results."""
        info = self.detect(install_root)
        if override is not None:
            forced = Architecture.parse(override)
            if forced is Architecture.UNKNOWN:
                raise UnsupportedArchitecture(f"Unrecognized architecture: {override!r}",
                                              install_root=str(info.root))
            if forced is not info.architecture:
                logger.info(f"Architecture forced to {forced.value} (detected {info.architecture.value})")
            info = InstallInfo(info.root, forced, info.install_type, info.marker)

        if not info.supported:
            reason = "legacy installs are not supported" if info.install_type == LEGACY_INSTALL_TYPE \
                else "no supported game executable found"
            raise UnsupportedArchitecture(
                f"Cannot determine architecture of {info.root}: {reason}",
                install_root=str(info.root),
                install_type=info.install_type,
            )
        return info

    # ------------------------------------------------------------------
    # File resolution
    # ------------------------------------------------------------------

    def is_binary_reference(self, reference: str) -> bool:
        path = PurePosixPath(reference)
        return (
            len(path.parts) > 1
            and path.parts[0].lower() == self.config.binaries_dir.lower()
            and path.suffix.lower() in self.config.binary_extensions
        )

    def resolve_file_path(self, install_root: Union[str, Path], reference: str,
                          architecture: Architecture) -> Path:
        """Map a forward-slash reference to a path under ``install_root``.

        The returned path may not exist; callers decide whether that is fatal.
        Raises ``InvalidPathError`` for references escaping the root.
        """
        root = Path(install_root).resolve()
        default = resolve_reference(root, reference)
        binary = self.is_binary_reference(reference)

        if binary and architecture is Architecture.X86 and self.config.nested_binaries_root:
            nested = resolve_reference(root, f"{self.config.nested_binaries_root}/{reference}")
            if nested.is_file():
                logger.debug(f"Resolved {reference} to nested path {nested}")
                return nested

        if default.exists():
            return default

        if binary and self.config.search_subdirectories:
            relocated = self._search_subdirectories(root, reference)
            if relocated is not None:
                logger.info(f"Resolved relocated binary {reference} to {relocated}")
                return relocated

        return default

    def _search_subdirectories(self, root: Path, reference: str) -> Optional[Path]:
        try:
            children = sorted(child for child in root.iterdir() if child.is_dir())
        except OSError as e:
            logger.warning(f"Cannot list {root}: {e}")
            return None
        parts = PurePosixPath(reference).parts
        for child in children:
            candidate = child.joinpath(*parts)
            if candidate.is_file():
                return ensure_within(candidate, root)
        return None
