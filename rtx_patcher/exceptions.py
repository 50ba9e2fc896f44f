#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
RTX Patcher - Consolidated Exception Classes

All project errors live here. Fatal errors are raised and abort the current
run; per-entry patch outcomes (not found, ambiguous, invalid hex) are never
raised, they are collected into the run report instead.
"""

from datetime import datetime
from typing import Dict, Any, Iterable, Optional


class PatcherError(Exception):
    """Base class for all project-specific errors."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code or "ERROR"
        self.details = details or {}
        self.timestamp = datetime.now()

    @property
    def phase(self) -> Optional[str]:
        return self.details.get('phase')

    def to_dict(self) -> Dict[str, Any]:
        """Converts the exception to a dictionary for structured logging."""
        return {
            'error_code': self.error_code,
            'message': str(self),
            'details': self.details,
            'timestamp': self.timestamp.isoformat()
        }


def _with_context(details: Optional[Dict[str, Any]], phase: Optional[str] = None,
                  file_path: Optional[str] = None) -> Dict[str, Any]:
    merged = dict(details or {})
    if phase:
        merged.setdefault('phase', phase)
    if file_path:
        merged['file_path'] = str(file_path)
    return merged


# =====================================================================================================
# Configuration and source errors
# =====================================================================================================

class ConfigurationError(PatcherError):
    """Raised when a configuration file cannot be read or validated."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIG_ERROR", _with_context(details, "config", file_path))


class PatchSourceError(PatcherError):
    """Raised when patch definitions cannot be fetched or read."""

    def __init__(self, message: str, url: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        source_details = _with_context(details, "fetch")
        if url:
            source_details['url'] = url
        super().__init__(message, "SOURCE_ERROR", source_details)


# =====================================================================================================
# Fatal pipeline errors
# =====================================================================================================

class PatchEngineError(PatcherError):
    """Base class for fatal errors raised by the patch pipeline."""

    def __init__(self, message: str, error_code: Optional[str] = None,
                 phase: Optional[str] = None,
                 file_path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code or "ENGINE_ERROR", _with_context(details, phase, file_path))


class MalformedPatchDocument(PatchEngineError):
    """Raised when the definition text holds no usable patch dictionary."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "MALFORMED_DOCUMENT", "parse", None, details)


class UnsupportedArchitecture(PatchEngineError):
    """Raised when the install root cannot be classified as 32-bit or 64-bit."""

    def __init__(self, message: str, install_root: Optional[str] = None,
                 install_type: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        arch_details = dict(details or {})
        if install_root:
            arch_details['install_root'] = str(install_root)
        if install_type:
            arch_details['install_type'] = install_type
        super().__init__(message, "UNSUPPORTED_ARCHITECTURE", "definitions", None, arch_details)


class MissingTargetFile(PatchEngineError):
    """Raised when one or more referenced files are missing or unreadable."""

    def __init__(self, message: str, missing: Iterable[str] = (),
                 details: Optional[Dict[str, Any]] = None):
        missing_list = [str(m) for m in missing]
        missing_details = dict(details or {})
        missing_details['missing_files'] = missing_list
        file_path = missing_list[0] if len(missing_list) == 1 else None
        super().__init__(message, "MISSING_TARGET_FILE", "load", file_path, missing_details)
        self.missing_files = missing_list


class InvalidPathError(PatchEngineError):
    """Raised when a file reference would resolve outside the install root."""

    def __init__(self, message: str, path: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_PATH", "load", path, details)


class BackupFailed(PatchEngineError):
    """Raised when the pristine copy of a file cannot be written to the backup directory."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 backup_dir: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        backup_details = dict(details or {})
        if backup_dir:
            backup_details['backup_dir'] = str(backup_dir)
        super().__init__(message, "BACKUP_FAILED", "commit", file_path, backup_details)


class PatchVerificationFailed(PatchEngineError):
    """Raised when a patched file could not be written or reads back differently."""

    GUIDANCE = (
        "Close the game and any tool holding the file open, make sure the file is not "
        "read-only and that you have write permission (run elevated if needed). "
        "The original file is preserved in the backup directory."
    )

    def __init__(self, message: str, file_path: Optional[str] = None,
                 backup_dir: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        verify_details = dict(details or {})
        if backup_dir:
            verify_details['backup_dir'] = str(backup_dir)
        verify_details['guidance'] = self.GUIDANCE
        super().__init__(message, "VERIFICATION_FAILED", "commit", file_path, verify_details)

    @property
    def guidance(self) -> str:
        return self.details['guidance']
