from __future__ import annotations

import pytest

from rtx_patcher.exceptions import (
    BackupFailed,
    ConfigurationError,
    InvalidPathError,
    MalformedPatchDocument,
    MissingTargetFile,
    PatchEngineError,
    PatcherError,
    PatchSourceError,
    PatchVerificationFailed,
    UnsupportedArchitecture,
)


@pytest.mark.parametrize(
    "error, code, phase",
    [
        (MalformedPatchDocument("m"), "MALFORMED_DOCUMENT", "parse"),
        (UnsupportedArchitecture("u", install_root="/g"), "UNSUPPORTED_ARCHITECTURE", "definitions"),
        (MissingTargetFile("x", missing=["a.dll"]), "MISSING_TARGET_FILE", "load"),
        (InvalidPathError("p", path="../a"), "INVALID_PATH", "load"),
        (BackupFailed("b", file_path="a.dll", backup_dir="/bk"), "BACKUP_FAILED", "commit"),
        (PatchVerificationFailed("v", file_path="a.dll"), "VERIFICATION_FAILED", "commit"),
        (ConfigurationError("c"), "CONFIG_ERROR", "config"),
        (PatchSourceError("s", url="https://x"), "SOURCE_ERROR", "fetch"),
        (PatchEngineError("e", phase="patching"), "ENGINE_ERROR", "patching"),
    ],
)
def test_codes_and_phases(error, code, phase) -> None:
    assert isinstance(error, PatcherError)
    assert error.error_code == code
    assert error.phase == phase


def test_pipeline_errors_share_a_base() -> None:
    for cls in (MalformedPatchDocument, UnsupportedArchitecture, MissingTargetFile,
                InvalidPathError, BackupFailed, PatchVerificationFailed):
        assert issubclass(cls, PatchEngineError)
    assert not issubclass(ConfigurationError, PatchEngineError)


def test_to_dict() -> None:
    error = BackupFailed("cannot write", file_path="bin/client.dll", backup_dir="/bk")

    data = error.to_dict()

    assert data["error_code"] == "BACKUP_FAILED"
    assert data["message"] == "cannot write"
    assert data["details"] == {"phase": "commit", "file_path": "bin/client.dll", "backup_dir": "/bk"}
    assert "timestamp" in data


def test_missing_target_file_lists_every_file() -> None:
    single = MissingTargetFile("x", missing=["a.dll"])
    several = MissingTargetFile("x", missing=["a.dll", "b.dll"])

    assert single.details["file_path"] == "a.dll"
    assert "file_path" not in several.details
    assert several.missing_files == ["a.dll", "b.dll"]
    assert several.details["missing_files"] == ["a.dll", "b.dll"]


def test_verification_failure_carries_guidance() -> None:
    error = PatchVerificationFailed("differs", file_path="a.dll", backup_dir="/bk")

    assert error.guidance == PatchVerificationFailed.GUIDANCE
    assert error.details["backup_dir"] == "/bk"
    assert "backup" in error.guidance


def test_explicit_phase_in_details_is_kept() -> None:
    error = BackupFailed("none", details={"phase": "restore"})

    assert error.phase == "restore"
