from __future__ import annotations

from datetime import datetime

import pytest

from conftest import binary_with
from rtx_patcher.app.models import CancelToken
from rtx_patcher.app.patch_controller import apply_patches, get_backups, restore_patched_files
from rtx_patcher.config.models import BackupConfig
from rtx_patcher.exceptions import BackupFailed
from rtx_patcher.patching.backup import (
    backup_dir_name,
    backup_file,
    create_backup_dir,
    list_backups,
    restore_backup,
)

pytestmark = pytest.mark.integration

NOW = datetime(2024, 5, 6, 7, 8, 9)


def test_backup_dir_name() -> None:
    assert backup_dir_name(BackupConfig(), NOW) == "backup_patches_20240506_070809"
    assert backup_dir_name(BackupConfig(dir_prefix="bk-", timestamp_format="%Y"), NOW) == "bk-2024"


def test_create_backup_dir_avoids_collisions(tmp_path) -> None:
    first = create_backup_dir(tmp_path, now=NOW)
    second = create_backup_dir(tmp_path, now=NOW)

    assert first.name == "backup_patches_20240506_070809"
    assert second.name == "backup_patches_20240506_070809_1"


def test_create_backup_dir_failure(tmp_path) -> None:
    with pytest.raises(BackupFailed) as exc_info:
        create_backup_dir(tmp_path / "missing" / "root", now=NOW)

    assert exc_info.value.phase == "commit"


def test_backup_file_mirrors_relative_path(tmp_path) -> None:
    source = tmp_path / "bin" / "win64" / "client.dll"
    source.parent.mkdir(parents=True)
    source.write_bytes(b"patched")
    backup_dir = create_backup_dir(tmp_path, now=NOW)

    target = backup_file(backup_dir, tmp_path, source, b"original")

    assert target == backup_dir / "bin" / "win64" / "client.dll"
    assert target.read_bytes() == b"original"


def test_list_backups_newest_first(tmp_path) -> None:
    older = create_backup_dir(tmp_path, now=datetime(2023, 1, 1))
    newer = create_backup_dir(tmp_path, now=datetime(2024, 1, 1))
    (newer / "a.dll").write_bytes(b"x")
    (tmp_path / "unrelated").mkdir()

    backups = list_backups(tmp_path)

    assert [b.path for b in backups] == [newer, older]
    assert backups[0].created_at == datetime(2024, 1, 1)
    assert backups[0].file_count == 1
    assert backups[1].file_count == 0


def test_list_backups_of_missing_root(tmp_path) -> None:
    assert list_backups(tmp_path / "missing") == []


def test_restore_round_trip(make_install) -> None:
    original = binary_with({100: b"\x74\x01"})
    root = make_install("x64", {"bin/win64/client.dll": original})
    apply_patches(root, "patches64 = {'bin/win64/client.dll': [[('7401', 0), 'eb']]}")
    assert (root / "bin/win64/client.dll").read_bytes() != original
    messages = []

    report = restore_patched_files(root, log_cb=messages.append)

    assert (root / "bin/win64/client.dll").read_bytes() == original
    assert (report.processed, report.restored, report.errors, report.cancelled) == (1, 1, [], False)
    assert messages == ["Restored: bin/win64/client.dll"]
    assert len(get_backups(root)) == 1


def test_restore_named_relative_backup(tmp_path) -> None:
    backup_dir = create_backup_dir(tmp_path, now=NOW)
    (backup_dir / "x.dll").write_bytes(b"old")
    (tmp_path / "x.dll").write_bytes(b"new")
    (tmp_path / "x.dll").chmod(0o444)

    report = restore_backup(tmp_path, backup_dir.name)

    assert report.restored == 1
    assert (tmp_path / "x.dll").read_bytes() == b"old"


def test_restore_cancelled(tmp_path) -> None:
    backup_dir = create_backup_dir(tmp_path, now=NOW)
    (backup_dir / "x.dll").write_bytes(b"old")
    token = CancelToken()
    token.cancel()

    report = restore_backup(tmp_path, backup_dir, cancel_token=token)

    assert report.cancelled
    assert report.processed == 0
    assert not (tmp_path / "x.dll").exists()


def test_restore_without_backups(tmp_path) -> None:
    with pytest.raises(BackupFailed) as exc_info:
        restore_backup(tmp_path)

    assert exc_info.value.phase == "restore"


def test_restore_missing_backup_dir(tmp_path) -> None:
    with pytest.raises(BackupFailed):
        restore_backup(tmp_path, "backup_patches_nope")
