from __future__ import annotations

import json
import logging

import pytest

import start_rtx_patcher
from conftest import binary_with

pytestmark = pytest.mark.integration

DEFINITIONS = "patches64 = {'bin/win64/client.dll': [[('7401', 0), 'eb']]}\n"


@pytest.fixture(autouse=True)
def _isolated(monkeypatch):
    monkeypatch.delenv("RTX_PATCHER_CONFIG", raising=False)
    monkeypatch.delenv("RTX_PATCHER_LOG_JSON", raising=False)
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)


@pytest.fixture
def patch_script(tmp_path):
    path = tmp_path / "applypatch.py"
    path.write_text(DEFINITIONS, encoding="utf-8")
    return path


def test_detect_json(make_install, capsys) -> None:
    root = make_install("x64")

    code = start_rtx_patcher.main(["detect", str(root), "--json"])

    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["architecture"] == "x64"
    assert data["install_type"] == "gmod_x86-64"


def test_detect_unknown_install(make_install, capsys) -> None:
    code = start_rtx_patcher.main(["detect", str(make_install(kind=None))])

    assert code == 1
    assert "Architecture: unknown" in capsys.readouterr().out


def test_apply_writes_report(make_install, patch_script, tmp_path, capsys) -> None:
    root = make_install("x64", {"bin/win64/client.dll": binary_with({100: b"\x74\x01"})})
    report_path = tmp_path / "report.json"

    code = start_rtx_patcher.main([
        "apply", str(root), "--definitions", str(patch_script), "--report", str(report_path), "--workers", "2",
    ])

    assert code == 0
    out = capsys.readouterr().out
    assert "[APPLIED] bin/win64/client.dll #0 at 0x64" in out
    assert "1 applied, 0 not found, 0 ambiguous, 0 invalid hex" in out
    assert json.loads(report_path.read_text(encoding="utf-8"))["counts"]["applied"] == 1
    assert (root / "bin/win64/client.dll").read_bytes()[100] == 0xEB


def test_apply_fatal_error_exit_code(make_install, patch_script, capsys) -> None:
    root = make_install("x64")

    code = start_rtx_patcher.main(["apply", str(root), "--definitions", str(patch_script)])

    assert code == 1
    assert "Missing or unreadable target file(s): bin/win64/client.dll" in capsys.readouterr().err


@pytest.mark.parametrize("workers", ["0", "500"])
def test_apply_invalid_workers(make_install, patch_script, capsys, workers) -> None:
    code = start_rtx_patcher.main(["apply", str(make_install("x64")), "--definitions", str(patch_script),
                                   "--workers", workers])

    assert code == 2
    assert "--workers must be between 1 and 32" in capsys.readouterr().err


def test_apply_with_arch_override(make_install, patch_script) -> None:
    root = make_install("x86", {"bin/win64/client.dll": binary_with({100: b"\x74\x01"})})

    code = start_rtx_patcher.main(["apply", str(root), "--definitions", str(patch_script), "--arch", "x64"])

    assert code == 0
    assert (root / "bin/win64/client.dll").read_bytes()[100] == 0xEB


def test_restore_and_list_backups(make_install, patch_script, capsys) -> None:
    original = binary_with({100: b"\x74\x01"})
    root = make_install("x64", {"bin/win64/client.dll": original})
    assert start_rtx_patcher.main(["apply", str(root), "--definitions", str(patch_script)]) == 0
    capsys.readouterr()

    assert start_rtx_patcher.main(["list-backups", str(root)]) == 0
    listing = capsys.readouterr().out
    assert listing.startswith("backup_patches_")
    assert "1 file(s)" in listing

    assert start_rtx_patcher.main(["restore", str(root)]) == 0
    assert "Restored 1/1 file(s)" in capsys.readouterr().out
    assert (root / "bin/win64/client.dll").read_bytes() == original


def test_list_backups_empty(make_install, capsys) -> None:
    assert start_rtx_patcher.main(["list-backups", str(make_install("x64"))]) == 0
    assert "No backups found" in capsys.readouterr().out


def test_restore_without_backup_fails(make_install, capsys) -> None:
    assert start_rtx_patcher.main(["restore", str(make_install("x64"))]) == 1
    assert "No backups found" in capsys.readouterr().err


def test_sources(capsys) -> None:
    assert start_rtx_patcher.main(["sources"]) == 0
    out = capsys.readouterr().out
    assert "BlueAmulet/SourceRTXTweaks: https://raw.githubusercontent.com/BlueAmulet/" in out
    assert len(out.strip().splitlines()) == 3


def test_config_file_is_used(tmp_path, capsys) -> None:
    config = tmp_path / "cfg.yaml"
    config.write_text("sources:\n  - name: mine\n    owner: me\n    repo: tweaks\n", encoding="utf-8")

    assert start_rtx_patcher.main(["--config", str(config), "sources"]) == 0
    assert capsys.readouterr().out.strip() == \
        "mine: https://raw.githubusercontent.com/me/tweaks/master/applypatch.py"


def test_invalid_config_file(tmp_path, capsys) -> None:
    config = tmp_path / "cfg.yaml"
    config.write_text("engine: [oops", encoding="utf-8")

    assert start_rtx_patcher.main(["--config", str(config), "sources"]) == 1


def test_usage_errors() -> None:
    assert start_rtx_patcher.main([]) == 2
    assert start_rtx_patcher.main(["apply"]) == 2
    assert start_rtx_patcher.main(["detect", "x", "--bogus"]) == 2


def test_version(capsys) -> None:
    assert start_rtx_patcher.main(["--version"]) == 0
    assert capsys.readouterr().out.startswith("rtx-patcher ")


def test_log_dir_creates_files(make_install, tmp_path) -> None:
    log_dir = tmp_path / "logs"

    start_rtx_patcher.main(["--log-dir", str(log_dir), "detect", str(make_install("x64"))])

    assert (log_dir / "rtx_patcher.log").exists()
    assert (log_dir / "errors.log").exists()


def test_cli_logger_is_namespaced() -> None:
    assert start_rtx_patcher.logger.name == "rtx_patcher.cli"
