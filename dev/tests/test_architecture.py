from __future__ import annotations

import pytest

from rtx_patcher.config.models import ArchitectureMarkerConfig, ResolverConfig
from rtx_patcher.core.architecture import LEGACY_INSTALL_TYPE, ArchitectureResolver
from rtx_patcher.exceptions import InvalidPathError, UnsupportedArchitecture
from rtx_patcher.patching.models import Architecture

pytestmark = pytest.mark.integration


@pytest.fixture
def resolver() -> ArchitectureResolver:
    return ArchitectureResolver()


@pytest.mark.parametrize(
    "kind, architecture, install_type",
    [
        ("x64", Architecture.X64, "gmod_x86-64"),
        ("x86", Architecture.X86, "gmod_i386"),
        ("main", Architecture.X86, "gmod_main"),
    ],
)
def test_detect_by_marker(make_install, resolver, kind, architecture, install_type) -> None:
    info = resolver.detect(make_install(kind))

    assert info.architecture is architecture
    assert info.install_type == install_type
    assert info.supported


def test_64_bit_marker_wins_over_32_bit(make_install, resolver) -> None:
    root = make_install("x86", {"bin/win64/gmod.exe": b"MZ"})

    assert resolver.detect(root).architecture is Architecture.X64


def test_content_dir_is_required(tmp_path, resolver) -> None:
    (tmp_path / "bin" / "win64").mkdir(parents=True)
    (tmp_path / "bin" / "win64" / "gmod.exe").write_bytes(b"MZ")

    assert resolver.detect(tmp_path).architecture is Architecture.UNKNOWN


def test_missing_root_is_unknown(tmp_path, resolver) -> None:
    assert resolver.detect(tmp_path / "nope").architecture is Architecture.UNKNOWN


def test_legacy_install_is_unknown(make_install, resolver) -> None:
    info = resolver.detect(make_install("legacy"))

    assert info.architecture is Architecture.UNKNOWN
    assert info.install_type == LEGACY_INSTALL_TYPE
    assert not info.supported


def test_require_architecture_rejects_unknown(make_install, resolver) -> None:
    with pytest.raises(UnsupportedArchitecture) as exc_info:
        resolver.require_architecture(make_install(kind=None))

    assert exc_info.value.error_code == "UNSUPPORTED_ARCHITECTURE"


def test_require_architecture_override(make_install, resolver) -> None:
    root = make_install(kind=None)

    info = resolver.require_architecture(root, "32")

    assert info.architecture is Architecture.X86
    with pytest.raises(UnsupportedArchitecture):
        resolver.require_architecture(root, "arm64")


def test_custom_markers(make_install) -> None:
    config = ResolverConfig(markers=[
        ArchitectureMarkerConfig(path="bin\\linux64\\gmod", architecture="x64", install_type="linux64"),
    ])
    root = make_install(kind=None, files={"bin/linux64/gmod": b"\x7fELF"})

    info = ArchitectureResolver(config).detect(root)

    assert info.marker == "bin/linux64/gmod"
    assert info.architecture is Architecture.X64


def test_resolve_default_path(make_install, resolver) -> None:
    root = make_install("x64", {"bin/win64/client.dll": b"x"})

    path = resolver.resolve_file_path(root, "bin/win64/client.dll", Architecture.X64)

    assert path == (root / "bin/win64/client.dll").resolve()


def test_x86_nested_binary_preferred_only_when_present(make_install, resolver) -> None:
    root = make_install("x86", {"bin/client.dll": b"top"})

    assert resolver.resolve_file_path(root, "bin/client.dll", Architecture.X86) == \
        (root / "bin/client.dll").resolve()

    nested = root / "garrysmod" / "bin" / "client.dll"
    nested.parent.mkdir(parents=True)
    nested.write_bytes(b"nested")

    assert resolver.resolve_file_path(root, "bin/client.dll", Architecture.X86) == nested.resolve()
    assert resolver.resolve_file_path(root, "bin/client.dll", Architecture.X64) == \
        (root / "bin/client.dll").resolve()


def test_non_binary_references_are_not_redirected(make_install, resolver) -> None:
    root = make_install("x86", {"garrysmod/bin/readme.txt": b"x"})

    path = resolver.resolve_file_path(root, "bin/readme.txt", Architecture.X86)

    assert path == (root / "bin/readme.txt").resolve()


def test_relocated_binary_found_in_subdirectory(make_install, resolver) -> None:
    root = make_install("x64", {"zz_mod/bin/win64/client.dll": b"b", "aa_mod/bin/win64/client.dll": b"a"})

    path = resolver.resolve_file_path(root, "bin/win64/client.dll", Architecture.X64)

    assert path == (root / "aa_mod/bin/win64/client.dll").resolve()


def test_missing_file_returns_default_path(make_install) -> None:
    root = make_install("x64")
    resolver = ArchitectureResolver(ResolverConfig(search_subdirectories=False))

    path = resolver.resolve_file_path(root, "bin/win64/client.dll", Architecture.X64)

    assert path == (root / "bin/win64/client.dll").resolve()
    assert not path.exists()


@pytest.mark.parametrize("reference", ["../outside.dll", "/etc/passwd", "bin/../../x.dll", "C:/x.dll"])
def test_escaping_references_raise(make_install, resolver, reference) -> None:
    with pytest.raises(InvalidPathError):
        resolver.resolve_file_path(make_install("x64"), reference, Architecture.X64)


def test_is_binary_reference(resolver) -> None:
    assert resolver.is_binary_reference("bin/client.dll")
    assert resolver.is_binary_reference("BIN/win64/engine.DLL")
    assert not resolver.is_binary_reference("client.dll")
    assert not resolver.is_binary_reference("bin/readme.txt")


def test_install_info_to_dict(make_install, resolver) -> None:
    data = resolver.detect(make_install("x64")).to_dict()

    assert data["architecture"] == "x64"
    assert data["marker"] == "bin/win64/gmod.exe"
