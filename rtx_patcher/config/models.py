from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _BaseConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class PatchSourceConfig(_BaseConfigModel):
    """A community repository publishing a patch script."""

    name: str
    owner: str
    repo: str
    path: str = "applypatch.py"
    branch: str = "master"
    base_url: str = "https://raw.githubusercontent.com"

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.owner}/{self.repo}/{self.branch}/{self.path.lstrip('/')}"


class ArchitectureMarkerConfig(_BaseConfigModel):
    path: str
    architecture: Literal["x86", "x64"]
    install_type: str

    @field_validator("path")
    @classmethod
    def _forward_slashes(cls, v: str) -> str:
        return v.replace("\\", "/").strip("/")


def _default_markers() -> List[ArchitectureMarkerConfig]:
    return [
        ArchitectureMarkerConfig(path="bin/win64/gmod.exe", architecture="x64", install_type="gmod_x86-64"),
        ArchitectureMarkerConfig(path="bin/gmod.exe", architecture="x86", install_type="gmod_i386"),
        ArchitectureMarkerConfig(path="gmod.exe", architecture="x86", install_type="gmod_main"),
    ]


class ResolverConfig(_BaseConfigModel):
    content_dir: str = "garrysmod"
    markers: List[ArchitectureMarkerConfig] = Field(default_factory=_default_markers)
    legacy_markers: List[str] = Field(default_factory=lambda: ["hl2.exe"])
    binaries_dir: str = "bin"
    nested_binaries_root: str = "garrysmod"
    binary_extensions: List[str] = Field(default_factory=lambda: [".dll", ".so"])
    search_subdirectories: bool = True

    @field_validator("binary_extensions")
    @classmethod
    def _dotted(cls, v: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class BackupConfig(_BaseConfigModel):
    dir_prefix: str = "backup_patches_"
    timestamp_format: str = "%Y%m%d_%H%M%S"


class ProgressConfig(_BaseConfigModel):
    """Percent ranges per phase; together they cover 0-100 without gaps."""

    parse: Tuple[int, int] = (0, 10)
    load: Tuple[int, int] = (10, 30)
    patch: Tuple[int, int] = (30, 90)
    commit: Tuple[int, int] = (90, 100)

    @model_validator(mode="after")
    def _contiguous(self) -> "ProgressConfig":
        ranges = [self.parse, self.load, self.patch, self.commit]
        if ranges[0][0] != 0 or ranges[-1][1] != 100:
            raise ValueError("progress ranges must span 0-100")
        for (start, end), (next_start, _) in zip(ranges, ranges[1:] + [(100, 100)]):
            if start > end:
                raise ValueError(f"progress range {start}-{end} is reversed")
            if end != next_start:
                raise ValueError("progress ranges must be contiguous")
        return self

    def range_for(self, phase: str) -> Tuple[int, int]:
        return getattr(self, phase)


class EngineConfig(_BaseConfigModel):
    max_workers: int = Field(default=1, ge=1, le=32)
    verify_writes: bool = True
    catalog_path: Optional[str] = None


def _default_sources() -> List[PatchSourceConfig]:
    return [
        PatchSourceConfig(name="BlueAmulet/SourceRTXTweaks", owner="BlueAmulet", repo="SourceRTXTweaks",
                          branch="master"),
        PatchSourceConfig(name="sambow23/SourceRTXTweaks", owner="sambow23", repo="SourceRTXTweaks",
                          branch="main"),
        PatchSourceConfig(name="sambow23/SourceRTXTweaks (perf)", owner="sambow23", repo="SourceRTXTweaks",
                          branch="perf"),
    ]


class PatcherConfig(_BaseConfigModel):
    sources: List[PatchSourceConfig] = Field(default_factory=_default_sources)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    request_timeout: float = Field(default=30.0, gt=0)

    def find_source(self, name: str) -> Optional[PatchSourceConfig]:
        wanted = name.strip().lower()
        for source in self.sources:
            if source.name.lower() == wanted:
                return source
        return None


def validate_config(payload: Dict[str, Any]) -> PatcherConfig:
    return PatcherConfig.model_validate(payload or {})
