"""Data model for patch definitions, per-file buffers and run reports."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple


class Architecture(Enum):
    """Architecture set of an install root."""

    X86 = "x86"
    X64 = "x64"
    UNKNOWN = "unknown"

    @property
    def dictionary_name(self) -> Optional[str]:
        if self is Architecture.X86:
            return "patches32"
        if self is Architecture.X64:
            return "patches64"
        return None

    @classmethod
    def parse(cls, value: Any) -> "Architecture":
        """Map user/config spellings ("32", "win64", "x86-64", ...) to a member."""
        if isinstance(value, Architecture):
            return value
        text = str(value or "").strip().lower()
        if text in ("x86", "32", "32bit", "32-bit", "i386", "win32", "patches32"):
            return cls.X86
        if text in ("x64", "64", "64bit", "64-bit", "x86-64", "x86_64", "amd64", "win64", "patches64"):
            return cls.X64
        return cls.UNKNOWN


class PatchOutcome(Enum):
    """Per-entry result. None of these abort a run."""

    APPLIED = "applied"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    INVALID_HEX = "invalid_hex"


class EngineState(Enum):
    IDLE = "idle"
    DEFINITIONS_LOADED = "definitions_loaded"
    FILES_LOADED = "files_loaded"
    PATCHING = "patching"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (EngineState.DONE, EngineState.FAILED, EngineState.CANCELLED)


class PatchPhase(Enum):
    """Progress phases; each owns a contiguous percent range."""

    PARSE = "parse"
    LOAD = "load"
    PATCH = "patch"
    COMMIT = "commit"
    DONE = "done"


@dataclass(frozen=True)
class ProgressEvent:
    """Structured progress message emitted by the engine and forwarded by streams."""

    phase: PatchPhase
    percent: int
    message: str = ""
    detail: Dict[str, Any] = field(default_factory=dict)
    kind: str = "progress"
    result: Optional[Any] = None


@dataclass(frozen=True)
class Pattern:
    """Hex search pattern (``??`` = any byte), write offset and optional replacement override."""

    hex: str
    offset: int = 0
    replacement_override: Optional[str] = None

    def display(self, limit: int = 30) -> str:
        if len(self.hex) > limit:
            return f"{self.hex[:limit]}... ({len(self.hex)} chars)"
        return self.hex


@dataclass(frozen=True)
class PatchEntry:
    """One patch: alternative patterns tried in order, plus the replacement hex."""

    patterns: Tuple[Pattern, ...]
    replacement: str
    line: int = 0

    @property
    def has_alternatives(self) -> bool:
        return len(self.patterns) > 1

    def replacement_for(self, pattern: Pattern) -> str:
        if pattern.replacement_override is not None:
            return pattern.replacement_override
        return self.replacement


@dataclass
class PatchDictionary:
    """Ordered mapping of forward-slash file path -> patch entries."""

    name: str
    files: Dict[str, List[PatchEntry]] = field(default_factory=dict)
    present: bool = True

    def add(self, file_path: str, entry: PatchEntry) -> None:
        self.files.setdefault(file_path, []).append(entry)

    def ensure_file(self, file_path: str) -> None:
        self.files.setdefault(file_path, [])

    @property
    def entry_count(self) -> int:
        return sum(len(entries) for entries in self.files.values())

    def __iter__(self) -> Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def items(self):
        return self.files.items()


@dataclass(frozen=True)
class ParseIssue:
    """Soft parser failure; the offending fragment was skipped."""

    kind: str
    dictionary: str
    message: str
    line: int = 0
    file_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "dictionary": self.dictionary,
            "message": self.message,
            "line": self.line,
            "file_path": self.file_path,
        }


@dataclass
class PatchDocument:
    patches32: PatchDictionary
    patches64: PatchDictionary
    issues: List[ParseIssue] = field(default_factory=list)

    def for_architecture(self, architecture: Architecture) -> Optional[PatchDictionary]:
        if architecture is Architecture.X86:
            return self.patches32
        if architecture is Architecture.X64:
            return self.patches64
        return None

    @property
    def skipped_entries(self) -> int:
        return sum(1 for issue in self.issues if issue.kind in ("entry", "pair"))


@dataclass
class FileState:
    """Pristine bytes of one target file plus its lazily created working copy."""

    reference: str
    path: Path
    original: bytes
    working: Optional[bytearray] = None
    applied: int = 0

    @property
    def modified(self) -> bool:
        return self.working is not None and self.applied > 0

    def write(self, position: int, data: bytes) -> None:
        if self.working is None:
            self.working = bytearray(self.original)
        self.working[position:position + len(data)] = data
        self.applied += 1


@dataclass(frozen=True)
class PatchRecord:
    """Report line for one attempted entry."""

    file_path: str
    entry_index: int
    outcome: PatchOutcome
    pattern: str = ""
    alternative: Optional[int] = None
    match_position: Optional[int] = None
    write_position: Optional[int] = None
    original_hex: str = ""
    new_hex: str = ""
    description: str = ""
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "entry_index": self.entry_index,
            "outcome": self.outcome.value,
            "pattern": self.pattern,
            "alternative": self.alternative,
            "match_position": self.match_position,
            "write_position": self.write_position,
            "original_hex": self.original_hex,
            "new_hex": self.new_hex,
            "description": self.description,
            "reason": self.reason,
        }


@dataclass
class PatchReport:
    install_root: str
    architecture: Architecture
    install_type: Optional[str] = None
    records: List[PatchRecord] = field(default_factory=list)
    parse_issues: List[ParseIssue] = field(default_factory=list)
    backup_dir: Optional[str] = None
    committed_files: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def counts(self) -> Dict[PatchOutcome, int]:
        counter = Counter(record.outcome for record in self.records)
        return {outcome: counter.get(outcome, 0) for outcome in PatchOutcome}

    @property
    def applied(self) -> int:
        return self.counts[PatchOutcome.APPLIED]

    @property
    def has_problems(self) -> bool:
        return any(record.outcome is not PatchOutcome.APPLIED for record in self.records)

    def records_for(self, file_path: str) -> List[PatchRecord]:
        return [record for record in self.records if record.file_path == file_path]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "install_root": self.install_root,
            "architecture": self.architecture.value,
            "install_type": self.install_type,
            "counts": {outcome.value: count for outcome, count in self.counts.items()},
            "records": [record.to_dict() for record in self.records],
            "parse_issues": [issue.to_dict() for issue in self.parse_issues],
            "backup_dir": self.backup_dir,
            "committed_files": list(self.committed_files),
            "cancelled": self.cancelled,
        }
