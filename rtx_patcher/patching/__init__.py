"""Patch definitions, pattern matching and run reporting.

- Parser: ``patches32``/``patches64`` literal dictionaries -> ``PatchDocument``
- Matcher: wildcard-aware unique byte search
- Backups: per-run backup directories, listing and restore
- Reports: text and JSON rendering

The engine lives in ``rtx_patcher.patching.engine``.
"""

from .backup import BackupInfo, RestoreReport, create_backup_dir, list_backups, restore_backup
from .descriptions import DescriptionCatalog, describe, load_catalog
from .matcher import InvalidHexError, MatchResult, PatternMatcher, compile_pattern, hex_to_bytes
from .models import (
    Architecture,
    EngineState,
    FileState,
    ParseIssue,
    PatchDictionary,
    PatchDocument,
    PatchEntry,
    PatchOutcome,
    PatchPhase,
    PatchRecord,
    PatchReport,
    Pattern,
    ProgressEvent,
)
from .parser import PatchDefinitionParser, extract_patch_dictionaries, parse_patch_document
from .report import format_hex, format_report, summary_line, write_report_json

__all__ = [
    # models
    "Architecture",
    "EngineState",
    "FileState",
    "ParseIssue",
    "PatchDictionary",
    "PatchDocument",
    "PatchEntry",
    "PatchOutcome",
    "PatchPhase",
    "PatchRecord",
    "PatchReport",
    "Pattern",
    "ProgressEvent",
    # parser
    "PatchDefinitionParser",
    "extract_patch_dictionaries",
    "parse_patch_document",
    # matcher
    "InvalidHexError",
    "MatchResult",
    "PatternMatcher",
    "compile_pattern",
    "hex_to_bytes",
    # descriptions
    "DescriptionCatalog",
    "describe",
    "load_catalog",
    # backups
    "BackupInfo",
    "RestoreReport",
    "create_backup_dir",
    "list_backups",
    "restore_backup",
    # reports
    "format_hex",
    "format_report",
    "summary_line",
    "write_report_json",
]
