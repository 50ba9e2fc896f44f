"""Rendering of run reports for logs, the CLI and JSON export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from .models import PatchOutcome, PatchRecord, PatchReport

BYTES_PER_BLOCK = 4


def format_hex(hex_text: str) -> str:
    """Space-separate bytes, with a double space after every fourth byte."""
    if not hex_text:
        return hex_text
    pairs = [hex_text[i:i + 2] for i in range(0, len(hex_text), 2)]
    out = []
    for index, pair in enumerate(pairs):
        out.append(pair)
        if index + 1 < len(pairs):
            out.append("  " if (index + 1) % BYTES_PER_BLOCK == 0 else " ")
    return "".join(out)


def format_record(record: PatchRecord) -> str:
    head = f"[{record.outcome.value.upper()}] {record.file_path} #{record.entry_index}"
    if record.alternative is not None and record.alternative > 0:
        head += f" (alternative {record.alternative})"

    if record.outcome is PatchOutcome.APPLIED:
        lines = [
            f"{head} at 0x{record.write_position:X}",
            f"    Original: {format_hex(record.original_hex)}",
            f"    New:      {format_hex(record.new_hex)}",
        ]
        if record.description:
            lines.append(f"    {record.description}")
        return "\n".join(lines)

    detail = record.reason or record.pattern
    return f"{head}: {detail}" if detail else head


def summary_line(report: PatchReport) -> str:
    counts = report.counts
    text = (
        f"{counts[PatchOutcome.APPLIED]} applied, "
        f"{counts[PatchOutcome.NOT_FOUND]} not found, "
        f"{counts[PatchOutcome.AMBIGUOUS]} ambiguous, "
        f"{counts[PatchOutcome.INVALID_HEX]} invalid hex"
    )
    if report.parse_issues:
        text += f", {len(report.parse_issues)} definition issue(s)"
    if report.cancelled:
        text += " (cancelled)"
    return text


def format_report(report: PatchReport, include_applied: bool = True) -> str:
    lines: List[str] = [
        f"Install: {report.install_root}",
        f"Architecture: {report.architecture.value}"
        + (f" ({report.install_type})" if report.install_type else ""),
    ]
    for record in report.records:
        if record.outcome is PatchOutcome.APPLIED and not include_applied:
            continue
        lines.append(format_record(record))
    for issue in report.parse_issues:
        where = f" {issue.file_path}" if issue.file_path else ""
        lines.append(f"[DEFINITION] {issue.dictionary} line {issue.line}{where}: {issue.message}")
    if report.committed_files:
        lines.append(f"Modified files: {', '.join(report.committed_files)}")
    if report.backup_dir:
        lines.append(f"Backup: {report.backup_dir}")
    lines.append(summary_line(report))
    return "\n".join(lines)


def write_report_json(report: PatchReport, path: Union[str, Path]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(report.to_dict(), handle, indent=2)
    return target
