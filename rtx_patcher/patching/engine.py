"""Patch engine: load definitions, load files, match, write, back up, commit.

The engine is a one-shot state machine::

    IDLE -> DEFINITIONS_LOADED -> FILES_LOADED -> PATCHING -> COMMITTING -> DONE

``FAILED`` is entered from any non-terminal state when a fatal error is
raised, ``CANCELLED`` when the cancel token fires. Per-entry outcomes never
abort a run; they are collected into the ``PatchReport``. Files committed
before a fatal error or a cancellation stay committed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple, Union

from ..config.models import PatcherConfig
from ..core.architecture import ArchitectureResolver, InstallInfo
from ..exceptions import (
    MalformedPatchDocument,
    MissingTargetFile,
    PatchEngineError,
    PatcherError,
    PatchVerificationFailed,
)
from ..logging_config import LoggingTimer
from ..security.security_utils import clear_read_only
from .backup import backup_file, create_backup_dir
from .descriptions import DescriptionCatalog, load_catalog
from .matcher import PatternMatcher, is_valid_hex, is_valid_pattern
from .models import (
    Architecture,
    EngineState,
    FileState,
    PatchDictionary,
    PatchDocument,
    PatchEntry,
    PatchOutcome,
    PatchPhase,
    PatchRecord,
    PatchReport,
    ProgressEvent,
)
from .parser import PatchDefinitionParser

if TYPE_CHECKING:
    from ..app.models import CancelToken

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], None]


class _Cancelled(Exception):
    """Unwinds the current phase when the cancel token fires."""


class PatchEngine:
    """Applies one patch document to one install root."""

    def __init__(
        self,
        config: Optional[PatcherConfig] = None,
        *,
        resolver: Optional[ArchitectureResolver] = None,
        catalog: Optional[DescriptionCatalog] = None,
        matcher: Optional[PatternMatcher] = None,
        progress_cb: Optional[ProgressSink] = None,
        cancel_token: Optional["CancelToken"] = None,
    ):
        self.config = config or PatcherConfig()
        self.resolver = resolver or ArchitectureResolver(self.config.resolver)
        self.catalog = catalog if catalog is not None else load_catalog(self.config.engine.catalog_path)
        self.matcher = matcher or PatternMatcher()
        self.progress_cb = progress_cb
        self.cancel_token = cancel_token

        self.state = EngineState.IDLE
        self.document: Optional[PatchDocument] = None
        self.dictionary: Optional[PatchDictionary] = None
        self.install: Optional[InstallInfo] = None
        self.files: Dict[str, FileState] = {}
        self.report: Optional[PatchReport] = None

        self._progress_lock = threading.Lock()
        self._entries_done = 0
        self._last_percent = 0
        self._patch_complete = False

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _require(self, *states: EngineState) -> None:
        if self.state not in states:
            expected = ", ".join(s.name for s in states)
            raise PatchEngineError(
                f"Invalid engine state {self.state.name}; expected {expected}",
                phase=self.state.value,
            )

    def _transition(self, state: EngineState) -> None:
        logger.debug("Engine state %s -> %s", self.state.name, state.name)
        self.state = state

    def _check_cancel(self) -> None:
        if self.cancel_token is not None and self.cancel_token.is_cancelled():
            raise _Cancelled()

    def _emit(self, phase: PatchPhase, fraction: float, message: str, **detail) -> None:
        if phase is PatchPhase.DONE:
            percent = 100
        else:
            start, end = self.config.progress.range_for(phase.value)
            fraction = min(max(fraction, 0.0), 1.0)
            percent = start + int((end - start) * fraction)
        with self._progress_lock:
            percent = max(percent, self._last_percent)
            self._last_percent = percent
            if self.progress_cb is not None:
                self.progress_cb(ProgressEvent(phase, percent, message, dict(detail)))

    def _cancel(self) -> PatchReport:
        logger.warning("Patch run cancelled in state %s", self.state.name)
        self._transition(EngineState.CANCELLED)
        if self.report is not None:
            self.report.cancelled = True
        self._emit(PatchPhase.DONE, 1.0, "Cancelled", cancelled=True)
        return self.report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def load_definitions(
        self,
        definitions: Union[str, bytes, PatchDocument],
        install_root: Union[str, Path],
        architecture: Union[str, Architecture, None] = None,
    ) -> PatchDictionary:
        """Parse the definitions, classify the install and select its dictionary."""
        self._require(EngineState.IDLE)
        self._emit(PatchPhase.PARSE, 0.0, "Parsing patch definitions")

        with LoggingTimer("patch.parse"):
            if isinstance(definitions, PatchDocument):
                document = definitions
            else:
                document = PatchDefinitionParser().parse(definitions)

        info = self.resolver.require_architecture(install_root, architecture)
        dictionary = document.for_architecture(info.architecture)
        name = info.architecture.dictionary_name
        if dictionary is None or not dictionary.present:
            raise MalformedPatchDocument(
                f"Patch definitions contain no {name} dictionary for this {info.architecture.value} install",
                details={"architecture": info.architecture.value, "dictionary": name},
            )

        self.document = document
        self.dictionary = dictionary
        self.install = info
        self.report = PatchReport(
            install_root=str(info.root),
            architecture=info.architecture,
            install_type=info.install_type,
            parse_issues=list(document.issues),
        )
        self._transition(EngineState.DEFINITIONS_LOADED)
        logger.info(
            "Selected %s: %d file(s), %d entr(ies) for %s",
            name, len(dictionary), dictionary.entry_count, info.root,
        )
        self._emit(PatchPhase.PARSE, 1.0, f"Loaded {dictionary.entry_count} patch entries",
                   architecture=info.architecture.value, files=len(dictionary),
                   entries=dictionary.entry_count, issues=len(document.issues))
        return dictionary

    def load_files(self) -> Optional[Dict[str, FileState]]:
        """Resolve and read every referenced file; all must exist."""
        self._require(EngineState.DEFINITIONS_LOADED)
        references = list(self.dictionary)
        missing: List[str] = []
        loaded: Dict[str, FileState] = {}
        by_path: Dict[Path, FileState] = {}

        try:
            with LoggingTimer("patch.load"):
                for index, reference in enumerate(references):
                    self._check_cancel()
                    path = self.resolver.resolve_file_path(self.install.root, reference,
                                                           self.install.architecture)
                    shared = by_path.get(path.resolve())
                    if shared is not None:
                        # one FileState per file on disk
                        logger.warning("%s resolves to the same file as %s (%s); entries are merged",
                                       reference, shared.reference, path)
                        loaded[reference] = shared
                        continue
                    if not path.is_file():
                        logger.error("Target file missing: %s (%s)", reference, path)
                        missing.append(reference)
                        continue
                    try:
                        data = path.read_bytes()
                    except OSError as exc:
                        logger.error("Cannot read %s: %s", path, exc)
                        missing.append(reference)
                        continue
                    loaded[reference] = by_path[path.resolve()] = FileState(reference, path, data)
                    self._emit(PatchPhase.LOAD, (index + 1) / len(references),
                               f"Loaded {reference}", file=reference, size=len(data))
        except _Cancelled:
            self._cancel()
            return None

        if missing:
            raise MissingTargetFile(
                f"Missing or unreadable target file(s): {', '.join(missing)}",
                missing=missing,
                details={"install_root": str(self.install.root)},
            )

        self.files = loaded
        self._transition(EngineState.FILES_LOADED)
        self._emit(PatchPhase.LOAD, 1.0, f"Loaded {len(loaded)} file(s)")
        return loaded

    def apply(self) -> PatchReport:
        """Match every entry against its file and fill the working buffers."""
        self._require(EngineState.FILES_LOADED)
        self._transition(EngineState.PATCHING)
        self._entries_done = 0
        total = max(self.dictionary.entry_count, 1)
        self._emit(PatchPhase.PATCH, 0.0, "Applying patches")

        items = self._work_items()
        workers = min(self.config.engine.max_workers, len(items))
        results: List[List[PatchRecord]] = []
        cancelled = False

        with LoggingTimer("patch.apply"):
            if workers > 1:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="patch") as pool:
                    futures = [pool.submit(self._patch_file, fs, groups, total) for fs, groups in items]
                    # merge barrier: collect in dictionary order once every worker finished
                    for future in futures:
                        try:
                            results.append(future.result())
                        except _Cancelled as exc:
                            cancelled = True
                            results.append(exc.args[0] if exc.args else [])
            else:
                for fs, groups in items:
                    try:
                        results.append(self._patch_file(fs, groups, total))
                    except _Cancelled as exc:
                        cancelled = True
                        results.append(exc.args[0] if exc.args else [])
                        break

        for records in results:
            self.report.records.extend(records)

        if cancelled:
            return self._cancel()

        self._patch_complete = True
        counts = self.report.counts
        logger.info(
            "Patching finished: %d applied, %d not found, %d ambiguous, %d invalid",
            counts[PatchOutcome.APPLIED], counts[PatchOutcome.NOT_FOUND],
            counts[PatchOutcome.AMBIGUOUS], counts[PatchOutcome.INVALID_HEX],
        )
        self._emit(PatchPhase.PATCH, 1.0, "Patch application finished",
                   counts={k.value: v for k, v in counts.items()})
        return self.report

    def commit(self) -> PatchReport:
        """Back up and rewrite every modified file, verifying each write."""
        self._require(EngineState.PATCHING)
        if not self._patch_complete:
            raise PatchEngineError("Patches have not been applied", phase="commit")
        self._transition(EngineState.COMMITTING)

        modified = [fs for fs in self._unique_files() if fs.modified]
        if not modified:
            logger.info("No file was modified; nothing to commit")
            self._transition(EngineState.DONE)
            self._emit(PatchPhase.DONE, 1.0, "No changes to write")
            return self.report

        root = self.install.root
        try:
            with LoggingTimer("patch.commit"):
                self._check_cancel()
                backup_dir = create_backup_dir(root, self.config.backup)
                self.report.backup_dir = str(backup_dir)
                for index, fs in enumerate(modified):
                    self._check_cancel()
                    backup_file(backup_dir, root, fs.path, fs.original)
                    self._write_file(fs, backup_dir)
                    self.report.committed_files.append(fs.reference)
                    logger.info("Committed %s (%d patch(es))", fs.reference, fs.applied)
                    self._emit(PatchPhase.COMMIT, (index + 1) / len(modified),
                               f"Wrote {fs.reference}", file=fs.reference, backup_dir=str(backup_dir))
        except _Cancelled:
            return self._cancel()

        self._transition(EngineState.DONE)
        self._emit(PatchPhase.DONE, 1.0, f"Patched {len(modified)} file(s)",
                   backup_dir=self.report.backup_dir)
        return self.report

    def run(
        self,
        definitions: Union[str, bytes, PatchDocument],
        install_root: Union[str, Path],
        architecture: Union[str, Architecture, None] = None,
    ) -> PatchReport:
        """Run every phase; fatal errors leave the engine FAILED and propagate."""
        try:
            self.load_definitions(definitions, install_root, architecture)
            for step in (self.load_files, self.apply, self.commit):
                step()
                if self.state is EngineState.CANCELLED:
                    break
            return self.report
        except PatcherError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            phase = self.state.value
            wrapped = PatchEngineError(f"Unexpected error during {phase}: {exc}", phase=phase,
                                       details={"exception": type(exc).__name__})
            self._fail(wrapped)
            raise wrapped from exc

    def _fail(self, exc: PatcherError) -> None:
        if not self.state.terminal:
            self._transition(EngineState.FAILED)
        logger.error("Patch run failed: %s", exc, extra={"error": exc.to_dict()})

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def _unique_files(self) -> List[FileState]:
        unique: Dict[int, FileState] = {}
        for fs in self.files.values():
            unique.setdefault(id(fs), fs)
        return list(unique.values())

    def _work_items(self) -> List[Tuple[FileState, List[Tuple[str, List[PatchEntry]]]]]:
        """One work item per file on disk, holding the entries of every key that resolves to it."""
        grouped: Dict[int, Tuple[FileState, List[Tuple[str, List[PatchEntry]]]]] = {}
        for reference, entries in self.dictionary.items():
            fs = self.files[reference]
            grouped.setdefault(id(fs), (fs, []))[1].append((reference, entries))
        return list(grouped.values())

    def _patch_file(self, fs: FileState, groups: List[Tuple[str, List[PatchEntry]]],
                    total: int) -> List[PatchRecord]:
        records: List[PatchRecord] = []
        for reference, entries in groups:
            for index, entry in enumerate(entries):
                try:
                    self._check_cancel()
                    record = self.apply_entry(fs, index, entry, reference=reference)
                except _Cancelled:
                    raise _Cancelled(records) from None
                records.append(record)
                with self._progress_lock:
                    self._entries_done += 1
                    done = self._entries_done
                self._emit(PatchPhase.PATCH, done / total, f"{reference} #{index}: {record.outcome.value}",
                           file=reference, entry=index, outcome=record.outcome.value)
        return records

    def apply_entry(self, fs: FileState, index: int, entry: PatchEntry,
                    reference: Optional[str] = None) -> PatchRecord:
        """Try each alternative in order; the first unique, valid, in-bounds match is written.

        ``reference`` names the dictionary key in the record when it differs from
        the key the file was loaded under.
        """
        reference = reference or fs.reference
        original = fs.original
        ambiguous = False
        invalid = False
        reasons: List[str] = []

        for alt_index, pattern in enumerate(entry.patterns):
            if alt_index:
                self._check_cancel()
            replacement = entry.replacement_for(pattern)
            label = f"alternative {alt_index}: " if entry.has_alternatives else ""

            if not is_valid_pattern(pattern.hex):
                invalid = True
                reasons.append(f"{label}invalid pattern hex {pattern.display()}")
                continue
            if not is_valid_hex(replacement):
                invalid = True
                reasons.append(f"{label}invalid replacement hex {replacement!r}")
                continue

            match = self.matcher.find_unique(original, pattern.hex)
            if not match.found:
                reasons.append(f"{label}pattern not found")
                continue
            if match.ambiguous:
                ambiguous = True
                reasons.append(f"{label}pattern found at 0x{match.position:X} and 0x{match.second:X}")
                continue

            new_bytes = bytes.fromhex(replacement)
            position = match.position + pattern.offset
            if position < 0 or position + len(new_bytes) > len(original):
                reasons.append(f"{label}write region 0x{position:X}+{len(new_bytes)} outside file "
                               f"of {len(original)} bytes")
                continue

            old_bytes = original[position:position + len(new_bytes)]
            note = ""
            if old_bytes == new_bytes:
                note = "bytes already match replacement"
            else:
                fs.write(position, new_bytes)
            description = self.catalog.describe(old_bytes.hex(), replacement)
            logger.info("Patched %s #%d at 0x%X %s", reference, index, position, description)
            return PatchRecord(
                file_path=reference,
                entry_index=index,
                outcome=PatchOutcome.APPLIED,
                pattern=pattern.hex,
                alternative=alt_index,
                match_position=match.position,
                write_position=position,
                original_hex=old_bytes.hex(),
                new_hex=replacement,
                description=description,
                reason=note,
            )

        if ambiguous:
            outcome = PatchOutcome.AMBIGUOUS
        elif invalid:
            outcome = PatchOutcome.INVALID_HEX
        else:
            outcome = PatchOutcome.NOT_FOUND
        reason = "; ".join(reasons)
        logger.warning("%s #%d %s: %s", reference, index, outcome.value, reason)
        return PatchRecord(
            file_path=reference,
            entry_index=index,
            outcome=outcome,
            pattern=entry.patterns[0].hex,
            new_hex=entry.replacement,
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Commit helpers
    # ------------------------------------------------------------------

    def _write_file(self, fs: FileState, backup_dir: Path) -> None:
        data = bytes(fs.working)
        path = fs.path
        try:
            if path.exists():
                clear_read_only(path)
                path.unlink()
            path.write_bytes(data)
        except OSError as exc:
            raise PatchVerificationFailed(
                f"Could not write {fs.reference}: {exc}",
                file_path=str(path),
                backup_dir=str(backup_dir),
            ) from exc

        if not self.config.engine.verify_writes:
            return
        try:
            written = path.read_bytes()
        except OSError as exc:
            raise PatchVerificationFailed(
                f"Could not read back {fs.reference}: {exc}",
                file_path=str(path),
                backup_dir=str(backup_dir),
            ) from exc
        if written != data:
            raise PatchVerificationFailed(
                f"Verification failed for {fs.reference}: written bytes differ from the patched buffer",
                file_path=str(path),
                backup_dir=str(backup_dir),
                details={"expected_size": len(data), "actual_size": len(written)},
            )
