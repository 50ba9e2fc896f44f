#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
RTX Patcher - Command line entry point

    start_rtx_patcher.py detect ROOT
    start_rtx_patcher.py apply ROOT (--definitions FILE|URL | --source NAME) [--arch x86|x64]
    start_rtx_patcher.py restore ROOT [BACKUP_DIR]
    start_rtx_patcher.py list-backups ROOT
    start_rtx_patcher.py sources

Exit codes: 0 success, 1 fatal error, 2 usage error.
"""

import argparse
import json
import sys
from typing import List, Optional

from pydantic import ValidationError

from rtx_patcher.app import api
from rtx_patcher.config import load_config
from rtx_patcher.config.models import EngineConfig
from rtx_patcher.exceptions import PatcherError
from rtx_patcher.logging_config import get_logger, setup_logging
from rtx_patcher.patching.report import format_report, summary_line, write_report_json
from rtx_patcher.version import load_version

logger = get_logger("cli")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rtx-patcher",
        description="RTX Patcher - apply community binary patches to a game install",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {load_version()}")
    parser.add_argument("--config", help="Configuration file (YAML or JSON)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level (default: INFO)")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--log-dir", help="Also write rotating log files to this directory")

    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Classify an install root")
    detect.add_argument("root", help="Game install root")
    detect.add_argument("--json", action="store_true", help="Print the result as JSON")

    apply = sub.add_parser("apply", help="Apply patch definitions to an install root")
    apply.add_argument("root", help="Game install root")
    origin = apply.add_mutually_exclusive_group()
    origin.add_argument("--definitions", metavar="FILE|URL", help="Patch script path or URL")
    origin.add_argument("--source", metavar="NAME", help="Configured patch source name")
    apply.add_argument("--arch", choices=["x86", "x64"], help="Override the detected architecture")
    apply.add_argument("--report", metavar="OUT.json", help="Write the run report as JSON")
    apply.add_argument("--workers", type=int, help="Worker threads for per-file patching")

    restore = sub.add_parser("restore", help="Restore files from a backup directory")
    restore.add_argument("root", help="Game install root")
    restore.add_argument("backup_dir", nargs="?", help="Backup directory (default: newest)")

    backups = sub.add_parser("list-backups", help="List backup directories of an install root")
    backups.add_argument("root", help="Game install root")

    sub.add_parser("sources", help="List configured patch sources")
    return parser


def _cmd_detect(args, config) -> int:
    info = api.detect_install(args.root, config)
    if args.json:
        print(json.dumps(info.to_dict(), indent=2))
    else:
        print(f"Root:         {info.root}")
        print(f"Architecture: {info.architecture.value}")
        print(f"Install type: {info.install_type or '-'}")
        print(f"Marker:       {info.marker or '-'}")
    return EXIT_OK if info.supported else EXIT_FATAL


def _cmd_apply(args, config) -> int:
    if args.workers is not None:
        try:
            engine = EngineConfig.model_validate({**config.engine.model_dump(), "max_workers": args.workers})
        except ValidationError:
            print("--workers must be between 1 and 32", file=sys.stderr)
            return EXIT_USAGE
        config = config.model_copy(update={"engine": engine})

    definitions = api.resolve_definitions(args.definitions, source=args.source, config=config)
    report = api.apply_patches(args.root, definitions, config=config, architecture=args.arch)

    print(format_report(report))
    if args.report:
        path = write_report_json(report, args.report)
        print(f"Report saved to: {path}")
    logger.info(summary_line(report))
    return EXIT_OK


def _cmd_restore(args, config) -> int:
    report = api.restore_patched_files(args.root, args.backup_dir, config=config,
                                       log_cb=lambda msg: print(msg))
    print(f"Restored {report.restored}/{report.processed} file(s) from {report.backup_dir}")
    for error in report.errors:
        print(error, file=sys.stderr)
    return EXIT_OK if not report.errors else EXIT_FATAL


def _cmd_list_backups(args, config) -> int:
    backups = api.get_backups(args.root, config)
    if not backups:
        print("No backups found")
    for backup in backups:
        created = backup.created_at.isoformat(sep=" ") if backup.created_at else "unknown"
        print(f"{backup.path.name}  {created}  {backup.file_count} file(s)")
    return EXIT_OK


def _cmd_sources(args, config) -> int:
    for source in config.sources:
        print(f"{source.name}: {source.url}")
    return EXIT_OK


COMMANDS = {
    "detect": _cmd_detect,
    "apply": _cmd_apply,
    "restore": _cmd_restore,
    "list-backups": _cmd_list_backups,
    "sources": _cmd_sources,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    setup_logging(
        log_level=args.log_level,
        log_dir=args.log_dir,
        enable_file_logging=bool(args.log_dir),
        structured_json=True if args.log_json else None,
    )

    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config)
    except PatcherError as e:
        logger.error(f"{args.command} failed: {e}", extra={"error": e.to_dict()})
        print(f"Error: {e}", file=sys.stderr)
        guidance = e.details.get("guidance")
        if guidance:
            print(guidance, file=sys.stderr)
        return EXIT_FATAL
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
