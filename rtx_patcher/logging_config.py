#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
Logging setup for RTX Patcher

- Console handler with level-dependent formats (optional ANSI colours)
- Size-rotating main log plus a WARNING-and-above error log
- Optional one-object-per-line JSON output
- Lightweight phase timing via ``LoggingTimer``
"""

import logging
import logging.handlers
import os
import sys
import time
import threading
import json
from collections import defaultdict
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Optional, Dict, Any

ROOT_LOGGER_NAME = "rtx_patcher"
JSON_ENV_VAR = "RTX_PATCHER_LOG_JSON"
SLOW_OPERATION_SECONDS = 1.0

# =====================================================================================================
# Formatters
# =====================================================================================================

class FastFormatter(logging.Formatter):
    """Level-dependent ``{``-style formatter."""

    def __init__(self, enable_colors: bool = False):
        super().__init__()
        self.enable_colors = enable_colors

        self._formatters = {
            level: logging.Formatter(fmt, style='{', datefmt='%H:%M:%S')
            for level, fmt in {
                logging.ERROR: "[{asctime}] ERROR   [{name}] {message}",
                logging.WARNING: "[{asctime}] WARNING [{name}] {message}",
                logging.INFO: "[{asctime}] INFO    {message}",
                logging.DEBUG: "[{asctime}] DEBUG   {name}:{lineno} - {message}",
            }.items()
        }

        self.colors = {
            logging.ERROR: '\033[91m',
            logging.WARNING: '\033[93m',
            logging.INFO: '\033[92m',
            logging.DEBUG: '\033[94m',
        } if enable_colors else {}

    def format(self, record):
        level = record.levelno
        if level >= logging.ERROR:
            level = logging.ERROR
        formatter = self._formatters.get(level, self._formatters[logging.INFO])
        text = formatter.format(record)
        color = self.colors.get(level)
        return f"{color}{text}\033[0m" if color else text


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "thread": record.threadName,
            "process": record.process,
        }
        error = getattr(record, "error", None)
        if error is not None:
            payload["error"] = error
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

# =====================================================================================================
# Performance logger
# =====================================================================================================

class SimplePerformanceLogger:
    """Accumulates operation timings; only slow operations are logged above DEBUG."""

    def __init__(self, name: str = f"{ROOT_LOGGER_NAME}.performance"):
        self.logger = logging.getLogger(name)
        self.metrics = defaultdict(float)
        self.counts = defaultdict(int)
        self._lock = threading.Lock()

    def log_timing(self, operation: str, duration: float):
        with self._lock:
            self.metrics[operation] += duration
            self.counts[operation] += 1

        if duration > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"SLOW: {operation} took {duration:.2f}s")
        else:
            self.logger.debug(f"{operation} took {duration:.3f}s")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = {}
            for operation in self.metrics:
                count = self.counts[operation]
                total = self.metrics[operation]
                stats[operation] = {
                    'count': count,
                    'total_time': total,
                    'avg_time': total / count if count > 0 else 0
                }
            return stats

    def reset(self):
        with self._lock:
            self.metrics.clear()
            self.counts.clear()

# =====================================================================================================
# Setup
# =====================================================================================================

def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    enable_file_logging: bool = True,
    enable_console_logging: bool = True,
    max_log_size: str = "10MB",
    backup_count: int = 3,
    structured_json: Optional[bool] = None
) -> Dict[str, Any]:
    """Configure the root logger and return the installed handlers."""
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
    log_dir_path = Path(log_dir) if log_dir else Path("logs")
    size_bytes = _parse_size_string(max_log_size)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = {}
    use_json = structured_json if structured_json is not None else _env_bool(JSON_ENV_VAR)

    if enable_console_logging:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)

        enable_colors = (hasattr(sys.stderr, 'isatty') and
                         sys.stderr.isatty() and
                         os.environ.get('TERM') != 'dumb')

        console_handler.setFormatter(JsonFormatter() if use_json else FastFormatter(enable_colors=enable_colors))
        root_logger.addHandler(console_handler)
        handlers['console'] = console_handler

    if enable_file_logging:
        log_dir_path.mkdir(parents=True, exist_ok=True)

        main_handler = logging.handlers.RotatingFileHandler(
            str(log_dir_path / "rtx_patcher.log"),
            maxBytes=size_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        main_handler.setLevel(numeric_level)
        main_handler.setFormatter(JsonFormatter() if use_json else FastFormatter())
        root_logger.addHandler(main_handler)
        handlers['main_file'] = main_handler

        error_handler = logging.handlers.RotatingFileHandler(
            str(log_dir_path / "errors.log"),
            maxBytes=size_bytes // 2,
            backupCount=backup_count,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.WARNING)
        error_handler.setFormatter(JsonFormatter() if use_json else FastFormatter())
        root_logger.addHandler(error_handler)
        handlers['error_file'] = error_handler

    logging.getLogger(ROOT_LOGGER_NAME).debug(
        f"Logging initialized: level={log_level} file={enable_file_logging} json={use_json}"
    )
    return {
        'handlers': handlers,
        'log_dir': log_dir_path
    }

# =====================================================================================================
# Utility functions
# =====================================================================================================

def _parse_size_string(size_str: str) -> int:
    """Parse size string ("10MB", "512KB", "2048") into bytes."""
    size_str = str(size_str).upper().strip()

    multipliers = {
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
        'B': 1,
    }

    for suffix, multiplier in multipliers.items():
        if size_str.endswith(suffix):
            try:
                return int(float(size_str[:-len(suffix)].strip()) * multiplier)
            except ValueError:
                continue

    try:
        return int(float(size_str))
    except ValueError:
        pass

    return 10 * 1024 * 1024


@lru_cache(maxsize=32)
def get_logger(name: str) -> logging.Logger:
    """Get cached logger instance."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

# =====================================================================================================
# Performance monitoring
# =====================================================================================================

_performance_logger = SimplePerformanceLogger()


def get_performance_logger() -> SimplePerformanceLogger:
    return _performance_logger


class LoggingTimer:
    """Simple timing context manager."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time:
            self.duration = time.perf_counter() - self.start_time
            _performance_logger.log_timing(self.operation_name, self.duration)
