from __future__ import annotations

import json
import logging

import pytest

from rtx_patcher.logging_config import (
    FastFormatter,
    JsonFormatter,
    LoggingTimer,
    SimplePerformanceLogger,
    _parse_size_string,
    get_logger,
    get_performance_logger,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
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


def _record(level=logging.INFO, msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("rtx_patcher.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_fast_formatter_levels() -> None:
    formatter = FastFormatter()

    assert "INFO    hello" in formatter.format(_record())
    assert "WARNING [rtx_patcher.test] hello" in formatter.format(_record(logging.WARNING))
    assert "ERROR   [rtx_patcher.test] hello" in formatter.format(_record(logging.CRITICAL))
    assert "\033[" not in formatter.format(_record())


def test_fast_formatter_colours() -> None:
    assert FastFormatter(enable_colors=True).format(_record()).endswith("\033[0m")


def test_json_formatter_includes_error_payload() -> None:
    payload = json.loads(JsonFormatter().format(_record(logging.ERROR, "failed", error={"error_code": "X"})))

    assert payload["level"] == "ERROR"
    assert payload["message"] == "failed"
    assert payload["logger"] == "rtx_patcher.test"
    assert payload["error"] == {"error_code": "X"}


@pytest.mark.parametrize(
    "text, expected",
    [("10MB", 10 * 1024 ** 2), ("512KB", 512 * 1024), ("2048", 2048), ("1.5GB", int(1.5 * 1024 ** 3)),
     ("junk", 10 * 1024 ** 2)],
)
def test_parse_size_string(text, expected) -> None:
    assert _parse_size_string(text) == expected


def test_setup_logging_console_only(restore_root_logger) -> None:
    result = setup_logging(log_level="DEBUG", enable_file_logging=False)

    assert set(result["handlers"]) == {"console"}
    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_files(tmp_path, restore_root_logger) -> None:
    result = setup_logging(log_dir=str(tmp_path / "logs"), enable_console_logging=False, structured_json=True)

    assert set(result["handlers"]) == {"main_file", "error_file"}
    logging.getLogger("rtx_patcher.test").warning("disk check")
    for handler in result["handlers"].values():
        handler.flush()

    line = (tmp_path / "logs" / "rtx_patcher.log").read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["message"] == "disk check"
    assert "disk check" in (tmp_path / "logs" / "errors.log").read_text(encoding="utf-8")


def test_json_env_var(monkeypatch, restore_root_logger) -> None:
    monkeypatch.setenv("RTX_PATCHER_LOG_JSON", "yes")

    result = setup_logging(enable_file_logging=False)

    assert isinstance(result["handlers"]["console"].formatter, JsonFormatter)


def test_get_logger_is_namespaced_and_cached() -> None:
    logger = get_logger("engine")

    assert logger.name == "rtx_patcher.engine"
    assert get_logger("engine") is logger


def test_performance_logger_and_timer() -> None:
    perf = SimplePerformanceLogger()
    perf.log_timing("op", 0.25)
    perf.log_timing("op", 0.75)

    stats = perf.get_stats()["op"]
    assert stats["count"] == 2
    assert stats["avg_time"] == pytest.approx(0.5)

    perf.reset()
    assert perf.get_stats() == {}

    with LoggingTimer("test.timer") as timer:
        pass
    assert timer.duration >= 0.0
    assert get_performance_logger().get_stats()["test.timer"]["count"] >= 1
