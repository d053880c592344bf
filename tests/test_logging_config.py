import json
import logging
import sys

from execution_engine.logging_config import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("execution_engine.briefing", logging.INFO, __file__, 10, "Briefing %s", ("ok",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_engine_extras():
    line = JSONFormatter().format(_record(engine_workspace_id="w1", engine_window_days=30, other="ignored"))
    entry = json.loads(line)
    assert entry["message"] == "Briefing ok"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "execution_engine.briefing"
    assert entry["engine_workspace_id"] == "w1"
    assert entry["engine_window_days"] == 30
    assert "other" not in entry
    assert "exception" not in entry


def test_json_formatter_serializes_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    entry = json.loads(JSONFormatter().format(record))
    assert "ValueError: boom" in entry["exception"]


def test_setup_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("json", logging.DEBUG)
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG

        setup_logging("text")
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
