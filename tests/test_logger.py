"""Tests for the structured JSON log formatter."""
import sys
import json
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from logger import JSONFormatter, setup_logging


def _record(msg="Search returned 3/40 candidates", **extra):
    record = logging.LogRecord("services.retrieval_engine", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_core_fields(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.retrieval_engine"
        assert data["message"] == "Search returned 3/40 candidates"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields_are_included(self):
        data = json.loads(JSONFormatter().format(_record(error_code="TIMEOUT_ERROR", error_details={"latency_ms": 30})))

        assert data["error_code"] == "TIMEOUT_ERROR"
        assert data["error_details"] == {"latency_ms": 30}
        assert "pathname" not in data

    def test_exception_info(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


def test_setup_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("DEBUG")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
