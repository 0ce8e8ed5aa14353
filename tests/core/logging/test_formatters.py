"""Tests for JSON and console log formatters."""

import json
import logging
import sys

import pytest

from core.errors import TransportError
from core.logging.context import clear_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.message_context import MessageLogContext


def _make_record(
    msg="test message",
    level=logging.INFO,
    name="test.logger",
    exc_info=None,
    **extras,
):
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    @pytest.fixture(autouse=True)
    def clear_context(self):
        clear_log_context()
        yield
        clear_log_context()

    def test_formats_basic_json_with_required_fields(self):
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "test.logger"
        assert output["message"] == "test message"
        assert output["ts"].endswith("Z")

    def test_includes_worker_context(self):
        set_log_context(stage="broker", worker_id="daas-broker-brave-blue-fox", domain="daas")
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["stage"] == "broker"
        assert output["worker_id"] == "daas-broker-brave-blue-fox"
        assert output["domain"] == "daas"

    def test_omits_empty_context(self):
        output = json.loads(JSONFormatter().format(_make_record()))
        assert "stage" not in output
        assert "worker_id" not in output

    def test_extracts_document_fields(self):
        record = _make_record(identity="doc-1", revision=2, processor="genesis", state="dispatching")
        output = json.loads(JSONFormatter().format(record))

        assert output["identity"] == "doc-1"
        assert output["revision"] == 2
        assert output["processor"] == "genesis"
        assert output["state"] == "dispatching"

    def test_numeric_fields_coerced(self):
        record = _make_record(revision="3", attempt="2", delay_seconds="0.5", hop="x")
        output = json.loads(JSONFormatter().format(record))

        assert output["revision"] == 3
        assert output["attempt"] == 2
        assert output["delay_seconds"] == 0.5
        assert output["hop"] is None

    def test_ignores_unlisted_extras(self):
        output = json.loads(JSONFormatter().format(_make_record(secret="hunter2")))
        assert "secret" not in output

    def test_includes_message_context(self):
        with MessageLogContext(topic="genesis", partition=1, offset=42, key="doc-1"):
            output = json.loads(JSONFormatter().format(_make_record()))

        assert output["message_topic"] == "genesis"
        assert output["message_partition"] == 1
        assert output["message_offset"] == 42
        assert output["message_key"] == "doc-1"

    def test_file_location_only_for_debug_and_error(self):
        info = json.loads(JSONFormatter().format(_make_record()))
        error = json.loads(JSONFormatter().format(_make_record(level=logging.ERROR)))

        assert "file" not in info
        assert error["file"] == "test.py:42"

    def test_formats_exception(self):
        try:
            raise TransportError("publish failed")
        except TransportError:
            exc_info = sys.exc_info()

        output = json.loads(JSONFormatter().format(_make_record(level=logging.ERROR, exc_info=exc_info)))

        assert output["exception"]["type"] == "TransportError"
        assert output["exception"]["message"] == "publish failed"
        assert "Traceback" in output["exception"]["stacktrace"]

    def test_bytes_extras_serialized(self):
        record = _make_record(error=b"\x00\xff")
        output = json.loads(JSONFormatter().format(record))
        assert output["error"] == "AP8="


class TestConsoleFormatter:

    @pytest.fixture(autouse=True)
    def clear_context(self):
        clear_log_context()
        yield
        clear_log_context()

    def test_plain_message(self):
        line = ConsoleFormatter().format(_make_record())
        assert line.endswith("INFO - test message")

    def test_identity_revision_and_processor_tags(self):
        record = _make_record(identity="doc-1", revision=0, processor="genesis")
        line = ConsoleFormatter().format(record)
        assert "[doc-1@0] [genesis] test message" in line

    def test_long_identity_truncated(self):
        record = _make_record(identity="x" * 40)
        line = ConsoleFormatter().format(record)
        assert f"[{'x' * 21}...]" in line

    def test_stage_and_domain_prefix(self):
        set_log_context(stage="broker", domain="daas")
        line = ConsoleFormatter().format(_make_record())
        assert "[daas] - [broker]" in line

    def test_exception_appended(self):
        try:
            raise ValueError("bad")
        except ValueError:
            exc_info = sys.exc_info()

        line = ConsoleFormatter().format(_make_record(level=logging.ERROR, exc_info=exc_info))
        assert "ValueError: bad" in line
