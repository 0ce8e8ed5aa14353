"""Tests for logging helper functions."""

import logging

from core.errors import ProcessorError
from core.logging.utilities import log_exception, log_with_context


class TestLogWithContext:
    def test_extra_fields_attached(self, caplog):
        logger = logging.getLogger("test.utilities")
        with caplog.at_level(logging.INFO, logger="test.utilities"):
            log_with_context(logger, logging.INFO, "Revision stored", identity="doc-1", revision=2)

        record = caplog.records[-1]
        assert record.identity == "doc-1"
        assert record.revision == 2

    def test_reserved_keys_dropped(self, caplog):
        logger = logging.getLogger("test.utilities")
        with caplog.at_level(logging.INFO, logger="test.utilities"):
            log_with_context(logger, logging.INFO, "msg", name="clash", identity="doc-1")

        record = caplog.records[-1]
        assert record.name == "test.utilities"
        assert record.identity == "doc-1"


class TestLogException:
    def test_category_and_type_extracted(self, caplog):
        logger = logging.getLogger("test.utilities")
        error = ProcessorError("downstream busy")

        with caplog.at_level(logging.ERROR, logger="test.utilities"):
            log_exception(logger, error, "Dispatch failed", processor="enricher")

        record = caplog.records[-1]
        assert record.error_category == "transient"
        assert record.error_type == "ProcessorError"
        assert record.error_message == "downstream busy"
        assert record.processor == "enricher"
        assert record.exc_info is not None

    def test_long_messages_truncated(self, caplog):
        logger = logging.getLogger("test.utilities")
        with caplog.at_level(logging.ERROR, logger="test.utilities"):
            log_exception(logger, RuntimeError("x" * 1000), "failed", include_traceback=False)

        record = caplog.records[-1]
        assert record.error_message.endswith("...")
        assert len(record.error_message) == 503
        assert record.exc_info is None

    def test_level_respected(self, caplog):
        logger = logging.getLogger("test.utilities")
        with caplog.at_level(logging.WARNING, logger="test.utilities"):
            log_exception(logger, RuntimeError("x"), "warn", level=logging.WARNING)

        assert caplog.records[-1].levelno == logging.WARNING
