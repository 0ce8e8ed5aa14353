"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.logging.message_context import get_message_context
from core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Document
        "identity",
        "revision",
        "content_type",
        "content_length",
        "processor",
        "processors",
        # Errors
        "error_category",
        "error_message",
        "error_type",
        "error",
        "reason",
        # Resilience
        "attempt",
        "max_attempts",
        "total_attempts",
        "delay_seconds",
        # Dispatch
        "state",
        "hop",
        "derived_count",
        "duration_ms",
        "batch_size",
        "queue_depth",
        # Operation tracking
        "operation",
        "path",
        # Message transport metadata
        "topic",
        "partition",
        "offset",
        "topics",
        "consumer_group",
        "dlq_topic",
    ]

    # Numeric fields keep numeric types so aggregations work downstream
    NUMERIC_FIELDS = {
        "duration_ms": float,
        "delay_seconds": float,
        "revision": int,
        "content_length": int,
        "attempt": int,
        "max_attempts": int,
        "total_attempts": int,
        "hop": int,
        "derived_count": int,
        "batch_size": int,
        "queue_depth": int,
        "partition": int,
        "offset": int,
    }

    def _ensure_type(self, field: str, value: Any) -> Any:
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        try:
            return self.NUMERIC_FIELDS[field](value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any]) -> None:
        for field, value in get_log_context().items():
            if value:
                log_entry[field] = value

        message_context = get_message_context()
        if message_context["message_topic"]:
            log_entry.update(message_context)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._ensure_type(field, value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)
        self._inject_context(log_entry)

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        color = self.COLORS.get(record.levelno, "")
        if not self._use_colors or not color:
            return level_name
        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, Any]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]

        if log_context["domain"]:
            parts.append(f"[{log_context['domain']}]")
        if log_context["stage"]:
            parts.append(f"[{log_context['stage']}]")

        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord, log_context: dict[str, Any]) -> list[str]:
        identity = getattr(record, "identity", None) or log_context.get("identity")
        revision = getattr(record, "revision", None)
        processor = getattr(record, "processor", None)

        tags = []
        if identity:
            tag = identity if len(identity) <= 24 else f"{identity[:21]}..."
            if revision is not None:
                tag = f"{tag}@{revision}"
            tags.append(f"[{tag}]")
        if processor:
            tags.append(f"[{processor}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        log_context = get_log_context()

        prefix = self._build_prefix(self._format_level_name(record), log_context)
        tags = self._build_tags(record, log_context)

        message = record.getMessage()
        if tags:
            message = f"{' '.join(tags)} {message}"
        line = f"{prefix} - {message}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
