"""Tests for the json.dumps default hook."""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path

from core.utils.json_serializers import json_serializer


class Color(Enum):
    RED = "red"


class TestJsonSerializer:
    def test_datetime(self):
        value = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
        assert json_serializer(value) == "2026-01-15T12:00:00+00:00"

    def test_decimal_stays_numeric(self):
        assert json_serializer(Decimal("1.5")) == 1.5

    def test_path(self):
        assert json_serializer(Path("/data/store")) == "/data/store"

    def test_bytes_are_base64(self):
        assert json_serializer(b"\x00\x01\xff") == "AAH/"

    def test_enum_value(self):
        assert json_serializer(Color.RED) == "red"

    def test_used_as_default_hook(self):
        payload = json.dumps({"content": b"hi", "at": datetime(2026, 1, 1, tzinfo=UTC)}, default=json_serializer)
        assert json.loads(payload) == {"content": "aGk=", "at": "2026-01-01T00:00:00+00:00"}
