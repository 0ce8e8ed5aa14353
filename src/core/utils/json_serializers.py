"""Shared JSON serialization utilities for type-safe JSON encoding."""

import base64
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, Decimal):
        return True, float(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, (bytes, bytearray)):
        return True, base64.b64encode(bytes(obj)).decode("ascii")
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Type-safe ``default=`` hook for ``json.dumps``.

    - datetime/date -> ISO 8601 string
    - Decimal -> float
    - Path -> string
    - bytes -> standard base64 string
    - Enums -> value
    - Everything else -> string (fallback)

    Keeps numeric fields numeric instead of converting everything to strings.
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "value"):
        return obj.value
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


__all__ = ["json_serializer"]
