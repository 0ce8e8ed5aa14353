"""
DaaS document envelope.

A ``DaaSDocument`` wraps arbitrary sourced data (``content``) with its
provenance (``source_info``), a per-identity revision number and opaque
privacy annotations. Documents are immutable: producing a new revision
returns a copy via ``next_revision``.

Wire format is JSON; ``content`` and each privacy tag are standard base64 so
binary payloads survive transport byte-for-byte.
"""

import base64
import binascii
import hashlib
import re
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_serializer,
    field_validator,
)

from core.errors import MalformedDocumentError

__all__ = [
    "ContentType",
    "SourceInfo",
    "DaaSDocument",
    "encode_document",
    "decode_document",
    "make_identity",
    "make_topic",
    "topic_name",
    "is_textual_media_type",
    "IDENTITY_DELIMITER",
]

IDENTITY_DELIMITER = "~"

_IDENTITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "daas-pipeline:identity")

_TEXTUAL_MEDIA_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/yaml",
        "application/x-yaml",
        "application/javascript",
        "application/x-ndjson",
        "application/csv",
    }
)

_TOPIC_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def is_textual_media_type(media_type: str) -> bool:
    """True for media types whose payload is text (``text/*``, JSON, XML, YAML...)."""
    base = media_type.split(";", 1)[0].strip().lower()
    return (
        base.startswith("text/")
        or base in _TEXTUAL_MEDIA_TYPES
        or base.endswith("+json")
        or base.endswith("+xml")
    )


def _b64decode(value: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"{field_name} is not valid base64: {e}") from e


class ContentType(StrEnum):
    """Declared payload shape."""

    TEXT = "text"
    BINARY = "binary"


class SourceInfo(BaseModel):
    """Provenance of a document.

    Attributes:
        source_name: Name of the originating system
        event_timestamp: When the originating event happened
        content_type: Textual vs binary payload indicator
        media_type: Optional MIME type of the payload (e.g. ``application/json``)
        source_uid: Origin system's own id for the record, if any
        category: Optional business category (used for deterministic identity and routing)
        subcategory: Optional business subcategory
        author: Optional author of the data
    """

    model_config = ConfigDict(frozen=True)

    source_name: str = Field(..., min_length=1)
    event_timestamp: datetime = Field(default_factory=_utc_now)
    content_type: ContentType = ContentType.BINARY
    media_type: Optional[str] = None
    source_uid: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    author: Optional[str] = None

    @field_validator("source_name")
    @classmethod
    def validate_source_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source_name cannot be empty or whitespace")
        return v.strip()

    @field_validator("event_timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class DaaSDocument(BaseModel):
    """Immutable DaaS document.

    ``(identity, revision)`` is unique across the store. Revision 0 is the
    genesis state. ``identity`` may be empty only before the Genesis
    processor assigns one.
    """

    model_config = ConfigDict(frozen=True)

    identity: Optional[str] = None
    revision: int = Field(default=0, ge=0)
    source_info: SourceInfo
    content: bytes = b""
    privacy_tags: list[bytes] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("identity")
    @classmethod
    def validate_identity(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("identity cannot be empty or whitespace")
        return v

    @field_validator("content", mode="before")
    @classmethod
    def decode_content(cls, v: Any, info: ValidationInfo) -> Any:
        if info.mode == "json" and isinstance(v, str):
            return _b64decode(v, "content")
        return v

    @field_validator("privacy_tags", mode="before")
    @classmethod
    def decode_privacy_tags(cls, v: Any, info: ValidationInfo) -> Any:
        if info.mode == "json" and isinstance(v, list):
            return [_b64decode(t, "privacy_tags") if isinstance(t, str) else t for t in v]
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_serializer("content", when_used="json")
    def serialize_content(self, content: bytes) -> str:
        return base64.b64encode(content).decode("ascii")

    @field_serializer("privacy_tags", when_used="json")
    def serialize_privacy_tags(self, tags: list[bytes]) -> list[str]:
        return [base64.b64encode(t).decode("ascii") for t in tags]

    @property
    def key(self) -> tuple[Optional[str], int]:
        return (self.identity, self.revision)

    @property
    def is_textual(self) -> bool:
        return self.source_info.content_type == ContentType.TEXT

    def text(self, encoding: str = "utf-8") -> str:
        """Decode ``content`` as text. Raises MalformedDocumentError if it is not."""
        try:
            return self.content.decode(encoding)
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(
                f"Content of {self.identity} is not valid {encoding}", cause=e
            ) from e

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def next_revision(self, **changes: Any) -> "DaaSDocument":
        """Copy with the same identity, ``revision + 1`` and a fresh ``created_at``.

        Any other field may be replaced via keyword arguments; ``identity``
        and ``revision`` may not.
        """
        if self.identity is None:
            raise MalformedDocumentError("Cannot derive a revision from a document without identity")
        if "identity" in changes or "revision" in changes:
            raise ValueError("identity and revision are assigned by next_revision")
        changes["revision"] = self.revision + 1
        changes.setdefault("created_at", _utc_now())
        return self._copy(changes)

    def with_identity(self, identity: str) -> "DaaSDocument":
        return self._copy({"identity": identity})

    def with_metadata(self, **values: str) -> "DaaSDocument":
        return self._copy({"metadata": {**self.metadata, **values}})

    def with_tags(self, *tags: str) -> "DaaSDocument":
        merged = list(self.tags)
        merged.extend(t for t in tags if t not in merged)
        return self._copy({"tags": merged})

    def with_privacy_tags(self, privacy_tags: list[bytes]) -> "DaaSDocument":
        return self._copy({"privacy_tags": list(privacy_tags)})

    def _copy(self, changes: dict[str, Any]) -> "DaaSDocument":
        # model_copy skips validation; re-validate so invariants still hold
        return DaaSDocument.model_validate({**self.model_dump(), **changes})


def encode_document(doc: DaaSDocument) -> bytes:
    """Serialize a document to its JSON wire form."""
    return doc.model_dump_json().encode("utf-8")


def decode_document(data: bytes | str) -> DaaSDocument:
    """Deserialize a document from its JSON wire form.

    Raises:
        MalformedDocumentError: payload is not a valid document
    """
    try:
        return DaaSDocument.model_validate_json(data)
    except ValidationError as e:
        raise MalformedDocumentError(
            f"Invalid DaaS document: {e.error_count()} validation error(s)",
            cause=e,
            context={"errors": e.errors(include_url=False)[:5]},
        ) from e


def make_identity(source_info: SourceInfo, content: bytes = b"") -> str:
    """Identity for a new document.

    ``category~subcategory~source_name~source_uid`` when the source supplies
    all coordinates. Otherwise a UUIDv5 over the source name, event
    timestamp, source uid and a SHA-256 of ``content``. Either way the same
    source record always maps to the same identity, so a replayed ingestion
    lands on the already stored revision 0.
    """
    parts = (
        source_info.category,
        source_info.subcategory,
        source_info.source_name,
        source_info.source_uid,
    )
    if all(parts):
        return IDENTITY_DELIMITER.join(parts)

    key = IDENTITY_DELIMITER.join(
        (
            source_info.source_name,
            source_info.event_timestamp.isoformat(),
            source_info.source_uid or "",
            hashlib.sha256(content).hexdigest(),
        )
    )
    return str(uuid.uuid5(_IDENTITY_NAMESPACE, key))


def _topic_part(value: str) -> str:
    return _TOPIC_UNSAFE.sub("_", value.strip().lower())


def topic_name(*parts: Optional[str]) -> str:
    """Join the non-empty parts into a topic-safe dotted name."""
    return ".".join(_topic_part(p) for p in parts if p)


def make_topic(doc: DaaSDocument) -> str:
    """Routing topic ``category.subcategory.source_name`` (missing parts omitted)."""
    info = doc.source_info
    return topic_name(info.category, info.subcategory, info.source_name)
