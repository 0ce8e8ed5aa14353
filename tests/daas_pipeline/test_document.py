"""Tests for the DaaS document envelope and its JSON wire form."""

import json
import uuid
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from core.errors import MalformedDocumentError
from daas_pipeline.document import (
    ContentType,
    DaaSDocument,
    SourceInfo,
    decode_document,
    encode_document,
    is_textual_media_type,
    make_identity,
    make_topic,
)


class TestSourceInfo:
    def test_naive_timestamp_taken_as_utc(self):
        info = SourceInfo(source_name="crm", event_timestamp=datetime(2026, 1, 1))
        assert info.event_timestamp.tzinfo == UTC

    def test_blank_source_name_rejected(self):
        with pytest.raises(ValidationError):
            SourceInfo(source_name="   ")

    def test_source_name_stripped(self):
        assert SourceInfo(source_name=" crm ").source_name == "crm"


class TestDaaSDocument:
    def test_defaults(self, source_info):
        doc = DaaSDocument(source_info=source_info)

        assert doc.identity is None
        assert doc.revision == 0
        assert doc.content == b""
        assert doc.privacy_tags == []
        assert doc.created_at.tzinfo is not None

    def test_frozen(self, make_document):
        doc = make_document()
        with pytest.raises(ValidationError):
            doc.revision = 5

    def test_negative_revision_rejected(self, make_document):
        with pytest.raises(ValidationError):
            make_document(revision=-1)

    def test_blank_identity_rejected(self, make_document):
        with pytest.raises(ValidationError):
            make_document(identity=" ")

    def test_text_decoding(self, make_document):
        assert make_document(content="héllo".encode()).text() == "héllo"

    def test_text_on_binary_raises_malformed(self, make_document):
        with pytest.raises(MalformedDocumentError):
            make_document(content=b"\xff\xfe\x00").text()

    def test_is_textual(self, make_document, source_info):
        assert make_document().is_textual
        binary = source_info.model_copy(update={"content_type": ContentType.BINARY})
        assert not make_document(source_info=binary).is_textual


class TestNextRevision:
    def test_increments_and_keeps_identity(self, make_document):
        doc = make_document(revision=2)
        derived = doc.next_revision(content=b"changed")

        assert derived.identity == "doc-1"
        assert derived.revision == 3
        assert derived.content == b"changed"
        assert doc.content == b"hello"
        assert derived.created_at >= doc.created_at

    def test_identity_cannot_be_replaced(self, make_document):
        with pytest.raises(ValueError):
            make_document().next_revision(identity="other")

    def test_requires_identity(self, make_document):
        with pytest.raises(MalformedDocumentError):
            make_document(identity=None).next_revision()

    def test_with_helpers(self, make_document):
        doc = make_document(metadata={"a": "1"}, tags=["x"])

        assert doc.with_metadata(b="2").metadata == {"a": "1", "b": "2"}
        assert doc.with_tags("x", "y").tags == ["x", "y"]
        assert doc.with_privacy_tags([b"\x01"]).privacy_tags == [b"\x01"]
        assert doc.with_identity("doc-2").identity == "doc-2"
        assert doc.has_tag("x")
        assert not doc.has_tag("y")


class TestWireFormat:
    def test_binary_content_survives_round_trip(self, make_document):
        payload = bytes(range(256))
        doc = make_document(content=payload, privacy_tags=[b"\x00\xff", b"pii"], metadata={"k": "v"})

        decoded = decode_document(encode_document(doc))

        assert decoded == doc
        assert decoded.content == payload
        assert decoded.privacy_tags == [b"\x00\xff", b"pii"]

    def test_content_is_base64_on_the_wire(self, make_document):
        wire = json.loads(encode_document(make_document(content=b"hi")))
        assert wire["content"] == "aGk="
        assert wire["source_info"]["source_name"] == "crm"

    def test_decode_accepts_str(self, make_document):
        doc = make_document()
        assert decode_document(encode_document(doc).decode()) == doc

    def test_not_json(self):
        with pytest.raises(MalformedDocumentError):
            decode_document(b"not json")

    def test_missing_source_info(self):
        with pytest.raises(MalformedDocumentError) as exc_info:
            decode_document(b'{"identity": "doc-1", "revision": 0}')
        assert exc_info.value.context["errors"]

    def test_invalid_base64_content(self, make_document):
        wire = json.loads(encode_document(make_document()))
        wire["content"] = "!!not base64!!"
        with pytest.raises(MalformedDocumentError):
            decode_document(json.dumps(wire))

    def test_malformed_is_not_retryable(self):
        with pytest.raises(MalformedDocumentError) as exc_info:
            decode_document(b"{}")
        assert not exc_info.value.is_retryable


class TestIdentityAndTopic:
    def test_deterministic_identity(self):
        info = SourceInfo(source_name="crm", category="sales", subcategory="orders", source_uid="42")
        assert make_identity(info) == "sales~orders~crm~42"
        assert make_identity(info) == make_identity(info)

    def test_content_hash_identity_when_coordinates_missing(self, source_info):
        first = make_identity(source_info, b"payload")
        assert first == make_identity(source_info, b"payload")
        assert len(first) == 36
        assert uuid.UUID(first).version == 5

    def test_content_hash_identity_differs_by_content_and_source(self, source_info):
        base = make_identity(source_info, b"payload")
        assert make_identity(source_info, b"other") != base
        assert make_identity(source_info.model_copy(update={"source_uid": "7"}), b"payload") != base
        later = source_info.event_timestamp.replace(hour=13)
        assert make_identity(source_info.model_copy(update={"event_timestamp": later}), b"payload") != base

    def test_topic_from_source(self, make_document):
        info = SourceInfo(source_name="CRM System", category="Sales", subcategory="orders")
        assert make_topic(make_document(source_info=info)) == "sales.orders.crm_system"

    def test_topic_skips_missing_parts(self, make_document):
        assert make_topic(make_document()) == "crm"


class TestTextualMediaType:
    @pytest.mark.parametrize(
        "media_type",
        ["text/plain", "application/json", "application/ld+json", "TEXT/CSV; charset=utf-8"],
    )
    def test_textual(self, media_type):
        assert is_textual_media_type(media_type)

    @pytest.mark.parametrize("media_type", ["application/pdf", "image/png", "application/octet-stream"])
    def test_binary(self, media_type):
        assert not is_textual_media_type(media_type)
