"""
Genesis processor: the root of every data flow.

Validates raw sourced documents, assigns their identity, pins them to
revision 0, attaches privacy tags and persists them. The persisted document
is emitted as the single derived output so the broker republishes it to the
``genesis`` topic for downstream processors.

Duplicate ingestion (a different document already stored as revision 0 of
the same identity) is reported and produces no output. An exact replay of an
already stored document is an idempotent store write and is re-emitted, so a
crash between store and publish never loses the document downstream.
"""

import logging
from datetime import datetime

from core.errors import MalformedDocumentError, RevisionConflictError
from core.logging import log_exception
from daas_pipeline.common import metrics
from daas_pipeline.document import (
    ContentType,
    DaaSDocument,
    SourceInfo,
    is_textual_media_type,
    make_identity,
    make_topic,
    topic_name,
)
from daas_pipeline.privacy import PrivacyTagger
from daas_pipeline.storage import DocumentStore

logger = logging.getLogger(__name__)

GENESIS_PROCESSOR_NAME = "genesis"
GENESIS_METADATA_KEY = "daas.genesis.processor"


class GenesisProcessor:
    """Validate, identify and persist raw documents as revision 0.

    Args:
        store: Shared document store handle
        privacy_tagger: Optional policy engine client; consulted only for
            documents that carry no privacy tags yet
        name: Processor name (and outbound topic)
        route_by_category: Also publish to the category routing topics
            returned by ``extra_topics``
    """

    def __init__(
        self,
        store: DocumentStore,
        privacy_tagger: PrivacyTagger | None = None,
        name: str = GENESIS_PROCESSOR_NAME,
        route_by_category: bool = False,
    ) -> None:
        self.name = name
        self._store = store
        self._privacy_tagger = privacy_tagger
        self._route_by_category = route_by_category

    async def process(self, document: DaaSDocument) -> list[DaaSDocument]:
        try:
            persisted = await self.provision(document)
        except RevisionConflictError as e:
            metrics.duplicate_ingestions_counter.labels(
                source_name=document.source_info.source_name
            ).inc()
            log_exception(
                logger,
                e,
                "Duplicate ingestion, document already stored",
                level=logging.WARNING,
                include_traceback=False,
                identity=e.identity,
                revision=0,
                processor=self.name,
            )
            return []
        return [persisted]

    async def provision(self, document: DaaSDocument) -> DaaSDocument:
        """Validate and persist ``document`` as revision 0.

        Returns:
            The document as stored

        Raises:
            MalformedDocumentError: content does not match its declared type
            RevisionConflictError: identity already has a different revision 0
        """
        validate_content_type(document)

        identity = document.identity or make_identity(document.source_info, document.content)
        changes: dict = {"identity": identity, "revision": 0}

        if self._privacy_tagger is not None and not document.privacy_tags:
            changes["privacy_tags"] = list(await self._privacy_tagger.tag(document))

        if document.metadata.get(GENESIS_METADATA_KEY) != self.name:
            changes["metadata"] = {**document.metadata, GENESIS_METADATA_KEY: self.name}

        genesis = DaaSDocument.model_validate({**document.model_dump(), **changes})
        await self._store.put(genesis)

        logger.info(
            "Document ingested",
            extra={
                "identity": identity,
                "revision": 0,
                "processor": self.name,
                "content_type": genesis.source_info.content_type.value,
                "content_length": len(genesis.content),
            },
        )
        return genesis

    async def create_genesis_document(
        self,
        content: bytes | str,
        content_type: ContentType | str,
        source_info: SourceInfo | dict,
        identity: str | None = None,
        metadata: dict[str, str] | None = None,
        tags: list[str] | None = None,
        created_at: datetime | None = None,
    ) -> tuple[str, int]:
        """Ingestion entry point for external collaborators.

        ``content_type`` overrides the one on ``source_info``. Text content
        given as ``str`` is encoded as UTF-8.

        Returns:
            ``(identity, 0)``
        """
        document = build_raw_document(
            content,
            content_type,
            source_info,
            identity=identity,
            metadata=metadata,
            tags=tags,
            created_at=created_at,
        )
        persisted = await self.provision(document)
        return persisted.identity, persisted.revision

    def extra_topics(self, document: DaaSDocument) -> list[str]:
        """Category routing topics, most to least specific.

        ``category.subcategory.source``, ``category``, ``category.subcategory``
        and ``source``, for those that can be derived.
        """
        if not self._route_by_category:
            return []

        info = document.source_info
        candidates = [make_topic(document)]
        if info.category:
            candidates.append(topic_name(info.category))
            if info.subcategory:
                candidates.append(topic_name(info.category, info.subcategory))
        candidates.append(topic_name(info.source_name))

        topics: list[str] = []
        for topic in candidates:
            if topic and topic != self.name and topic not in topics:
                topics.append(topic)
        return topics

    def __repr__(self) -> str:
        return f"GenesisProcessor(name={self.name!r})"


def validate_content_type(document: DaaSDocument) -> None:
    """Check the declared content type against the payload.

    Raises:
        MalformedDocumentError: on mismatch
    """
    info = document.source_info
    media_type = info.media_type
    context = {"identity": document.identity, "content_type": info.content_type.value}

    if info.content_type == ContentType.TEXT:
        if media_type and not is_textual_media_type(media_type):
            raise MalformedDocumentError(
                f"Text content declared with binary media type {media_type!r}", context=context
            )
        try:
            document.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(
                "Content declared as text is not valid UTF-8", cause=e, context=context
            ) from e
        return

    if media_type and is_textual_media_type(media_type):
        raise MalformedDocumentError(
            f"Binary content declared with text media type {media_type!r}", context=context
        )


def build_raw_document(
    content: bytes | str,
    content_type: ContentType | str,
    source_info: SourceInfo | dict,
    identity: str | None = None,
    metadata: dict[str, str] | None = None,
    tags: list[str] | None = None,
    created_at: datetime | None = None,
) -> DaaSDocument:
    """Build an un-persisted document from raw ingestion inputs."""
    try:
        content_type = ContentType(content_type)
    except ValueError as e:
        raise MalformedDocumentError(f"Unknown content type {content_type!r}", cause=e) from e

    if isinstance(content, str):
        if content_type != ContentType.TEXT:
            raise MalformedDocumentError("String content requires content type 'text'")
        content = content.encode("utf-8")

    if isinstance(source_info, SourceInfo):
        source_info = source_info.model_dump()

    fields: dict = {
        "identity": identity,
        "revision": 0,
        "source_info": {**source_info, "content_type": content_type},
        "content": content,
        "metadata": dict(metadata or {}),
        "tags": list(tags or []),
    }
    if created_at is not None:
        fields["created_at"] = created_at

    try:
        return DaaSDocument.model_validate(fields)
    except ValueError as e:
        # pydantic.ValidationError subclasses ValueError
        raise MalformedDocumentError(f"Invalid genesis document: {e}", cause=e) from e


__all__ = [
    "GenesisProcessor",
    "GENESIS_PROCESSOR_NAME",
    "GENESIS_METADATA_KEY",
    "validate_content_type",
    "build_raw_document",
]
