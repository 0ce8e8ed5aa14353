"""Document store contract and revision-ordering rules shared by all backends.

``DocumentStore`` owns the invariants: revisions for an identity are
persisted gap-free from 0, an exact duplicate ``put`` is an idempotent
success, and a different document under an existing ``(identity, revision)``
is a ``RevisionConflictError``. Backends only implement raw read/write of a
single revision.

``put`` calls for one identity are serialized by a per-identity
``asyncio.Condition``. A revision that arrives ahead of its predecessor waits
(bounded) for the predecessor to be written by a concurrent writer before
failing with ``OutOfOrderError``. Reads never take the write lock.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from core.errors import (
    DocumentNotFoundError,
    MalformedDocumentError,
    OutOfOrderError,
    RevisionConflictError,
    RevisionNotFoundError,
)
from core.logging import log_exception
from daas_pipeline.common import metrics
from daas_pipeline.document import DaaSDocument, encode_document

logger = logging.getLogger(__name__)

# Fields compared when deciding if a repeated put is a duplicate.
# created_at differs between two instances of the same logical revision.
_IDEMPOTENCY_EXCLUDE = {"created_at"}


@runtime_checkable
class RemoteUploader(Protocol):
    """Remote persistence capability (e.g. object storage).

    Called after a new revision is written locally. Failures are logged and
    never fail the ``put``; the local store is the source of truth.
    """

    async def upload(self, identity: str, revision: int, data: bytes) -> None:
        ...


def same_revision(a: DaaSDocument, b: DaaSDocument) -> bool:
    """True if ``a`` and ``b`` are the same logical revision."""
    return a.model_dump(exclude=_IDEMPOTENCY_EXCLUDE) == b.model_dump(exclude=_IDEMPOTENCY_EXCLUDE)


class DocumentStore(ABC):
    """Revisioned document store.

    Subclasses implement ``_load_latest``, ``_read`` and ``_write``.
    """

    name = "store"

    def __init__(
        self,
        out_of_order_wait_seconds: float = 5.0,
        uploader: RemoteUploader | None = None,
    ) -> None:
        self._out_of_order_wait = out_of_order_wait_seconds
        self._uploader = uploader
        # Per-identity state, held only while a put for the identity is pending
        self._conditions: dict[str, asyncio.Condition] = {}
        self._writers: dict[str, int] = {}
        # identity -> highest persisted revision
        self._latest: dict[str, int] = {}
        self._uploads: set[asyncio.Task] = set()

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abstractmethod
    async def _load_latest(self, identity: str) -> int:
        """Highest revision persisted for ``identity``, or -1 if none."""

    @abstractmethod
    async def _read(self, identity: str, revision: int) -> DaaSDocument:
        """Read a revision known to exist."""

    @abstractmethod
    async def _write(self, document: DaaSDocument, data: bytes) -> None:
        """Durably persist a new revision. Raises StorageDurabilityError."""

    # =========================================================================
    # Contract
    # =========================================================================

    async def put(self, document: DaaSDocument) -> None:
        """Persist a new revision.

        Raises:
            MalformedDocumentError: document has no identity
            RevisionConflictError: revision exists with different content
            OutOfOrderError: predecessor revision never arrived
            StorageDurabilityError: the write itself failed
        """
        identity = document.identity
        if identity is None:
            raise MalformedDocumentError("Cannot store a document without identity")
        revision = document.revision

        condition = self._acquire_condition(identity)
        try:
            async with condition:
                await self._wait_for_turn(condition, document)
                if await self._is_duplicate(document):
                    return

                data = encode_document(document)
                await self._write(document, data)
                self._latest[identity] = revision
                condition.notify_all()
        finally:
            self._release_condition(identity)

        metrics.revisions_stored_counter.labels(store=self.name).inc()
        logger.debug(
            "Stored revision",
            extra={"identity": identity, "revision": revision, "content_length": len(document.content)},
        )

        if self._uploader is not None:
            task = asyncio.create_task(self._upload(identity, revision, data))
            self._uploads.add(task)
            task.add_done_callback(self._uploads.discard)

    async def get(self, identity: str, revision: int | None = None) -> DaaSDocument:
        """Get a revision, or the latest when ``revision`` is omitted.

        Raises:
            DocumentNotFoundError: identity is unknown
            RevisionNotFoundError: identity exists but revision does not
        """
        latest = await self._latest_revision(identity)
        if latest < 0:
            raise DocumentNotFoundError(f"Unknown identity {identity!r}", identity=identity)

        if revision is None:
            revision = latest
        elif revision < 0 or revision > latest:
            raise RevisionNotFoundError(
                f"Revision {revision} of {identity!r} not found (latest is {latest})",
                identity=identity,
                revision=revision,
            )

        return await self._read(identity, revision)

    async def history(self, identity: str) -> list[DaaSDocument]:
        """All revisions in ascending order; empty for an unknown identity."""
        latest = await self._latest_revision(identity)
        return [await self._read(identity, rev) for rev in range(latest + 1)]

    async def latest_revision(self, identity: str) -> int | None:
        latest = await self._latest_revision(identity)
        return latest if latest >= 0 else None

    async def exists(self, identity: str, revision: int | None = None) -> bool:
        latest = await self._latest_revision(identity)
        if revision is None:
            return latest >= 0
        return 0 <= revision <= latest

    async def close(self) -> None:
        """Wait for outstanding remote uploads."""
        if self._uploads:
            await asyncio.gather(*list(self._uploads), return_exceptions=True)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _acquire_condition(self, identity: str) -> asyncio.Condition:
        if identity not in self._conditions:
            self._conditions[identity] = asyncio.Condition()
        self._writers[identity] = self._writers.get(identity, 0) + 1
        return self._conditions[identity]

    def _release_condition(self, identity: str) -> None:
        """Forget the identity's lock and cached revision once no put is pending."""
        self._writers[identity] -= 1
        if self._writers[identity] == 0:
            del self._writers[identity]
            del self._conditions[identity]
            self._latest.pop(identity, None)

    async def _latest_revision(self, identity: str) -> int:
        if identity in self._latest:
            return self._latest[identity]
        return await self._load_latest(identity)

    async def _writer_latest(self, identity: str) -> int:
        """Latest revision as seen by the put holding the identity's condition."""
        if identity not in self._latest:
            self._latest[identity] = await self._load_latest(identity)
        return self._latest[identity]

    async def _wait_for_turn(self, condition: asyncio.Condition, document: DaaSDocument) -> None:
        """Block until ``document.revision <= latest + 1``. Caller holds ``condition``."""
        identity = document.identity
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._out_of_order_wait

        while document.revision > await self._writer_latest(identity) + 1:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                await asyncio.wait_for(condition.wait(), timeout=remaining)
            except TimeoutError:
                break

        latest = await self._writer_latest(identity)
        if document.revision > latest + 1:
            raise OutOfOrderError(
                f"Revision {document.revision} of {identity!r} is out of order "
                f"(expected {latest + 1})",
                identity=identity,
                revision=document.revision,
            )

    async def _is_duplicate(self, document: DaaSDocument) -> bool:
        identity, revision = document.identity, document.revision
        if revision > await self._writer_latest(identity):
            return False

        existing = await self._read(identity, revision)
        if same_revision(existing, document):
            logger.debug(
                "Duplicate put ignored",
                extra={"identity": identity, "revision": revision},
            )
            return True

        raise RevisionConflictError(
            f"Revision {revision} of {identity!r} already stored with different content",
            identity=identity,
            revision=revision,
        )

    async def _upload(self, identity: str, revision: int, data: bytes) -> None:
        try:
            await self._uploader.upload(identity, revision, data)
        except Exception as e:
            metrics.remote_upload_failures_counter.labels(store=self.name).inc()
            log_exception(
                logger,
                e,
                "Remote upload failed, local revision kept",
                level=logging.WARNING,
                include_traceback=False,
                identity=identity,
                revision=revision,
            )


__all__ = [
    "DocumentStore",
    "RemoteUploader",
    "same_revision",
]
