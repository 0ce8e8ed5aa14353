"""In-memory document store for tests and local development."""

from daas_pipeline.document import DaaSDocument
from daas_pipeline.storage.base import DocumentStore, RemoteUploader


class InMemoryDocumentStore(DocumentStore):
    """Same semantics as the local store, nothing survives the process."""

    name = "memory"

    def __init__(
        self,
        out_of_order_wait_seconds: float = 5.0,
        uploader: RemoteUploader | None = None,
    ) -> None:
        super().__init__(out_of_order_wait_seconds=out_of_order_wait_seconds, uploader=uploader)
        self._documents: dict[str, list[DaaSDocument]] = {}

    async def _load_latest(self, identity: str) -> int:
        return len(self._documents.get(identity, [])) - 1

    async def _read(self, identity: str, revision: int) -> DaaSDocument:
        return self._documents[identity][revision]

    async def _write(self, document: DaaSDocument, data: bytes) -> None:
        self._documents.setdefault(document.identity, []).append(document)

    def identities(self) -> list[str]:
        return sorted(self._documents)
