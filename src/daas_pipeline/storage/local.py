"""Local filesystem document store.

File structure:
    <root>/
      <url-quoted identity>/
        0000000000.json
        0000000001.json
        ...

Each revision is one JSON file in the document wire format. Writes go to a
temp file which is flushed and fsynced, then atomically renamed into place;
the directory is fsynced afterwards so the rename itself survives a crash.
Leftover ``*.tmp`` files from an interrupted write are ignored.

Limitations:
- Single-process writers only (no cross-process file locking)
"""

import asyncio
import logging
import os
from pathlib import Path
from urllib.parse import quote

from core.errors import StorageDurabilityError, classify_os_error
from daas_pipeline.document import DaaSDocument, decode_document
from daas_pipeline.storage.base import DocumentStore, RemoteUploader

logger = logging.getLogger(__name__)

_REVISION_WIDTH = 10
_SUFFIX = ".json"


class LocalDocumentStore(DocumentStore):
    """Document store backed by one JSON file per revision."""

    name = "local"

    def __init__(
        self,
        storage_path: str | Path,
        out_of_order_wait_seconds: float = 5.0,
        uploader: RemoteUploader | None = None,
        fsync: bool = True,
    ) -> None:
        super().__init__(out_of_order_wait_seconds=out_of_order_wait_seconds, uploader=uploader)
        self._base_path = Path(storage_path)
        self._fsync = fsync

        logger.info(
            "LocalDocumentStore initialized",
            extra={"path": str(self._base_path)},
        )

    @property
    def path(self) -> Path:
        return self._base_path

    async def _load_latest(self, identity: str) -> int:
        return await asyncio.to_thread(self._scan_latest, identity)

    async def _read(self, identity: str, revision: int) -> DaaSDocument:
        file_path = self._revision_path(identity, revision)
        data = await asyncio.to_thread(file_path.read_bytes)
        return decode_document(data)

    async def _write(self, document: DaaSDocument, data: bytes) -> None:
        file_path = self._revision_path(document.identity, document.revision)
        try:
            await asyncio.to_thread(self._write_atomic, file_path, data)
        except OSError as e:
            raise StorageDurabilityError(
                f"Failed to persist revision {document.revision} of {document.identity!r}: {e}",
                identity=document.identity,
                revision=document.revision,
                cause=e,
                context={"path": str(file_path), "os_error_category": classify_os_error(e).value},
            ) from e

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _identity_dir(self, identity: str) -> Path:
        return self._base_path / quote(identity, safe="")

    def _revision_path(self, identity: str, revision: int) -> Path:
        return self._identity_dir(identity) / f"{revision:0{_REVISION_WIDTH}d}{_SUFFIX}"

    def _scan_latest(self, identity: str) -> int:
        directory = self._identity_dir(identity)
        if not directory.is_dir():
            return -1

        revisions = set()
        for entry in directory.iterdir():
            if entry.suffix != _SUFFIX or not entry.stem.isdigit():
                continue
            revisions.add(int(entry.stem))

        # Only the gap-free prefix counts
        latest = -1
        while latest + 1 in revisions:
            latest += 1
        if len(revisions) != latest + 1:
            logger.warning(
                "Ignoring revisions beyond a gap",
                extra={"identity": identity, "revision": latest, "path": str(directory)},
            )
        return latest

    def _write_atomic(self, file_path: Path, data: bytes) -> None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = file_path.with_name(file_path.name + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            if self._fsync:
                os.fsync(f.fileno())

        os.replace(tmp_path, file_path)

        if self._fsync and hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(file_path.parent, os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)


__all__ = [
    "LocalDocumentStore",
]
