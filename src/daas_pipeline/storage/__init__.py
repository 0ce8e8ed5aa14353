"""Revisioned document storage."""

from daas_pipeline.storage.base import DocumentStore, RemoteUploader, same_revision
from daas_pipeline.storage.local import LocalDocumentStore
from daas_pipeline.storage.memory import InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "RemoteUploader",
    "same_revision",
    "LocalDocumentStore",
    "InMemoryDocumentStore",
]
