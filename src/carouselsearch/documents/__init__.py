"""Document store collaborators."""

from .store import DocumentStore, DocumentStoreError, InMemoryDocumentStore

__all__ = ["DocumentStore", "DocumentStoreError", "InMemoryDocumentStore"]
