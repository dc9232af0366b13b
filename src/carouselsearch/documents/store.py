"""Document store collaborators.

The engine only reads documents: single fetch by id and filtered listing.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Protocol, Sequence

from carouselsearch.models import Document


class DocumentStoreError(RuntimeError):
    """Raised when the document store cannot serve a request."""


class DocumentStore(Protocol):
    """Protocol for document store backends."""

    def get(self, collection: str, doc_id: str) -> Document | None:
        """Return the document or ``None`` when it does not exist."""

    def query(self, collection: str, filters: Mapping[str, Any], limit: int) -> Sequence[Document]:
        """Return up to ``limit`` documents whose fields equal every filter value."""


class InMemoryDocumentStore:
    """Dict-backed store keeping insertion order per collection."""

    def __init__(self, collections: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._collections: Dict[str, MutableMapping[str, Dict[str, Any]]] = {}
        for collection, documents in (collections or {}).items():
            for doc_id, fields in documents.items():
                self.put(collection, doc_id, fields)

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryDocumentStore":
        """Load ``{"<collection>": [{"id": ..., **fields}, ...]}`` from disk."""

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DocumentStoreError(f"Failed to load documents from {path}: {exc}") from exc
        store = cls()
        for collection, records in data.items():
            for record in records:
                fields = dict(record)
                doc_id = str(fields.pop("id"))
                store.put(collection, doc_id, fields)
        return store

    def put(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> Document:
        self._collections.setdefault(collection, {})[doc_id] = dict(fields)
        return Document(collection=collection, id=doc_id, fields=dict(fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)

    def get(self, collection: str, doc_id: str) -> Document | None:
        fields = self._collections.get(collection, {}).get(doc_id)
        if fields is None:
            return None
        return Document(collection=collection, id=doc_id, fields=dict(fields))

    def query(self, collection: str, filters: Mapping[str, Any], limit: int) -> Sequence[Document]:
        if limit <= 0:
            return []
        matched: list[Document] = []
        for doc_id, fields in self._collections.get(collection, {}).items():
            if all(fields.get(key) == value for key, value in filters.items()):
                matched.append(Document(collection=collection, id=doc_id, fields=dict(fields)))
                if len(matched) >= limit:
                    break
        return matched

    def count(self, collection: str | None = None) -> int:
        if collection is not None:
            return len(self._collections.get(collection, {}))
        return sum(len(documents) for documents in self._collections.values())
