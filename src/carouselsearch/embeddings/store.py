"""Vector index clients."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI

from carouselsearch.metrics.observability import get_logger
from carouselsearch.models import IndexEntry, VectorMatch

LOGGER = get_logger("vector_index")


class VectorIndexClient(Protocol):
    """Protocol for vector index backends. Both operations raise on failure."""

    def upsert(self, entries: Sequence[IndexEntry]) -> None:
        """Insert or overwrite entries by id."""

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> list[VectorMatch]:
        """Return the nearest entries matching ``filter``, best first."""


class ChromaVectorIndex:
    """Chroma-backed vector index."""

    def __init__(
        self,
        collection_name: str = "carouselsearch",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, entries: Sequence[IndexEntry]) -> None:
        if not entries:
            return
        documents = [entry.document for entry in entries]
        self._collection.upsert(
            ids=[entry.id for entry in entries],
            embeddings=[list(entry.vector) for entry in entries],
            metadatas=[dict(entry.metadata) for entry in entries],
            documents=documents if all(doc is not None for doc in documents) else None,
        )

    def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> list[VectorMatch]:
        if top_k <= 0:
            return []
        results = self._collection.query(
            query_embeddings=[list(vector)],
            n_results=top_k,
            where=self._where(filter),
            include=["distances"],
        )
        ids = self._first(results.get("ids"))
        distances = self._first(results.get("distances"))
        matches: list[VectorMatch] = []
        for index, match_id in enumerate(ids):
            distance = distances[index] if index < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            matches.append(VectorMatch(id=str(match_id), score=score))
        return matches

    def count(self) -> int:
        return int(self._collection.count())

    @staticmethod
    def _where(filter: Mapping[str, Mapping[str, Any]] | None) -> dict | None:
        if not filter:
            return None
        clauses = [{key: dict(condition)} for key, condition in filter.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _first(value: object) -> list:
        if isinstance(value, list) and value:
            return list(value[0] or [])
        return []


class VectorIndexAccessor:
    """Lazily builds the vector index client once and hands out the same instance.

    ``get()`` returns ``None`` when the index is not configured or the client
    could not be constructed; callers treat that as "index unavailable".
    """

    def __init__(self, factory: Callable[[], VectorIndexClient] | None) -> None:
        self._factory = factory
        self._client: VectorIndexClient | None = None

    @classmethod
    def of(cls, client: VectorIndexClient) -> "VectorIndexAccessor":
        return cls(lambda: client)

    @classmethod
    def disabled(cls) -> "VectorIndexAccessor":
        return cls(None)

    @property
    def is_configured(self) -> bool:
        return self._factory is not None

    def get(self) -> VectorIndexClient | None:
        if self._factory is None:
            LOGGER.warning("vector_index.not_configured")
            return None
        if self._client is None:
            try:
                self._client = self._factory()
            except Exception as exc:
                LOGGER.error("vector_index.init_failed", error=str(exc))
                return None
            LOGGER.info("vector_index.initialized")
        return self._client


def chroma_factory(
    collection_name: str,
    *,
    host: str | None = None,
    port: int | None = None,
    ssl: bool = False,
    persist_directory: str | Path | None = None,
) -> Callable[[], ChromaVectorIndex]:
    """Return a factory building a :class:`ChromaVectorIndex` from connection settings."""

    def build() -> ChromaVectorIndex:
        client: ClientAPI | None = None
        if host:
            client = chromadb.HttpClient(host=host, port=port or 8000, ssl=ssl)
        return ChromaVectorIndex(
            collection_name,
            client=client,
            persist_directory=None if client else persist_directory,
        )

    return build
