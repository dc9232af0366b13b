"""Shared domain models used across the retrieval engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Collection, Mapping, Sequence, Tuple

GLOBAL_TENANT = "global"
DEFAULT_GLOBAL_COLLECTIONS: frozenset[str] = frozenset({"carouselTemplates"})


class CollectionKind(str, Enum):
    """Kind of document held by a collection; selects the text rules."""

    CAROUSEL = "carousel"
    TEMPLATE = "template"

    @classmethod
    def from_collection(
        cls,
        collection: str,
        kinds: Mapping[str, "CollectionKind"] | None = None,
    ) -> "CollectionKind":
        """Look ``collection`` up in ``kinds``; unknown names use the template rules."""

        return (COLLECTION_KINDS if kinds is None else kinds).get(collection, cls.TEMPLATE)


COLLECTION_KINDS: dict[str, CollectionKind] = {
    "carousels": CollectionKind.CAROUSEL,
    "carouselTemplates": CollectionKind.TEMPLATE,
}


@dataclass(frozen=True)
class TenantScope:
    """Visibility rule for a collection: global (no tenant) or owned by one tenant.

    The same scope drives the metadata written to the vector index, the
    filter used when querying it and the filter used when listing documents
    from the store, so isolation is identical on write and read.
    """

    tenant_id: str | None = None

    @classmethod
    def resolve(
        cls,
        collection: str,
        tenant_id: str | None,
        *,
        global_collections: Collection[str] = DEFAULT_GLOBAL_COLLECTIONS,
    ) -> "TenantScope":
        if collection in global_collections:
            return cls(None)
        if not tenant_id or tenant_id == GLOBAL_TENANT:
            return cls(None)
        return cls(tenant_id)

    @property
    def is_global(self) -> bool:
        return self.tenant_id is None

    def metadata(self, collection: str) -> dict[str, str]:
        metadata = {"collection": collection}
        if self.tenant_id is not None:
            metadata["tenant_id"] = self.tenant_id
        return metadata

    def vector_filter(self, collection: str) -> dict[str, dict[str, str]]:
        return {key: {"$eq": value} for key, value in self.metadata(collection).items()}

    def store_filter(self, tenant_field: str) -> dict[str, str]:
        if self.tenant_id is None:
            return {}
        return {tenant_field: self.tenant_id}


@dataclass(frozen=True)
class Document:
    """Record owned by the document store; read-only for the engine."""

    collection: str
    id: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexEntry:
    """Vector plus metadata written to the vector index for one document."""

    id: str
    vector: Tuple[float, ...]
    metadata: Mapping[str, str]
    document: str | None = None


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float


@dataclass(frozen=True)
class SearchHit:
    """Document returned by a search, with its relevance score."""

    id: str
    score: float | None
    fields: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.fields)
        payload["id"] = self.id
        payload["score"] = self.score
        return payload


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    NOT_FOUND = "not_found"
    EMBEDDING_FAILED = "embedding_failed"
    INDEX_UNAVAILABLE = "index_unavailable"
    STORE_FAILURE = "store_failure"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class UpsertResult:
    success: bool
    collection: str
    doc_id: str
    indexed: bool
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def failed(cls, collection: str, doc_id: str, error: str, kind: ErrorKind) -> "UpsertResult":
        return cls(success=False, collection=collection, doc_id=doc_id, indexed=False, error=error, error_kind=kind)


@dataclass(frozen=True)
class SearchResult:
    success: bool
    results: Sequence[SearchHit] = ()
    error: str | None = None
    error_kind: ErrorKind | None = None
    strategy: str | None = None

    @classmethod
    def failed(cls, error: str, kind: ErrorKind) -> "SearchResult":
        return cls(success=False, results=[], error=error, error_kind=kind)

    @property
    def ids(self) -> list[str]:
        return [hit.id for hit in self.results]


@dataclass(frozen=True)
class BulkIndexResult:
    success: bool
    count: int
    error: str | None = None
    error_kind: ErrorKind | None = None
