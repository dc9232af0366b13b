"""Search strategies tried in order by the search service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from carouselsearch.documents.store import DocumentStore
from carouselsearch.embeddings.service import EmbeddingProvider
from carouselsearch.embeddings.store import VectorIndexAccessor
from carouselsearch.metrics.observability import RetrievalMetrics, get_logger
from carouselsearch.models import (
    COLLECTION_KINDS,
    DEFAULT_GLOBAL_COLLECTIONS,
    CollectionKind,
    ErrorKind,
    SearchHit,
    SearchResult,
    TenantScope,
    VectorMatch,
)
from carouselsearch.retrieval.ranking import LexicalWeights, rank_documents

SEMANTIC = "semantic"
LEXICAL = "lexical"


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration shared by indexing and search."""

    default_top_k: int = 6
    bulk_index_limit: int = 50
    candidate_limit: int = 100
    tenant_field: str = "userId"
    global_collections: frozenset[str] = DEFAULT_GLOBAL_COLLECTIONS
    weights: LexicalWeights = field(default_factory=LexicalWeights)
    collection_kinds: Mapping[str, CollectionKind] = field(default_factory=lambda: dict(COLLECTION_KINDS))

    def scope(self, collection: str, tenant_id: str | None) -> TenantScope:
        return TenantScope.resolve(collection, tenant_id, global_collections=self.global_collections)

    def kind(self, collection: str) -> CollectionKind:
        return CollectionKind.from_collection(collection, self.collection_kinds)


@dataclass(frozen=True)
class SearchRequest:
    collection: str
    tenant_id: str | None
    query: str
    top_k: int
    scope: TenantScope
    kind: CollectionKind = CollectionKind.TEMPLATE


class SearchStrategy(Protocol):
    """One way of answering a search. ``None`` means "not applicable, try the next"."""

    name: str

    def search(self, request: SearchRequest) -> SearchResult | None:
        """Return a result, or ``None`` to defer to the next strategy."""


class SemanticSearchStrategy:
    """Nearest-neighbour search over the vector index, hydrated from the store."""

    name = SEMANTIC

    def __init__(self, embedder: EmbeddingProvider, index: VectorIndexAccessor, store: DocumentStore) -> None:
        self._embedder = embedder
        self._index = index
        self._store = store
        self._logger = get_logger("search.semantic")

    def search(self, request: SearchRequest) -> SearchResult | None:
        if not self._embedder.is_configured or not self._index.is_configured:
            return self._skip("not_configured", request)
        try:
            vector = self._embedder.embed(request.query, query=True)
            if vector is None:
                return self._skip("embedding_failed", request)
            client = self._index.get()
            if client is None:
                return self._skip("index_unavailable", request)
            matches = client.query(vector, request.top_k, request.scope.vector_filter(request.collection))
            if not matches:
                return SearchResult(success=True, results=[], strategy=self.name)
            hits = self._hydrate(request.collection, matches)
        except Exception as exc:
            self._logger.error("search.semantic_failed", collection=request.collection, error=str(exc))
            return self._skip("error", request)
        return SearchResult(success=True, results=hits, strategy=self.name)

    def _hydrate(self, collection: str, matches: Sequence[VectorMatch]) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for match in matches:
            try:
                document = self._store.get(collection, match.id)
            except Exception as exc:
                self._logger.warning("search.hydrate_failed", collection=collection, doc_id=match.id, error=str(exc))
                RetrievalMetrics.hydration_misses.inc()
                continue
            if document is None:
                self._logger.warning("search.hydrate_missing", collection=collection, doc_id=match.id)
                RetrievalMetrics.hydration_misses.inc()
                continue
            hits.append(SearchHit(id=match.id, score=match.score, fields=document.fields))
        return hits

    def _skip(self, reason: str, request: SearchRequest) -> None:
        self._logger.info("search.fallback", reason=reason, collection=request.collection)
        RetrievalMetrics.observe_fallback(reason)
        return None


class LexicalSearchStrategy:
    """Term-matching ranking over a bounded window of store documents."""

    name = LEXICAL

    def __init__(self, store: DocumentStore, config: RetrievalConfig | None = None) -> None:
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("search.lexical")

    def search(self, request: SearchRequest) -> SearchResult:
        try:
            candidates = self._store.query(
                request.collection,
                request.scope.store_filter(self._config.tenant_field),
                self._config.candidate_limit,
            )
        except Exception as exc:
            self._logger.error("search.lexical_store_failed", collection=request.collection, error=str(exc))
            return SearchResult.failed(str(exc), ErrorKind.STORE_FAILURE)
        RetrievalMetrics.lexical_candidates.observe(len(candidates))
        hits = rank_documents(
            candidates,
            request.query,
            kind=request.kind,
            top_k=request.top_k,
            weights=self._config.weights,
        )
        self._logger.info(
            "search.lexical_complete",
            collection=request.collection,
            candidate_count=len(candidates),
            hit_count=len(hits),
        )
        return SearchResult(success=True, results=hits, strategy=self.name)
