"""Search orchestration: semantic first, lexical when semantic is not possible."""

from __future__ import annotations

from typing import Sequence

from carouselsearch.documents.store import DocumentStore
from carouselsearch.embeddings.service import EmbeddingProvider
from carouselsearch.embeddings.store import VectorIndexAccessor
from carouselsearch.metrics.observability import RetrievalMetrics, TimedSection, get_logger
from carouselsearch.models import ErrorKind, SearchResult
from carouselsearch.retrieval.service import (
    LexicalSearchStrategy,
    RetrievalConfig,
    SearchRequest,
    SearchStrategy,
    SemanticSearchStrategy,
)

STORE_NOT_CONFIGURED = "Document store not configured"


class SearchService:
    """Runs a search through an ordered chain of strategies.

    The first strategy returning a result wins. The default chain is semantic
    search followed by lexical ranking, which always answers. A missing
    document store is fatal because every strategy reads from it.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndexAccessor,
        store: DocumentStore | None,
        config: RetrievalConfig | None = None,
        strategies: Sequence[SearchStrategy] | None = None,
    ) -> None:
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("search")
        self._lexical: LexicalSearchStrategy | None = None
        if store is not None:
            self._lexical = LexicalSearchStrategy(store, self._config)
        if strategies is not None:
            self._strategies = list(strategies)
        elif store is not None:
            self._strategies = [SemanticSearchStrategy(embedder, index, store), self._lexical]
        else:
            self._strategies = []

    def search_vectors(
        self,
        collection: str,
        tenant_id: str | None,
        query: str,
        top_k: int | None = None,
    ) -> SearchResult:
        if self._store is None:
            return SearchResult.failed(STORE_NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED)
        request = self._request(collection, tenant_id, query, top_k)
        for strategy in self._strategies:
            with TimedSection() as timer:
                try:
                    result = strategy.search(request)
                except Exception as exc:
                    self._logger.error("search.strategy_failed", strategy=strategy.name, error=str(exc))
                    result = None
            if result is not None:
                RetrievalMetrics.observe_search(strategy.name, timer.elapsed, len(result.results))
                self._logger.info(
                    "search.complete",
                    strategy=strategy.name,
                    collection=collection,
                    hit_count=len(result.results),
                    success=result.success,
                )
                return result
        return SearchResult.failed("No search strategy available", ErrorKind.UNEXPECTED)

    def fallback_text_search(
        self,
        collection: str,
        tenant_id: str | None,
        query: str,
        top_k: int | None = None,
    ) -> SearchResult:
        """Rank store documents lexically, bypassing the vector index."""

        if self._lexical is None:
            return SearchResult.failed(STORE_NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED)
        return self._lexical.search(self._request(collection, tenant_id, query, top_k))

    def _request(self, collection: str, tenant_id: str | None, query: str, top_k: int | None) -> SearchRequest:
        return SearchRequest(
            collection=collection,
            tenant_id=tenant_id,
            query=query or "",
            top_k=self._config.default_top_k if top_k is None else top_k,
            scope=self._config.scope(collection, tenant_id),
            kind=self._config.kind(collection),
        )
