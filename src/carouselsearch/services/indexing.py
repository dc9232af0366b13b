"""Indexing orchestration: document -> canonical text -> vector -> index entry."""

from __future__ import annotations

from carouselsearch.documents.store import DocumentStore
from carouselsearch.embeddings.service import EmbeddingProvider
from carouselsearch.embeddings.store import VectorIndexAccessor
from carouselsearch.embeddings.text import build_embedding_text
from carouselsearch.metrics.observability import RetrievalMetrics, TimedSection, get_logger
from carouselsearch.models import BulkIndexResult, ErrorKind, IndexEntry, UpsertResult
from carouselsearch.retrieval.service import RetrievalConfig


class IndexingService:
    """Keeps the vector index in step with the document store.

    Every operation returns a result object; nothing raises past this class.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndexAccessor,
        store: DocumentStore | None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("indexing")

    @property
    def is_configured(self) -> bool:
        return self._embedder.is_configured and self._index.is_configured and self._store is not None

    def upsert_vector(self, collection: str, doc_id: str, tenant_id: str | None) -> UpsertResult:
        """Embed one stored document and upsert it with its tenant-scope metadata."""

        with TimedSection() as timer:
            result = self._upsert(collection, doc_id, tenant_id)
        outcome = "indexed" if result.indexed else (result.error_kind or ErrorKind.UNEXPECTED).value
        RetrievalMetrics.observe_upsert(outcome, timer.elapsed)
        return result

    def _upsert(self, collection: str, doc_id: str, tenant_id: str | None) -> UpsertResult:
        if not self._embedder.is_configured:
            return UpsertResult.failed(collection, doc_id, "Embedding provider not configured", ErrorKind.NOT_CONFIGURED)
        if not self._index.is_configured:
            return UpsertResult.failed(collection, doc_id, "Vector index not configured", ErrorKind.NOT_CONFIGURED)
        if self._store is None:
            return UpsertResult.failed(collection, doc_id, "Document store not configured", ErrorKind.NOT_CONFIGURED)

        try:
            document = self._store.get(collection, doc_id)
            if document is None:
                return UpsertResult.failed(collection, doc_id, "Document not found", ErrorKind.NOT_FOUND)

            text = build_embedding_text(self._config.kind(collection), document.fields)
            vector = self._embedder.embed(text)
            if vector is None:
                return UpsertResult.failed(collection, doc_id, "Failed to create embedding", ErrorKind.EMBEDDING_FAILED)

            client = self._index.get()
            if client is None:
                return UpsertResult.failed(collection, doc_id, "Vector index not available", ErrorKind.INDEX_UNAVAILABLE)

            scope = self._config.scope(collection, tenant_id)
            client.upsert([IndexEntry(id=doc_id, vector=vector, metadata=scope.metadata(collection), document=text)])
        except Exception as exc:
            self._logger.error("index.upsert_failed", collection=collection, doc_id=doc_id, error=str(exc))
            return UpsertResult.failed(collection, doc_id, str(exc), ErrorKind.UNEXPECTED)

        self._logger.info(
            "index.upsert",
            collection=collection,
            doc_id=doc_id,
            tenant_id=scope.tenant_id,
            scope="global" if scope.is_global else "owned",
        )
        return UpsertResult(success=True, collection=collection, doc_id=doc_id, indexed=True)

    def index_user_documents(self, tenant_id: str | None, collection: str, limit: int | None = None) -> BulkIndexResult:
        """Index up to ``limit`` documents visible to ``tenant_id``, one at a time.

        Global collections are listed without a tenant filter. An owned
        collection with an empty or ``"global"`` tenant indexes nothing, so
        one tenant's vectors are never rewritten without their owner.
        """

        if not self.is_configured:
            return BulkIndexResult(success=False, count=0, error="Services not configured", error_kind=ErrorKind.NOT_CONFIGURED)

        limit = self._config.bulk_index_limit if limit is None else limit
        scope = self._config.scope(collection, tenant_id)
        if scope.is_global and collection not in self._config.global_collections:
            # an owned collection with no tenant has nothing this caller owns
            self._logger.warning("index.bulk_without_tenant", collection=collection, tenant_id=tenant_id)
            return BulkIndexResult(success=True, count=0)
        try:
            documents = self._store.query(collection, scope.store_filter(self._config.tenant_field), limit)
        except Exception as exc:
            self._logger.error("index.bulk_list_failed", collection=collection, tenant_id=tenant_id, error=str(exc))
            return BulkIndexResult(success=False, count=0, error=str(exc), error_kind=ErrorKind.STORE_FAILURE)

        indexed = 0
        for document in documents:
            if self.upsert_vector(collection, document.id, tenant_id).indexed:
                indexed += 1
        self._logger.info(
            "index.bulk_complete",
            collection=collection,
            tenant_id=tenant_id,
            indexed=indexed,
            listed=len(documents),
        )
        return BulkIndexResult(success=True, count=indexed)
