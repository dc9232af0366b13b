"""Retrieval engine wiring and the module-level public operations."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

from carouselsearch.config import Settings, get_settings
from carouselsearch.documents.store import DocumentStore, InMemoryDocumentStore
from carouselsearch.embeddings.service import EmbeddingConfig, EmbeddingProvider, build_embedding_provider
from carouselsearch.embeddings.store import VectorIndexAccessor, chroma_factory
from carouselsearch.embeddings.text import build_embedding_text as _build_embedding_text
from carouselsearch.metrics.observability import get_logger
from carouselsearch.models import BulkIndexResult, CollectionKind, ErrorKind, SearchResult, UpsertResult
from carouselsearch.retrieval.ranking import LexicalWeights
from carouselsearch.retrieval.service import RetrievalConfig
from carouselsearch.services.indexing import IndexingService
from carouselsearch.services.search import SearchService

LOGGER = get_logger("engine")
ENGINE_NOT_CONFIGURED = "Retrieval engine not configured"


class RetrievalEngine:
    """Facade over indexing and search sharing one set of collaborators."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: VectorIndexAccessor,
        store: DocumentStore | None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.store = store
        self.config = config or RetrievalConfig()
        self.indexing = IndexingService(embedder, index, store, self.config)
        self.search = SearchService(embedder, index, store, self.config)

    def build_embedding_text(self, collection: str, fields: Mapping[str, Any]) -> str:
        return _build_embedding_text(self.config.kind(collection), fields)

    def upsert_vector(self, collection: str, doc_id: str, tenant_id: str | None) -> UpsertResult:
        return self.indexing.upsert_vector(collection, doc_id, tenant_id)

    def search_vectors(
        self,
        collection: str,
        tenant_id: str | None,
        query: str,
        top_k: int | None = None,
    ) -> SearchResult:
        return self.search.search_vectors(collection, tenant_id, query, top_k)

    def fallback_text_search(
        self,
        collection: str,
        tenant_id: str | None,
        query: str,
        top_k: int | None = None,
    ) -> SearchResult:
        return self.search.fallback_text_search(collection, tenant_id, query, top_k)

    def index_user_documents(self, tenant_id: str | None, collection: str, limit: int | None = None) -> BulkIndexResult:
        return self.indexing.index_user_documents(tenant_id, collection, limit)


def retrieval_config_from_settings(settings: Settings) -> RetrievalConfig:
    return RetrievalConfig(
        default_top_k=settings.search_default_top_k,
        bulk_index_limit=settings.bulk_index_limit,
        candidate_limit=settings.fallback_candidate_limit,
        tenant_field=settings.tenant_field,
        global_collections=frozenset(settings.global_collection_names),
        weights=LexicalWeights(
            coverage_weight=settings.lexical_coverage_weight,
            frequency_cap=settings.lexical_frequency_cap,
            exact_match_bonus=settings.lexical_exact_match_bonus,
            length_penalty_cap=settings.lexical_length_penalty_cap,
        ),
        collection_kinds={
            settings.carousel_collection: CollectionKind.CAROUSEL,
            settings.template_collection: CollectionKind.TEMPLATE,
        },
    )


def build_engine(settings: Settings | None = None, *, store: DocumentStore | None = None) -> RetrievalEngine:
    """Build an engine from configuration; ``store`` overrides the configured store."""

    settings = settings or get_settings()
    embedder = build_embedding_provider(
        settings.embedding_backend,
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            device=settings.embedding_device,
            cache_folder=settings.embedding_cache_folder,
        ),
    )
    if settings.vector_index_configured:
        index = VectorIndexAccessor(
            chroma_factory(
                settings.chroma_collection,
                host=settings.chroma_host,
                port=settings.chroma_port,
                ssl=settings.chroma_ssl,
                persist_directory=settings.chroma_persist_dir,
            ),
        )
    else:
        index = VectorIndexAccessor.disabled()
    if store is None and settings.document_store_configured:
        if settings.documents_path is not None:
            store = InMemoryDocumentStore.from_json(settings.documents_path)
        else:
            store = InMemoryDocumentStore()
    return RetrievalEngine(embedder, index, store, retrieval_config_from_settings(settings))


@lru_cache(maxsize=1)
def get_engine() -> RetrievalEngine:
    """Return the process-wide engine built from the environment."""

    return build_engine(get_settings())


def _configured_engine() -> RetrievalEngine | None:
    try:
        return get_engine()
    except Exception as exc:
        LOGGER.error("engine.build_failed", error=str(exc))
        return None


def build_embedding_text(collection: str, fields: Mapping[str, Any]) -> str:
    engine = _configured_engine()
    if engine is None:
        return _build_embedding_text(collection, fields)
    return engine.build_embedding_text(collection, fields)


def upsert_vector(collection: str, doc_id: str, tenant_id: str | None) -> UpsertResult:
    engine = _configured_engine()
    if engine is None:
        return UpsertResult.failed(collection, doc_id, ENGINE_NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED)
    return engine.upsert_vector(collection, doc_id, tenant_id)


def search_vectors(collection: str, tenant_id: str | None, query: str, top_k: int | None = None) -> SearchResult:
    engine = _configured_engine()
    if engine is None:
        return SearchResult.failed(ENGINE_NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED)
    return engine.search_vectors(collection, tenant_id, query, top_k)


def fallback_text_search(collection: str, tenant_id: str | None, query: str, top_k: int | None = None) -> SearchResult:
    engine = _configured_engine()
    if engine is None:
        return SearchResult.failed(ENGINE_NOT_CONFIGURED, ErrorKind.NOT_CONFIGURED)
    return engine.fallback_text_search(collection, tenant_id, query, top_k)


def index_user_documents(tenant_id: str | None, collection: str, limit: int | None = None) -> BulkIndexResult:
    engine = _configured_engine()
    if engine is None:
        return BulkIndexResult(
            success=False,
            count=0,
            error=ENGINE_NOT_CONFIGURED,
            error_kind=ErrorKind.NOT_CONFIGURED,
        )
    return engine.index_user_documents(tenant_id, collection, limit)
