"""Runtime configuration for the carouselsearch services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="carouselsearch_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    # Collections
    carousel_collection: str = "carousels"
    template_collection: str = "carouselTemplates"
    global_collections: tuple[str, ...] | None = None  # defaults to the template collection
    tenant_field: str = "userId"

    # Embeddings: "disabled" means no provider credentials and search ranks lexically.
    # "hash" is deterministic but carries no meaning; use it for offline tests only.
    embedding_backend: Literal["disabled", "hash", "huggingface"] = "disabled"
    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_dim: int = 384
    embedding_device: str | None = None
    embedding_cache_folder: str | None = None

    # Vector index
    vector_index_backend: Literal["disabled", "chroma"] = "chroma"
    chroma_persist_dir: Path | None = Path("./.chroma")
    chroma_collection: str = "carouselsearch"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Document store
    document_store_backend: Literal["disabled", "memory"] = "memory"
    documents_path: Path | None = None

    # Search / indexing
    search_default_top_k: int = 6
    bulk_index_limit: int = 50
    fallback_candidate_limit: int = 100
    lexical_coverage_weight: float = 0.4
    lexical_frequency_cap: float = 0.4
    lexical_exact_match_bonus: float = 0.3
    lexical_length_penalty_cap: float = 0.15

    evaluation_min_recall: float = 0.5
    evaluation_min_mrr: float = 0.5

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header
    rate_limit_requests: int = 120  # per window per client
    rate_limit_window_seconds: int = 60

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def global_collection_names(self) -> tuple[str, ...]:
        if self.global_collections is None:
            return (self.template_collection,)
        return self.global_collections

    @property
    def embedding_configured(self) -> bool:
        return self.embedding_backend != "disabled"

    @property
    def vector_index_configured(self) -> bool:
        return self.vector_index_backend != "disabled"

    @property
    def document_store_configured(self) -> bool:
        return self.document_store_backend != "disabled"


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
