"""Embedding backends and the fail-soft embedding provider."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from carouselsearch.metrics.observability import get_logger

LOGGER = get_logger("embeddings")

Vector = Tuple[float, ...]


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "BAAI/bge-small-en-v1.5"
    dim: int = 384
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        """Return one vector per document text."""

    def embed_query(self, query: str) -> Vector:
        """Return embedding vector for a query string."""


def _normalize(vector: Sequence[float]) -> Vector:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding backend used offline and in tests."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def _hash_to_vector(self, text: str) -> Vector:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)

    def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        return [self._hash_to_vector(text) for text in texts]

    def embed_query(self, query: str) -> Vector:
        return self._hash_to_vector(query)


class HuggingFaceEmbeddingBackend:
    """Sentence-embedding backend served through LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None, client: LangChainEmbeddings | None = None) -> None:
        self._config = config or EmbeddingConfig()
        if client is not None:
            self._client = client
            return
        model_kwargs = {"device": self._config.device} if self._config.device else {}
        self._client = HuggingFaceEmbeddings(
            model_name=self._config.model,
            model_kwargs=model_kwargs,
            encode_kwargs={"normalize_embeddings": self._config.normalize},
            cache_folder=self._config.cache_folder,
        )
        LOGGER.info("embeddings.model_loaded", model=self._config.model)

    def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        if not texts:
            return []
        vectors = self._client.embed_documents(list(texts))
        if len(vectors) != len(texts):
            raise ValueError(f"Embedding backend returned {len(vectors)} vectors for {len(texts)} texts")
        return [self._finish(vector) for vector in vectors]

    def embed_query(self, query: str) -> Vector:
        return self._finish(self._client.embed_query(query))

    def _finish(self, vector: Sequence[float]) -> Vector:
        if not self._config.normalize:
            return tuple(vector)
        return _normalize(vector)


class EmbeddingProvider:
    """Turns text into a fixed-dimension vector, or ``None`` when it cannot.

    The provider never raises. Without a backend factory it is unconfigured
    and returns ``None`` straight away. The backend is built on first use and
    reused for the lifetime of the provider.
    """

    def __init__(self, factory: Callable[[], EmbeddingBackend] | None, *, dim: int) -> None:
        self._factory = factory
        self._dim = dim
        self._backend: EmbeddingBackend | None = None

    @classmethod
    def of(cls, backend: EmbeddingBackend, *, dim: int) -> "EmbeddingProvider":
        return cls(lambda: backend, dim=dim)

    @classmethod
    def disabled(cls, *, dim: int = 384) -> "EmbeddingProvider":
        return cls(None, dim=dim)

    @property
    def is_configured(self) -> bool:
        return self._factory is not None

    @property
    def dim(self) -> int:
        return self._dim

    def embed(self, text: str, *, query: bool = False) -> Vector | None:
        if self._factory is None:
            LOGGER.warning("embeddings.not_configured")
            return None
        flattened = text.replace("\n", " ")
        try:
            backend = self._get_backend()
            if query:
                vector = tuple(backend.embed_query(flattened))
            else:
                vector = tuple(backend.embed_documents([flattened])[0])
        except Exception as exc:
            LOGGER.error("embeddings.failed", error=str(exc))
            return None
        if len(vector) != self._dim:
            LOGGER.error("embeddings.dim_mismatch", expected=self._dim, actual=len(vector))
            return None
        return vector

    def _get_backend(self) -> EmbeddingBackend:
        if self._backend is None:
            self._backend = self._factory()
        return self._backend


def build_embedding_provider(
    backend: str,
    config: EmbeddingConfig,
) -> EmbeddingProvider:
    """Create a provider for a configured backend name."""

    if backend == "hash":
        return EmbeddingProvider(lambda: HashEmbeddingBackend(config), dim=config.dim)
    if backend == "huggingface":
        return EmbeddingProvider(lambda: HuggingFaceEmbeddingBackend(config), dim=config.dim)
    return EmbeddingProvider.disabled(dim=config.dim)
