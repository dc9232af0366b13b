"""Embedding text, embedding providers and vector index clients."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    EmbeddingProvider,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    build_embedding_provider,
)
from .store import ChromaVectorIndex, VectorIndexAccessor, VectorIndexClient, chroma_factory
from .text import build_embedding_text

__all__ = [
    "ChromaVectorIndex",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingProvider",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "VectorIndexAccessor",
    "VectorIndexClient",
    "build_embedding_provider",
    "build_embedding_text",
    "chroma_factory",
]
