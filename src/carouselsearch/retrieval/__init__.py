"""Retrieval components."""

from .ranking import LexicalWeights, rank_documents, tokenize_query
from .service import (
    LexicalSearchStrategy,
    RetrievalConfig,
    SearchRequest,
    SearchStrategy,
    SemanticSearchStrategy,
)

__all__ = [
    "LexicalSearchStrategy",
    "LexicalWeights",
    "RetrievalConfig",
    "SearchRequest",
    "SearchStrategy",
    "SemanticSearchStrategy",
    "rank_documents",
    "tokenize_query",
]
