"""Service layer orchestrations for carouselsearch."""

from .indexing import IndexingService
from .search import SearchService

__all__ = ["IndexingService", "SearchService"]
