"""Pydantic models for the carouselsearch API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from carouselsearch.models import BulkIndexResult, SearchResult, UpsertResult


class UpsertRequest(BaseModel):
    tenant_id: Optional[str] = Field(default=None, description="Owner of the document; omit for global collections")


class UpsertResponse(BaseModel):
    success: bool
    collection: str
    doc_id: str
    indexed: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def from_result(cls, result: UpsertResult) -> "UpsertResponse":
        return cls(
            success=result.success,
            collection=result.collection,
            doc_id=result.doc_id,
            indexed=result.indexed,
            error=result.error,
            error_kind=result.error_kind.value if result.error_kind else None,
        )


class BulkIndexRequest(BaseModel):
    tenant_id: Optional[str] = Field(default=None)
    collection: str = Field(..., min_length=1)
    limit: Optional[int] = Field(default=None, ge=1, le=500, description="Maximum documents to index")


class BulkIndexResponse(BaseModel):
    success: bool
    count: int
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def from_result(cls, result: BulkIndexResult) -> "BulkIndexResponse":
        return cls(
            success=result.success,
            count=result.count,
            error=result.error,
            error_kind=result.error_kind.value if result.error_kind else None,
        )


class SearchRequestModel(BaseModel):
    collection: str = Field(..., min_length=1, description="Collection to search")
    tenant_id: Optional[str] = Field(default=None, description="Tenant whose documents are visible")
    query: str = Field(default="", description="Free-text query")
    top_k: Optional[int] = Field(default=None, ge=1, le=50, description="Override the number of results")


class SearchResponse(BaseModel):
    success: bool
    results: List[Dict[str, Any]]
    strategy: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResponse":
        return cls(
            success=result.success,
            results=[hit.to_dict() for hit in result.results],
            strategy=result.strategy,
            error=result.error,
            error_kind=result.error_kind.value if result.error_kind else None,
        )


class EmbeddingTextRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    fields: Dict[str, Any] = Field(default_factory=dict)


class EmbeddingTextResponse(BaseModel):
    text: str
