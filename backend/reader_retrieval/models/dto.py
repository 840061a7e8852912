"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from reader_retrieval.models.search import RetrievalFilter, RetrievalMode, sanitize_filter


class ScopeFilter(BaseModel):
    article_ids: list[str] | None = None
    collection_id: str | None = None
    domain: str | None = None

    def to_filter(self) -> RetrievalFilter | None:
        return sanitize_filter(self.article_ids, self.collection_id, self.domain)


class RetrieveRequest(BaseModel):
    query: str
    mode: RetrievalMode = RetrievalMode.FAST
    top_k: int = Field(default=5, ge=1, le=50)
    filter: ScopeFilter | None = None


class SourceResult(BaseModel):
    article_id: str
    title: str
    domain: str | None
    content: str
    excerpt: str
    similarity: float


class RetrieveResponse(BaseModel):
    documents: str
    sources: list[SourceResult]


class RankedEntityResponse(BaseModel):
    id: str
    entity_type: str
    title: str
    score: float
    provenance: Literal["keyword", "vector", "hybrid"]
    snippet: str
    similarity: float | None = None
    occurrences: int | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    query: str
    concepts: list[RankedEntityResponse]
    articles: list[RankedEntityResponse]
    total: int


class DocumentCreateRequest(BaseModel):
    title: str | None = None
    body: str = Field(min_length=1)
    domain: str | None = None
    collection_id: str | None = None
    summary: str | None = None


class DocumentResponse(BaseModel):
    id: str
    title: str | None
    domain: str | None
    collection_id: str | None
    summary: str | None
    created_at: datetime
    status: str
    chunks: int
    failed_batches: int = 0


class ConceptCreateRequest(BaseModel):
    term: str = Field(min_length=1)
    definition: str | None = None
    example: str | None = None
    ai_definition: str | None = None
    source_document_id: str | None = None


class ConceptResponse(BaseModel):
    id: str
    term: str
    definition: str | None
    example: str | None
    source_document_id: str | None


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


class CacheStats(BaseModel):
    size: int
    hits: int
    misses: int


class CacheStatsResponse(BaseModel):
    embedding: CacheStats
    result: CacheStats


__all__ = [
    "ScopeFilter",
    "RetrieveRequest",
    "RetrieveResponse",
    "SourceResult",
    "RankedEntityResponse",
    "SearchResponse",
    "DocumentCreateRequest",
    "DocumentResponse",
    "ConceptCreateRequest",
    "ConceptResponse",
    "DeleteResponse",
    "CacheStats",
    "CacheStatsResponse",
]
