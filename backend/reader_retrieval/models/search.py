"""Value types shared by the retrieval tiers, caches and hybrid ranker."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence


class RetrievalMode(str, Enum):
    """How ``RetrievalService.search`` answers a query.

    ``FAST`` searches chunks through the tier chain. ``COMPREHENSIVE`` returns
    per-document summaries when the caller has already narrowed the scope.
    """

    FAST = "fast"
    COMPREHENSIVE = "comprehensive"


class SearchType(str, Enum):
    ALL = "all"
    CONCEPTS = "concepts"
    ARTICLES = "articles"


class Provenance(str, Enum):
    KEYWORD = "keyword"
    VECTOR = "vector"
    HYBRID = "hybrid"


@dataclass(frozen=True, slots=True)
class RetrievalFilter:
    """Optional narrowing of a query to articles, a collection and/or a domain."""

    article_ids: tuple[str, ...] = ()
    collection_id: str | None = None
    domain: str | None = None

    @property
    def is_narrowed(self) -> bool:
        return bool(self.article_ids) or self.collection_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "article_ids": list(self.article_ids),
            "collection_id": self.collection_id,
            "domain": self.domain,
        }


def sanitize_filter(
    article_ids: Iterable[str] | None = None,
    collection_id: str | None = None,
    domain: str | None = None,
) -> RetrievalFilter | None:
    """Normalise raw filter input; ``None`` means the owner's whole corpus.

    Article ids are stripped, deduplicated and sorted so that equivalent
    filters share a cache key.
    """
    ids = sorted({item.strip() for item in article_ids or () if isinstance(item, str) and item.strip()})
    collection = collection_id.strip() if isinstance(collection_id, str) else None
    domain_value = domain.strip() if isinstance(domain, str) else None
    if not ids and not collection and not domain_value:
        return None
    return RetrievalFilter(
        article_ids=tuple(ids),
        collection_id=collection or None,
        domain=domain_value or None,
    )


@dataclass(slots=True)
class RetrievalOptions:
    query: str
    owner_id: str
    filter: RetrievalFilter | None = None
    mode: RetrievalMode = RetrievalMode.FAST
    top_k: int = 5


@dataclass(frozen=True, slots=True)
class SearchResult:
    article_id: str
    title: str
    domain: str | None
    content: str
    excerpt: str
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RetrievalResult:
    """Prompt-ready text block plus the structured sources it was built from."""

    documents: str
    sources: tuple[SearchResult, ...] = ()

    @classmethod
    def empty(cls) -> "RetrievalResult":
        return cls(documents="", sources=())

    @classmethod
    def from_sources(cls, sources: Sequence[SearchResult], documents: str) -> "RetrievalResult":
        return cls(documents=documents, sources=tuple(sources))

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "sources": [source.to_dict() for source in self.sources],
        }


@dataclass(slots=True)
class RankedEntity:
    """A concept or article returned by the hybrid ranker."""

    id: str
    entity_type: str
    title: str
    score: float
    provenance: Provenance
    snippet: str = ""
    similarity: float | None = None
    occurrences: int | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["provenance"] = self.provenance.value
        return payload


@dataclass(slots=True)
class HybridSearchResult:
    query: str
    concepts: list[RankedEntity] = field(default_factory=list)
    articles: list[RankedEntity] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.concepts) + len(self.articles)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "concepts": [entity.to_dict() for entity in self.concepts],
            "articles": [entity.to_dict() for entity in self.articles],
            "total": self.total,
        }


__all__ = [
    "RetrievalMode",
    "SearchType",
    "Provenance",
    "RetrievalFilter",
    "sanitize_filter",
    "RetrievalOptions",
    "SearchResult",
    "RetrievalResult",
    "RankedEntity",
    "HybridSearchResult",
]
