"""Hybrid keyword + vector search over concepts and articles."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

from reader_retrieval.core.config import Settings
from reader_retrieval.core.errors import RetrievalError
from reader_retrieval.core.metrics import HYBRID_SEARCHES
from reader_retrieval.db.filters import CONCEPT_SCOPE, DOCUMENT_SCOPE, Clause, build_clauses
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.models.search import (
    HybridSearchResult,
    Provenance,
    RankedEntity,
    RetrievalFilter,
    SearchType,
)
from reader_retrieval.retrieval.cache import EmbeddingCache
from reader_retrieval.retrieval.excerpt import ExcerptExtractor
from reader_retrieval.retrieval.tiers import UNTITLED

logger = logging.getLogger(__name__)

# Field weights for a case-insensitive substring hit. Calibration values with
# no derivation behind them; tune against real usage.
CONCEPT_FIELD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("term", 10.0),
    ("definition", 3.0),
    ("example", 1.0),
)
ARTICLE_FIELD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("title", 5.0),
    ("body", 1.0),
)

# A vector hit adds ``similarity * VECTOR_SCORE_WEIGHT``; with similarities in
# (threshold, 1] this lands on the same scale as a primary-field keyword hit.
VECTOR_SCORE_WEIGHT = 10.0

SNIPPET_LENGTH = 150


@dataclass(slots=True)
class ScoredId:
    id: str
    score: float
    provenance: Provenance
    similarity: float | None = None


def keyword_score(record: Mapping[str, Any], query: str, weights: Sequence[tuple[str, float]]) -> float:
    needle = query.lower()
    score = 0.0
    for field_name, weight in weights:
        value = record.get(field_name)
        if value and needle in value.lower():
            score += weight
    return score


def merge_scores(
    keyword_hits: Sequence[tuple[str, float]],
    vector_hits: Sequence[tuple[str, float]],
    vector_weight: float = VECTOR_SCORE_WEIGHT,
) -> list[ScoredId]:
    """Fold vector similarities into keyword scores.

    ``keyword_hits`` are ``(id, lexical score)`` pairs and ``vector_hits`` are
    ``(id, similarity)`` pairs. Ids seen by both passes are summed and marked
    hybrid. Ordering is by descending score with the id as tie-break, so equal
    inputs always produce the same list.
    """
    merged: dict[str, ScoredId] = {}
    for entity_id, score in keyword_hits:
        if entity_id not in merged:
            merged[entity_id] = ScoredId(id=entity_id, score=score, provenance=Provenance.KEYWORD)
    for entity_id, similarity in vector_hits:
        contribution = similarity * vector_weight
        existing = merged.get(entity_id)
        if existing is None:
            merged[entity_id] = ScoredId(
                id=entity_id,
                score=contribution,
                provenance=Provenance.VECTOR,
                similarity=similarity,
            )
        elif existing.similarity is None:
            existing.score += contribution
            existing.provenance = Provenance.HYBRID
            existing.similarity = similarity
    return sorted(merged.values(), key=lambda item: (-item.score, item.id))


def count_occurrences(text: str | None, query: str) -> int:
    if not text:
        return 0
    return len(re.findall(re.escape(query), text, flags=re.IGNORECASE))


class HybridRanker:
    """Direct search for the search UI.

    For each requested entity type a keyword read and a vector read run
    concurrently under the same scope; their hits are merged by
    ``merge_scores``. A failing sub-query contributes no hits.
    """

    def __init__(
        self,
        store: CorpusStore,
        embedding_cache: EmbeddingCache,
        settings: Settings | None = None,
        excerpts: ExcerptExtractor | None = None,
    ) -> None:
        self.store = store
        self.embedding_cache = embedding_cache
        self.settings = settings or Settings()
        self.excerpts = excerpts or ExcerptExtractor()

    async def search(
        self,
        query: str,
        owner_id: str,
        search_type: SearchType | str = SearchType.ALL,
        limit: int = 20,
        scope: RetrievalFilter | None = None,
    ) -> HybridSearchResult:
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id is required")
        if limit < 1:
            raise ValueError("limit must be at least 1")
        search_type = SearchType(search_type)
        text = (query or "").strip()
        if not text:
            return HybridSearchResult(query="")

        # One embedding shared by both entity types.
        embedding = asyncio.ensure_future(self._embed(text))
        try:
            concepts_task = (
                self._search_concepts(text, owner_id, limit, scope, embedding)
                if search_type in (SearchType.ALL, SearchType.CONCEPTS)
                else _nothing()
            )
            articles_task = (
                self._search_articles(text, owner_id, limit, scope, embedding)
                if search_type in (SearchType.ALL, SearchType.ARTICLES)
                else _nothing()
            )
            concepts, articles = await asyncio.gather(concepts_task, articles_task)
        finally:
            if not embedding.done():
                embedding.cancel()
        return HybridSearchResult(query=query, concepts=concepts, articles=articles)

    async def _search_concepts(
        self,
        query: str,
        owner_id: str,
        limit: int,
        scope: RetrievalFilter | None,
        embedding: Awaitable[tuple[float, ...] | None],
    ) -> list[RankedEntity]:
        HYBRID_SEARCHES.labels(entity="concepts").inc()
        clauses = build_clauses(owner_id, scope, columns=CONCEPT_SCOPE)
        keyword_rows, vector_rows = await asyncio.gather(
            self._guarded("concepts keyword", self.store.keyword_concepts, clauses, query, limit),
            self._vector_rows("concepts", self.store.vector_concepts, clauses, embedding),
        )
        records = _index_records(keyword_rows, vector_rows)
        ranked = merge_scores(
            [(row["id"], keyword_score(row, query, CONCEPT_FIELD_WEIGHTS)) for row in keyword_rows],
            [(row["id"], row["similarity"]) for row in vector_rows],
        )
        return [
            RankedEntity(
                id=item.id,
                entity_type="concept",
                title=records[item.id].get("term") or UNTITLED,
                score=item.score,
                provenance=item.provenance,
                snippet=self._snippet(records[item.id].get("definition") or "", query),
                similarity=item.similarity,
                fields={
                    "definition": records[item.id].get("definition"),
                    "example": records[item.id].get("example"),
                    "source_document_id": records[item.id].get("source_document_id"),
                },
            )
            for item in ranked[:limit]
        ]

    async def _search_articles(
        self,
        query: str,
        owner_id: str,
        limit: int,
        scope: RetrievalFilter | None,
        embedding: Awaitable[tuple[float, ...] | None],
    ) -> list[RankedEntity]:
        HYBRID_SEARCHES.labels(entity="articles").inc()
        clauses = build_clauses(owner_id, scope, columns=DOCUMENT_SCOPE)
        keyword_rows, vector_rows = await asyncio.gather(
            self._guarded("articles keyword", self.store.keyword_articles, clauses, query, limit),
            self._vector_rows("articles", self.store.vector_articles, clauses, embedding),
        )
        records = _index_records(keyword_rows, vector_rows)
        ranked = merge_scores(
            [(row["id"], keyword_score(row, query, ARTICLE_FIELD_WEIGHTS)) for row in keyword_rows],
            [(row["id"], row["similarity"]) for row in vector_rows],
        )
        return [
            RankedEntity(
                id=item.id,
                entity_type="article",
                title=records[item.id].get("title") or UNTITLED,
                score=item.score,
                provenance=item.provenance,
                snippet=self._snippet(records[item.id].get("body") or "", query),
                similarity=item.similarity,
                occurrences=count_occurrences(records[item.id].get("body"), query),
                fields={"domain": records[item.id].get("domain")},
            )
            for item in ranked[:limit]
        ]

    async def _embed(self, query: str) -> tuple[float, ...] | None:
        try:
            return await self.embedding_cache.get_or_create(query)
        except RetrievalError as exc:
            logger.warning("Hybrid search continuing without vectors: %s", exc)
            return None

    async def _vector_rows(
        self,
        label: str,
        reader: Callable[..., list[dict[str, Any]]],
        clauses: Sequence[Clause],
        embedding: Awaitable[tuple[float, ...] | None],
    ) -> list[dict[str, Any]]:
        vector = await embedding
        if vector is None:
            return []
        return await self._guarded(
            f"{label} vector",
            reader,
            clauses,
            vector,
            self.settings.vector_limit,
            self.settings.vector_threshold,
        )

    async def _guarded(self, label: str, reader: Callable[..., Any], *args: Any) -> list[dict[str, Any]]:
        try:
            rows = await asyncio.to_thread(reader, *args)
        except RetrievalError as exc:
            logger.warning("%s search failed, treating as empty: %s", label, exc)
            return []
        return [dict(row) for row in rows]

    def _snippet(self, text: str, query: str) -> str:
        if not text:
            return ""
        excerpt = self.excerpts.extract(text, query, SNIPPET_LENGTH)
        return self.excerpts.highlight(excerpt, query)


def _index_records(*row_sets: Sequence[Any]) -> dict[str, dict[str, Any]]:
    records: dict[str, dict[str, Any]] = {}
    for rows in row_sets:
        for row in rows:
            record = dict(row)
            records.setdefault(record["id"], record)
    return records


async def _nothing() -> list[RankedEntity]:
    return []


__all__ = [
    "HybridRanker",
    "ScoredId",
    "keyword_score",
    "merge_scores",
    "count_occurrences",
    "CONCEPT_FIELD_WEIGHTS",
    "ARTICLE_FIELD_WEIGHTS",
    "VECTOR_SCORE_WEIGHT",
]
