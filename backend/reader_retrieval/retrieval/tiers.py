"""Fallback tiers tried in order by ``RetrievalService``.

Each tier exposes ``attempt(query, clauses, top_k)`` and returns normalised
``SearchResult`` records. Tiers raise ``RetrievalError`` subclasses on
failure; deciding what a failure means is left to the orchestrator.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from reader_retrieval.db.filters import Clause
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.models.search import SearchResult
from reader_retrieval.retrieval.cache import EmbeddingCache
from reader_retrieval.retrieval.excerpt import ExcerptExtractor

UNTITLED = "(untitled)"

# Fixed score for every substring hit; marks it as a last-resort match.
SUBSTRING_SIMILARITY = 0.5


class RetrievalTier:
    name = "tier"

    def __init__(self, store: CorpusStore, excerpts: ExcerptExtractor, excerpt_length: int = 300) -> None:
        self.store = store
        self.excerpts = excerpts
        self.excerpt_length = excerpt_length

    async def attempt(self, query: str, clauses: Sequence[Clause], top_k: int) -> list[SearchResult]:
        raise NotImplementedError

    def _result(
        self,
        article_id: str,
        title: str | None,
        domain: str | None,
        content: str,
        query: str,
        similarity: float,
    ) -> SearchResult:
        return SearchResult(
            article_id=article_id,
            title=title or UNTITLED,
            domain=domain or None,
            content=content,
            excerpt=self.excerpts.extract(content, query, self.excerpt_length),
            similarity=similarity,
        )


class VectorTier(RetrievalTier):
    """Chunks ranked by cosine distance to the query embedding."""

    name = "vector"

    def __init__(
        self,
        store: CorpusStore,
        embeddings: EmbeddingCache,
        excerpts: ExcerptExtractor,
        excerpt_length: int = 300,
    ) -> None:
        super().__init__(store, excerpts, excerpt_length)
        self.embeddings = embeddings

    async def attempt(self, query: str, clauses: Sequence[Clause], top_k: int) -> list[SearchResult]:
        vector = await self.embeddings.get_or_create(query)
        rows = await asyncio.to_thread(self.store.rank_chunks_by_vector, clauses, vector, top_k)
        return [
            self._result(
                row["article_id"],
                row["title"],
                row["domain"],
                row["content"] or "",
                query,
                1.0 - row["distance"],
            )
            for row in rows
        ]


class FullTextTier(RetrievalTier):
    """Documents matching every query token, ordered by BM25 score."""

    name = "fulltext"

    async def attempt(self, query: str, clauses: Sequence[Clause], top_k: int) -> list[SearchResult]:
        rows = await asyncio.to_thread(self.store.lexical_rank, clauses, query, top_k)
        return [
            self._result(
                row["article_id"],
                row["title"],
                row["domain"],
                row["content"],
                query,
                round(row["rank"], 2),
            )
            for row in rows
        ]


class SubstringTier(RetrievalTier):
    """Case-insensitive containment over the most recent documents in scope."""

    name = "substring"

    def __init__(
        self,
        store: CorpusStore,
        excerpts: ExcerptExtractor,
        excerpt_length: int = 300,
        sample_size: int = 20,
    ) -> None:
        super().__init__(store, excerpts, excerpt_length)
        self.sample_size = sample_size

    async def attempt(self, query: str, clauses: Sequence[Clause], top_k: int) -> list[SearchResult]:
        rows = await asyncio.to_thread(self.store.recent_documents, clauses, self.sample_size)
        needle = query.lower()
        results: list[SearchResult] = []
        for row in rows:
            body = row["body"] or ""
            if needle not in body.lower():
                continue
            results.append(
                self._result(row["article_id"], row["title"], row["domain"], body, query, SUBSTRING_SIMILARITY)
            )
            if len(results) >= top_k:
                break
        return results


__all__ = [
    "RetrievalTier",
    "VectorTier",
    "FullTextTier",
    "SubstringTier",
    "SUBSTRING_SIMILARITY",
    "UNTITLED",
]
