"""Retrieval orchestration for chat grounding (RAG)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from reader_retrieval.core.config import Settings
from reader_retrieval.core.errors import QueryError, RetrievalError, StorageError
from reader_retrieval.core.metrics import RETRIEVAL_REQUESTS, TIER_FAILURES, TIER_LATENCY
from reader_retrieval.db.filters import Clause, build_clauses
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.models.search import (
    RetrievalFilter,
    RetrievalMode,
    RetrievalOptions,
    RetrievalResult,
    SearchResult,
)
from reader_retrieval.retrieval.cache import EmbeddingCache, ResultCache
from reader_retrieval.retrieval.excerpt import ExcerptExtractor
from reader_retrieval.retrieval.tiers import (
    UNTITLED,
    FullTextTier,
    RetrievalTier,
    SubstringTier,
    VectorTier,
)

logger = logging.getLogger(__name__)

# Prompt block layouts. Downstream prompts depend on these exact strings.
SOURCE_TEMPLATE = "[Source {index}] Title: {title}\nDomain: {domain}\nExcerpt:\n{excerpt}"
SUMMARY_TEMPLATE = "[Article {index}] Title: {title}\nSummary: {summary}"
BLOCK_SEPARATOR = "\n\n"

# Documents picked explicitly by the caller count as fully relevant.
SUMMARY_SIMILARITY = 1.0
SUMMARY_EXCERPT_LENGTH = 200
NO_SUMMARY_CONTENT = "No summary available."
NO_SUMMARY_EXCERPT = "No summary."


class RetrievalService:
    """Answers a query from one owner's corpus.

    ``FAST`` mode (and ``COMPREHENSIVE`` without a narrowed scope) walks the
    tiers in order and stops at the first one returning results; a tier that
    errors or times out counts as empty. ``COMPREHENSIVE`` with a narrowed
    scope returns every in-scope document's summary instead.
    """

    def __init__(
        self,
        store: CorpusStore,
        embedding_cache: EmbeddingCache,
        result_cache: ResultCache,
        settings: Settings | None = None,
        tiers: Sequence[RetrievalTier] | None = None,
        excerpts: ExcerptExtractor | None = None,
    ) -> None:
        self.store = store
        self.embedding_cache = embedding_cache
        self.result_cache = result_cache
        self.settings = settings or Settings()
        excerpts = excerpts or ExcerptExtractor()
        length = self.settings.excerpt_length
        self.tiers: list[RetrievalTier] = list(
            tiers
            or (
                VectorTier(store, embedding_cache, excerpts, length),
                FullTextTier(store, excerpts, length),
                SubstringTier(store, excerpts, length, sample_size=self.settings.substring_sample_size),
            )
        )

    async def retrieve(self, options: RetrievalOptions) -> RetrievalResult:
        return await self.search(
            options.query,
            options.owner_id,
            filter=options.filter,
            mode=options.mode,
            top_k=options.top_k,
        )

    async def search(
        self,
        query: str,
        owner_id: str,
        filter: RetrievalFilter | None = None,
        mode: RetrievalMode | str = RetrievalMode.FAST,
        top_k: int | None = None,
    ) -> RetrievalResult:
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id is required")
        mode = RetrievalMode(mode)
        top_k = top_k if top_k is not None else self.settings.top_k
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        try:
            text = _require_query(query)
        except QueryError as exc:
            logger.warning("Rejected retrieval query: %s", exc)
            return RetrievalResult.empty()

        cached = self.result_cache.get(text, owner_id, filter, mode, top_k)
        if cached is not None:
            logger.debug("Result cache hit for owner %s", owner_id)
            return cached

        generation = self.result_cache.generation
        # Failing here means no tier could run at all; that propagates.
        await asyncio.to_thread(self.store.ensure_available)
        clauses = build_clauses(owner_id, filter)

        if mode is RetrievalMode.COMPREHENSIVE and filter is not None and filter.is_narrowed:
            result, degraded = await self._summaries(clauses)
            terminal = "summary"
        else:
            result, terminal, degraded = await self._run_tiers(text, clauses, top_k)

        RETRIEVAL_REQUESTS.labels(mode=mode.value, tier=terminal).inc()
        if degraded:
            logger.info("Not caching degraded result (terminal tier %s)", terminal)
        else:
            self.result_cache.set(
                text,
                owner_id,
                filter,
                mode,
                top_k,
                result,
                ttl=self.settings.cache_ttl_seconds,
                generation=generation,
            )
        return result

    async def _run_tiers(
        self,
        query: str,
        clauses: Sequence[Clause],
        top_k: int,
    ) -> tuple[RetrievalResult, str, bool]:
        degraded = False
        terminal = "none"
        for tier in self.tiers:
            terminal = tier.name
            started = time.perf_counter()
            try:
                sources = await asyncio.wait_for(
                    tier.attempt(query, clauses, top_k),
                    timeout=self.settings.tier_timeout_seconds,
                )
            except RetrievalError as exc:
                logger.warning("%s tier failed, treating as empty: %s", tier.name, exc)
                TIER_FAILURES.labels(tier=tier.name, reason=type(exc).__name__).inc()
                degraded = True
                sources = []
            except asyncio.TimeoutError:
                logger.warning("%s tier timed out after %ss", tier.name, self.settings.tier_timeout_seconds)
                TIER_FAILURES.labels(tier=tier.name, reason="timeout").inc()
                degraded = True
                sources = []
            finally:
                TIER_LATENCY.labels(tier=tier.name).observe(time.perf_counter() - started)
            if sources:
                return format_sources(sources), tier.name, degraded
            logger.warning("%s tier returned no results, falling back", tier.name)
        return RetrievalResult.empty(), terminal, degraded

    async def _summaries(self, clauses: Sequence[Clause]) -> tuple[RetrievalResult, bool]:
        try:
            rows = await asyncio.to_thread(self.store.document_summaries, clauses)
        except StorageError as exc:
            logger.warning("Failed to fetch summaries: %s", exc)
            return RetrievalResult.empty(), True
        sources = []
        for row in rows:
            summary = row["summary"]
            if summary:
                excerpt = summary[:SUMMARY_EXCERPT_LENGTH]
                if len(summary) > SUMMARY_EXCERPT_LENGTH:
                    excerpt += "..."
            else:
                excerpt = NO_SUMMARY_EXCERPT
            sources.append(
                SearchResult(
                    article_id=row["article_id"],
                    title=row["title"] or UNTITLED,
                    domain=row["domain"] or None,
                    content=summary or NO_SUMMARY_CONTENT,
                    excerpt=excerpt,
                    similarity=SUMMARY_SIMILARITY,
                )
            )
        documents = BLOCK_SEPARATOR.join(
            SUMMARY_TEMPLATE.format(index=idx, title=source.title, summary=source.content)
            for idx, source in enumerate(sources, start=1)
        )
        return RetrievalResult.from_sources(sources, documents), False


def format_sources(sources: Sequence[SearchResult]) -> RetrievalResult:
    """Build the prompt block for ranked sources, labelled from 1."""
    documents = BLOCK_SEPARATOR.join(
        SOURCE_TEMPLATE.format(
            index=idx,
            title=source.title,
            domain=source.domain or "",
            excerpt=source.excerpt,
        )
        for idx, source in enumerate(sources, start=1)
    )
    return RetrievalResult.from_sources(sources, documents)


def _require_query(query: str | None) -> str:
    text = (query or "").strip()
    if not text:
        raise QueryError("Empty query")
    return text


__all__ = ["RetrievalService", "format_sources", "SOURCE_TEMPLATE", "SUMMARY_TEMPLATE"]
