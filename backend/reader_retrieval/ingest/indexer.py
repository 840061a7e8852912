"""Document indexing: chunk, embed and persist."""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Sequence

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reader_retrieval.core.errors import RetrievalError
from reader_retrieval.core.logging import get_logger
from reader_retrieval.core.metrics import INDEXED_CHUNKS
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.ingest.chunker import chunk_text
from reader_retrieval.ingest.embeddings import EmbeddingProvider
from reader_retrieval.ingest.types import IndexResult
from reader_retrieval.models.entities import Concept, Document

logger = get_logger(__name__)

BATCH_SIZE = 20
MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0
BACKOFF_MAX_SECONDS = 10.0
SUMMARY_FALLBACK_LENGTH = 500
EMBED_OPENING_LENGTH = 500

_NEWLINES_RE = re.compile(r"\n+")


class Indexer:
    """Builds the chunk and document embeddings the retrieval tiers read."""

    def __init__(
        self,
        store: CorpusStore,
        provider: EmbeddingProvider,
        batch_size: int = BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.provider = provider
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self._sleep = sleep

    def add_document(
        self,
        owner_id: str,
        title: str | None,
        body: str,
        domain: str | None = None,
        collection_id: str | None = None,
        summary: str | None = None,
    ) -> tuple[Document, IndexResult]:
        document = self.store.insert_document(
            owner_id,
            title,
            body,
            domain=domain,
            collection_id=collection_id,
            summary=summary,
        )
        return document, self.index_document(document.id, owner_id)

    def index_document(self, document_id: str, owner_id: str) -> IndexResult:
        document = self.store.get_document(document_id, owner_id)
        if document is None or not document.body:
            logger.warning("Document %s not found or empty", document_id)
            return IndexResult(document_id=document_id, status="missing")
        existing = self.store.count_chunks(document_id)
        if existing > 0:
            logger.info("Document %s already indexed (%s chunks), skipping", document_id, existing)
            return IndexResult(document_id=document_id, status="skipped", chunks=existing)

        chunks = chunk_text(document.body)
        logger.info("Document %s: generated %s chunks", document_id, len(chunks))
        rows: list[tuple[int, str, Sequence[float]]] = []
        failed_batches = 0
        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            vectors = self._embed_with_retry(batch, document_id, start)
            if vectors is None:
                failed_batches += 1
                continue
            rows.extend((start + offset, content, vectors[offset]) for offset, content in enumerate(batch))
        written = self.store.replace_chunks(document_id, owner_id, rows)
        INDEXED_CHUNKS.inc(written)

        summary = document.summary or summary_fallback(document.body)
        if summary != document.summary:
            self.store.set_summary(document_id, summary)
        try:
            self.store.set_document_embedding(document_id, self.provider.embed(_document_text(document, summary)))
        except RetrievalError as exc:
            logger.warning("Failed to store document embedding for %s: %s", document_id, exc)

        status = "indexed" if failed_batches == 0 else "partial"
        logger.info("Document %s: indexing complete (%s)", document_id, status)
        return IndexResult(
            document_id=document_id,
            status=status,
            chunks=written,
            failed_batches=failed_batches,
        )

    def add_concept(
        self,
        owner_id: str,
        term: str,
        definition: str | None = None,
        example: str | None = None,
        ai_definition: str | None = None,
        source_document_id: str | None = None,
    ) -> Concept:
        concept = Concept(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            term=term,
            definition=definition,
            example=example,
            ai_definition=ai_definition,
            source_document_id=source_document_id,
        )
        text = " ".join(part for part in (term, definition, example) if part)
        try:
            embedding = self.provider.embed(text)
        except RetrievalError as exc:
            logger.warning("Storing concept %s without embedding: %s", concept.id, exc)
            embedding = None
        return self.store.insert_concept(concept, embedding)

    def _embed_with_retry(
        self,
        batch: Sequence[str],
        document_id: str,
        start: int,
    ) -> list[list[float]] | None:
        cleaned = [content.replace("\n", " ") for content in batch]
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=BACKOFF_BASE_SECONDS, max=BACKOFF_MAX_SECONDS),
            retry=retry_if_exception_type(RetrievalError),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self.provider.embed_batch, cleaned)
        except RetrievalError as exc:
            logger.error(
                "Batch at %s for document %s skipped after %s attempts: %s",
                start,
                document_id,
                self.max_attempts,
                exc,
            )
            return None


def summary_fallback(body: str) -> str:
    return _NEWLINES_RE.sub(" ", body[:SUMMARY_FALLBACK_LENGTH]).strip()


def _document_text(document: Document, summary: str) -> str:
    return (
        f"Title: {document.title or 'Untitled'}\n"
        f"Domain: {document.domain or ''}\n"
        f"Summary: {summary}\n"
        f"Content: {document.body[:EMBED_OPENING_LENGTH]}"
    )


__all__ = ["Indexer", "summary_fallback", "BATCH_SIZE", "MAX_ATTEMPTS"]
