"""Per-owner corpus reads and writes over SQLite."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Any, Sequence

from rank_bm25 import BM25Plus

from reader_retrieval.core.errors import StorageError
from reader_retrieval.db.filters import Clause, where_sql
from reader_retrieval.db.sqlite import SQLiteDatabase
from reader_retrieval.models.entities import Concept, Document
from reader_retrieval.utils.text import lexical_tokens
from reader_retrieval.utils.time import now_ms
from reader_retrieval.utils.vectors import cosine_distance, pack_vector, unpack_vector

logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = (
    "d.id, d.owner_id, d.title, d.domain, d.collection_id, d.summary, d.body, "
    "d.deleted_at, d.created_at, d.updated_at"
)


class CorpusStore:
    """Scoped reads used by the retrieval tiers, plus indexing writes.

    Every read takes a clause list from ``build_clauses``; the owner clause is
    always first so no read can escape its tenant.
    """

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def ensure_available(self) -> None:
        try:
            self.db.query_one("SELECT 1")
        except sqlite3.Error as exc:
            raise StorageError(f"Corpus store unavailable: {exc}") from exc

    # Tier reads -------------------------------------------------------

    def rank_chunks_by_vector(
        self,
        clauses: Sequence[Clause],
        vector: Sequence[float],
        limit: int,
    ) -> list[dict[str, Any]]:
        """Chunks in scope ordered by ascending cosine distance to ``vector``."""
        where, params = where_sql(clauses)
        rows = self._read(
            f"""
            SELECT
              ch.id AS chunk_id,
              ch.ordinal,
              ch.content,
              ch.embedding,
              d.id AS article_id,
              d.title,
              d.domain
            FROM chunks ch
            JOIN documents d ON d.id = ch.document_id
            WHERE {where}
            """,
            params,
        )
        try:
            ranked = [
                {
                    "chunk_id": row["chunk_id"],
                    "ordinal": row["ordinal"],
                    "content": row["content"],
                    "article_id": row["article_id"],
                    "title": row["title"],
                    "domain": row["domain"],
                    "distance": cosine_distance(unpack_vector(row["embedding"]), vector),
                }
                for row in rows
            ]
        except ValueError as exc:
            raise StorageError(str(exc)) from exc
        ranked.sort(key=lambda item: (item["distance"], item["article_id"], item["ordinal"]))
        return ranked[:limit]

    def lexical_rank(self, clauses: Sequence[Clause], query: str, limit: int) -> list[dict[str, Any]]:
        """Documents in scope containing every query token, best BM25 score first."""
        query_tokens = list(dict.fromkeys(lexical_tokens(query)))
        if not query_tokens:
            return []
        where, params = where_sql(clauses)
        rows = self._read(
            f"SELECT d.id AS article_id, d.title, d.domain, d.body FROM documents d WHERE {where}",
            params,
        )
        corpus = [lexical_tokens(row["body"] or "") for row in rows]
        matching = [
            idx for idx, tokens in enumerate(corpus) if set(query_tokens).issubset(tokens)
        ]
        if not matching:
            return []
        scores = BM25Plus(corpus).get_scores(query_tokens)
        ranked = [
            {
                "article_id": rows[idx]["article_id"],
                "title": rows[idx]["title"],
                "domain": rows[idx]["domain"],
                "content": rows[idx]["body"] or "",
                "rank": float(scores[idx]),
            }
            for idx in matching
        ]
        ranked.sort(key=lambda item: (-item["rank"], item["article_id"]))
        return ranked[:limit]

    def recent_documents(self, clauses: Sequence[Clause], limit: int) -> list[sqlite3.Row]:
        where, params = where_sql(clauses)
        return self._read(
            f"""
            SELECT d.id AS article_id, d.title, d.domain, d.body
            FROM documents d
            WHERE {where}
            ORDER BY d.created_at DESC, d.rowid DESC
            LIMIT ?
            """,
            [*params, limit],
        )

    def document_summaries(self, clauses: Sequence[Clause]) -> list[sqlite3.Row]:
        where, params = where_sql(clauses)
        return self._read(
            f"""
            SELECT d.id AS article_id, d.title, d.domain, d.summary
            FROM documents d
            WHERE {where}
            ORDER BY d.created_at ASC, d.rowid ASC
            """,
            params,
        )

    # Hybrid search reads ---------------------------------------------

    def keyword_concepts(self, clauses: Sequence[Clause], query: str, limit: int) -> list[sqlite3.Row]:
        where, params = where_sql(clauses)
        pattern = _like_pattern(query)
        return self._read(
            f"""
            SELECT cp.id, cp.term, cp.definition, cp.example, cp.ai_definition, cp.source_document_id
            FROM concepts cp
            LEFT JOIN documents d ON d.id = cp.source_document_id
            WHERE {where}
              AND (
                cp.term LIKE ? ESCAPE '\\'
                OR cp.definition LIKE ? ESCAPE '\\'
                OR cp.example LIKE ? ESCAPE '\\'
                OR cp.ai_definition LIKE ? ESCAPE '\\'
              )
            ORDER BY cp.created_at DESC, cp.id ASC
            LIMIT ?
            """,
            [*params, pattern, pattern, pattern, pattern, limit],
        )

    def keyword_articles(self, clauses: Sequence[Clause], query: str, limit: int) -> list[sqlite3.Row]:
        where, params = where_sql(clauses)
        pattern = _like_pattern(query)
        return self._read(
            f"""
            SELECT d.id, d.title, d.domain, d.body
            FROM documents d
            WHERE {where}
              AND (
                d.title LIKE ? ESCAPE '\\'
                OR d.body LIKE ? ESCAPE '\\'
                OR d.domain LIKE ? ESCAPE '\\'
              )
            ORDER BY d.created_at DESC, d.id ASC
            LIMIT ?
            """,
            [*params, pattern, pattern, pattern, limit],
        )

    def vector_concepts(
        self,
        clauses: Sequence[Clause],
        vector: Sequence[float],
        limit: int,
        threshold: float,
    ) -> list[dict[str, Any]]:
        where, params = where_sql(clauses)
        rows = self._read(
            f"""
            SELECT cp.id, cp.term, cp.definition, cp.example, cp.ai_definition, cp.source_document_id, cp.embedding
            FROM concepts cp
            LEFT JOIN documents d ON d.id = cp.source_document_id
            WHERE {where} AND cp.embedding IS NOT NULL
            """,
            params,
        )
        return _above_threshold(rows, vector, limit, threshold)

    def vector_articles(
        self,
        clauses: Sequence[Clause],
        vector: Sequence[float],
        limit: int,
        threshold: float,
    ) -> list[dict[str, Any]]:
        where, params = where_sql(clauses)
        rows = self._read(
            f"""
            SELECT d.id, d.title, d.domain, d.body, d.embedding
            FROM documents d
            WHERE {where} AND d.embedding IS NOT NULL
            """,
            params,
        )
        return _above_threshold(rows, vector, limit, threshold)

    # Writes -----------------------------------------------------------

    def insert_document(
        self,
        owner_id: str,
        title: str | None,
        body: str,
        domain: str | None = None,
        collection_id: str | None = None,
        summary: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        now = now_ms()
        document = Document(
            id=document_id or str(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            domain=domain,
            collection_id=collection_id,
            summary=summary,
            body=body,
            deleted_at=None,
            created_at=now,
            updated_at=now,
        )
        self._write(
            """
            INSERT INTO documents (
              id, owner_id, title, domain, collection_id, summary, body, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                document.id,
                document.owner_id,
                document.title,
                document.domain,
                document.collection_id,
                document.summary,
                document.body,
                now,
                now,
            ],
        )
        return document

    def get_document(self, document_id: str, owner_id: str) -> Document | None:
        row = self._read_one(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents d WHERE d.id = ? AND d.owner_id = ?",
            [document_id, owner_id],
        )
        if row is None:
            return None
        return Document(**{key: row[key] for key in row.keys()})

    def count_chunks(self, document_id: str) -> int:
        row = self._read_one("SELECT COUNT(*) AS count FROM chunks WHERE document_id = ?", [document_id])
        return int(row["count"]) if row else 0

    def replace_chunks(
        self,
        document_id: str,
        owner_id: str,
        chunks: Sequence[tuple[int, str, Sequence[float]]],
    ) -> int:
        """Replace a document's chunks with ``(ordinal, content, embedding)`` triples."""
        now = now_ms()
        try:
            with self.db.transaction() as cursor:
                cursor.execute("DELETE FROM chunks WHERE document_id = ?", [document_id])
                cursor.executemany(
                    """
                    INSERT INTO chunks (id, document_id, owner_id, ordinal, content, embedding, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (str(uuid.uuid4()), document_id, owner_id, ordinal, content, pack_vector(vector), now)
                        for ordinal, content, vector in chunks
                    ],
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to store chunks for {document_id}: {exc}") from exc
        return len(chunks)

    def set_document_embedding(self, document_id: str, vector: Sequence[float]) -> None:
        self._write(
            "UPDATE documents SET embedding = ?, updated_at = ? WHERE id = ?",
            [pack_vector(vector), now_ms(), document_id],
        )

    def set_summary(self, document_id: str, summary: str) -> None:
        self._write(
            "UPDATE documents SET summary = ?, updated_at = ? WHERE id = ?",
            [summary, now_ms(), document_id],
        )

    def insert_concept(self, concept: Concept, embedding: Sequence[float] | None) -> Concept:
        self._write(
            """
            INSERT INTO concepts (
              id, owner_id, term, definition, example, ai_definition, source_document_id, embedding, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                concept.id,
                concept.owner_id,
                concept.term,
                concept.definition,
                concept.example,
                concept.ai_definition,
                concept.source_document_id,
                pack_vector(embedding) if embedding is not None else None,
                now_ms(),
            ],
        )
        return concept

    def soft_delete_document(self, document_id: str, owner_id: str) -> bool:
        now = now_ms()
        updated = self._write(
            """
            UPDATE documents SET deleted_at = ?, updated_at = ?
            WHERE id = ? AND owner_id = ? AND deleted_at IS NULL
            """,
            [now, now, document_id, owner_id],
        )
        return updated > 0

    def soft_delete_concept(self, concept_id: str, owner_id: str) -> bool:
        updated = self._write(
            "UPDATE concepts SET deleted_at = ? WHERE id = ? AND owner_id = ? AND deleted_at IS NULL",
            [now_ms(), concept_id, owner_id],
        )
        return updated > 0

    # ------------------------------------------------------------------

    def _read(self, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        try:
            return self.db.query(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Corpus query failed: {exc}") from exc

    def _read_one(self, sql: str, params: Sequence[Any]) -> sqlite3.Row | None:
        try:
            return self.db.query_one(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"Corpus query failed: {exc}") from exc

    def _write(self, sql: str, params: Sequence[Any]) -> int:
        try:
            cursor = self.db.execute(sql, params)
            self.db.commit()
        except sqlite3.Error as exc:
            self.db.rollback()
            raise StorageError(f"Corpus write failed: {exc}") from exc
        return cursor.rowcount


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _above_threshold(
    rows: Sequence[sqlite3.Row],
    vector: Sequence[float],
    limit: int,
    threshold: float,
) -> list[dict[str, Any]]:
    hits: list[dict[str, Any]] = []
    for row in rows:
        record = {key: row[key] for key in row.keys() if key != "embedding"}
        try:
            record["similarity"] = 1.0 - cosine_distance(unpack_vector(row["embedding"]), vector)
        except ValueError as exc:
            raise StorageError(str(exc)) from exc
        if record["similarity"] > threshold:
            hits.append(record)
    hits.sort(key=lambda item: (-item["similarity"], item["id"]))
    return hits[:limit]


__all__ = ["CorpusStore"]
