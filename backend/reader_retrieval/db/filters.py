"""Scope predicates shared by every retrieval tier.

``build_clauses`` turns an owner plus an optional ``RetrievalFilter`` into an
ordered list of SQL clauses:

1. owner equality (always)
2. soft-delete exclusion (always)
3. at most one narrowing clause: article id membership, else collection
4. domain equality (optional)

Every store read renders the same list with ``where_sql`` so that vector,
full-text and substring search see exactly the same candidate set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from reader_retrieval.models.search import RetrievalFilter


@dataclass(frozen=True, slots=True)
class ScopeColumns:
    """Column names the clauses are rendered against."""

    owner: str
    deleted_at: str
    article_id: str
    collection_id: str
    domain: str


DOCUMENT_SCOPE = ScopeColumns(
    owner="d.owner_id",
    deleted_at="d.deleted_at",
    article_id="d.id",
    collection_id="d.collection_id",
    domain="d.domain",
)

# Concepts are scoped through their source document (LEFT JOIN documents d).
CONCEPT_SCOPE = ScopeColumns(
    owner="cp.owner_id",
    deleted_at="cp.deleted_at",
    article_id="cp.source_document_id",
    collection_id="d.collection_id",
    domain="d.domain",
)


@dataclass(frozen=True, slots=True)
class Clause:
    kind: str
    sql: str
    params: tuple[Any, ...] = ()


def build_clauses(
    owner_id: str,
    scope: RetrievalFilter | None = None,
    columns: ScopeColumns = DOCUMENT_SCOPE,
) -> list[Clause]:
    if not owner_id or not owner_id.strip():
        raise ValueError("owner_id is required to scope a query")
    clauses = [
        Clause("owner", f"{columns.owner} = ?", (owner_id,)),
        Clause("not_deleted", f"{columns.deleted_at} IS NULL"),
    ]
    if scope is None:
        return clauses
    if scope.article_ids:
        placeholders = ",".join("?" for _ in scope.article_ids)
        clauses.append(Clause("articles", f"{columns.article_id} IN ({placeholders})", tuple(scope.article_ids)))
    elif scope.collection_id:
        clauses.append(Clause("collection", f"{columns.collection_id} = ?", (scope.collection_id,)))
    if scope.domain:
        clauses.append(Clause("domain", f"{columns.domain} = ?", (scope.domain,)))
    return clauses


def where_sql(clauses: Sequence[Clause]) -> tuple[str, list[Any]]:
    """Render clauses as a single ``AND`` expression plus positional params."""
    if not clauses or clauses[0].kind != "owner":
        raise ValueError("clause list must start with the owner clause")
    sql = " AND ".join(clause.sql for clause in clauses)
    params: list[Any] = []
    for clause in clauses:
        params.extend(clause.params)
    return sql, params


__all__ = [
    "Clause",
    "ScopeColumns",
    "DOCUMENT_SCOPE",
    "CONCEPT_SCOPE",
    "build_clauses",
    "where_sql",
]
