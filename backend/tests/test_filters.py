"""Tests for scope clause building."""

import pytest

from reader_retrieval.db.filters import CONCEPT_SCOPE, build_clauses, where_sql
from reader_retrieval.models.search import RetrievalFilter, sanitize_filter


def test_unscoped_query_has_owner_and_soft_delete_only() -> None:
    clauses = build_clauses("u1")
    assert [clause.kind for clause in clauses] == ["owner", "not_deleted"]
    sql, params = where_sql(clauses)
    assert sql == "d.owner_id = ? AND d.deleted_at IS NULL"
    assert params == ["u1"]


def test_article_ids_win_over_collection() -> None:
    scope = RetrievalFilter(article_ids=("a1", "a2"), collection_id="c1", domain="ml")
    clauses = build_clauses("u1", scope)
    assert [clause.kind for clause in clauses] == ["owner", "not_deleted", "articles", "domain"]
    sql, params = where_sql(clauses)
    assert "d.id IN (?,?)" in sql
    assert "collection_id" not in sql
    assert params == ["u1", "a1", "a2", "ml"]


def test_collection_and_domain() -> None:
    clauses = build_clauses("u1", RetrievalFilter(collection_id="c1", domain="ml"))
    assert [clause.kind for clause in clauses] == ["owner", "not_deleted", "collection", "domain"]


def test_concept_columns() -> None:
    sql, _ = where_sql(build_clauses("u1", RetrievalFilter(collection_id="c1"), columns=CONCEPT_SCOPE))
    assert sql.startswith("cp.owner_id = ? AND cp.deleted_at IS NULL")
    assert "d.collection_id = ?" in sql


def test_blank_owner_rejected() -> None:
    with pytest.raises(ValueError):
        build_clauses("  ")


def test_where_sql_requires_owner_first() -> None:
    clauses = build_clauses("u1")
    with pytest.raises(ValueError):
        where_sql(list(reversed(clauses)))


def test_sanitize_filter_normalises_input() -> None:
    scope = sanitize_filter(article_ids=[" b ", "a", "b", ""], collection_id="  ", domain=" ml ")
    assert scope == RetrievalFilter(article_ids=("a", "b"), collection_id=None, domain="ml")
    assert scope.is_narrowed
    assert sanitize_filter([], None, "") is None
    assert not RetrievalFilter(domain="ml").is_narrowed
