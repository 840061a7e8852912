"""Tests for document indexing."""

import pytest

from conftest import CountingProvider
from reader_retrieval.core.errors import ProviderError
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.ingest.indexer import Indexer, summary_fallback


class _FlakyProvider(CountingProvider):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.batches = 0

    def embed_batch(self, texts):
        self.batches += 1
        if self.batches <= self.failures:
            raise ProviderError("rate limited")
        return super().embed_batch(texts)


def test_add_document_indexes_chunks_and_summary(store: CorpusStore, provider) -> None:
    body = "\n\n".join(f"Paragraph {index} " + "text " * 60 for index in range(6))
    document, outcome = Indexer(store, provider).add_document("u1", "Long read", body, domain="essays")
    assert outcome.status == "indexed"
    assert outcome.chunks == store.count_chunks(document.id) > 1
    stored = store.get_document(document.id, "u1")
    assert stored.summary == summary_fallback(body)
    assert len(stored.summary) <= 500
    row = store.db.query_one("SELECT embedding FROM documents WHERE id = ?", [document.id])
    assert row["embedding"] is not None


def test_existing_summary_is_kept(store: CorpusStore, provider) -> None:
    document, _ = Indexer(store, provider).add_document("u1", "Doc", "body text", summary="Hand written")
    assert store.get_document(document.id, "u1").summary == "Hand written"


def test_index_is_idempotent(store: CorpusStore, provider) -> None:
    indexer = Indexer(store, provider)
    document, first = indexer.add_document("u1", "Doc", "some body text")
    second = indexer.index_document(document.id, "u1")
    assert second.status == "skipped"
    assert second.chunks == first.chunks


def test_missing_document(store: CorpusStore, provider) -> None:
    assert Indexer(store, provider).index_document("nope", "u1").status == "missing"


def test_batches_retry_with_backoff(store: CorpusStore) -> None:
    provider = _FlakyProvider(failures=2)
    delays: list[float] = []
    document, outcome = Indexer(store, provider, sleep=delays.append).add_document("u1", "Doc", "short body")
    assert outcome.status == "indexed"
    assert delays == [1.0, 2.0]
    assert store.count_chunks(document.id) == 1


def test_batch_skipped_after_max_attempts(store: CorpusStore) -> None:
    provider = _FlakyProvider(failures=3)
    delays: list[float] = []
    body = "\n\n".join("block " * 100 for _ in range(3))
    document, outcome = Indexer(store, provider, batch_size=1, sleep=delays.append).add_document("u1", "Doc", body)
    assert outcome.status == "partial"
    assert outcome.failed_batches == 1
    assert delays == [1.0, 2.0]
    ordinals = [row["ordinal"] for row in store.db.query("SELECT ordinal FROM chunks ORDER BY ordinal")]
    assert ordinals[0] == 1


def test_add_concept_stores_embedding(store: CorpusStore, provider) -> None:
    concept = Indexer(store, provider).add_concept("u1", "Entropy", definition="disorder")
    row = store.db.query_one("SELECT term, embedding FROM concepts WHERE id = ?", [concept.id])
    assert row["term"] == "Entropy"
    assert row["embedding"] is not None
    assert provider.calls == ["Entropy disorder"]


def test_add_concept_without_provider(store: CorpusStore, provider) -> None:
    provider.fail = True
    concept = Indexer(store, provider).add_concept("u1", "Entropy")
    row = store.db.query_one("SELECT embedding FROM concepts WHERE id = ?", [concept.id])
    assert row["embedding"] is None


def test_unexpected_errors_are_not_retried(store: CorpusStore) -> None:
    class _BrokenProvider(CountingProvider):
        def embed_batch(self, texts):
            raise ValueError("bad payload")

    delays: list[float] = []
    with pytest.raises(ValueError):
        Indexer(store, _BrokenProvider(), sleep=delays.append).add_document("u1", "Doc", "short body")
    assert delays == []


def test_retry_waits_are_capped(store: CorpusStore) -> None:
    provider = _FlakyProvider(failures=5)
    delays: list[float] = []
    _, outcome = Indexer(store, provider, max_attempts=6, sleep=delays.append).add_document("u1", "Doc", "body")
    assert outcome.status == "indexed"
    assert delays == [1.0, 2.0, 4.0, 8.0, 10.0]
