"""Test fixtures for the retrieval service."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from reader_retrieval.core.config import Settings  # noqa: E402
from reader_retrieval.core.errors import ProviderError  # noqa: E402
from reader_retrieval.db.sqlite import SQLiteDatabase  # noqa: E402
from reader_retrieval.db.store import CorpusStore  # noqa: E402
from reader_retrieval.ingest.embeddings import HashedEmbeddingProvider  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("RDR_DB_PATH", str(tmp_path / "rdr.db"))
    monkeypatch.delenv("RDR_CONFIG", raising=False)

    from reader_retrieval.api import dependencies as deps

    deps.reset_singletons()
    yield
    deps.reset_singletons()


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProvider(HashedEmbeddingProvider):
    """Hashed provider that counts calls and can be switched to fail."""

    def __init__(self, dim: int = 64) -> None:
        super().__init__(dim=dim)
        self.calls: list[str] = []
        self.fail = False

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ProviderError("provider offline")
        return super().embed(text)

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if self.fail:
            raise ProviderError("provider offline")
        return [super(CountingProvider, self).embed(text) for text in texts]


class RecordingStore:
    """Forwards to a ``CorpusStore`` and records every method called on it."""

    def __init__(self, inner: CorpusStore) -> None:
        self._inner = inner
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        def recorded(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            return attr(*args, **kwargs)

        return recorded

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def database(tmp_path: Path) -> SQLiteDatabase:
    db = SQLiteDatabase(tmp_path / "corpus.db")
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def store(database: SQLiteDatabase) -> CorpusStore:
    return CorpusStore(database)


@pytest.fixture
def provider() -> CountingProvider:
    return CountingProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "corpus.db", embedding_dim=64, tier_timeout_seconds=5.0)


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
