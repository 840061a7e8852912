"""Tests for embedding providers."""

import pytest
import requests

from reader_retrieval.core.config import Settings
from reader_retrieval.core.errors import ProviderError
from reader_retrieval.ingest.embeddings import HashedEmbeddingProvider, HttpEmbeddingProvider, build_provider


class _Response:
    def __init__(self, payload, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"status {self.status_code}")

    def json(self):
        return self._payload


class _Session:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


def test_hashed_provider_is_deterministic_and_normalised() -> None:
    provider = HashedEmbeddingProvider(dim=32)
    vectors = provider.embed_batch(["hello world", "hello world", "机器学习"])
    assert vectors[0] == vectors[1]
    assert all(len(vec) == 32 for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6
    assert provider.embed("") == [0.0] * 32


def test_http_provider_posts_openai_payload() -> None:
    session = _Session(
        _Response({"data": [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]})
    )
    provider = HttpEmbeddingProvider("https://example.test/v1/", "embed-model", dim=2, api_key="k", session=session)
    vectors = provider.embed_batch(["first\nline", "second"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    sent = session.requests[0]
    assert sent["url"] == "https://example.test/v1/embeddings"
    assert sent["json"]["input"] == ["first line", "second"]
    assert sent["headers"]["Authorization"] == "Bearer k"


@pytest.mark.parametrize(
    "session",
    [
        _Session(error=requests.ConnectionError("down")),
        _Session(_Response({}, status=500)),
        _Session(_Response({"unexpected": True})),
        _Session(_Response({"data": []})),
    ],
)
def test_http_provider_failures_raise_provider_error(session) -> None:
    provider = HttpEmbeddingProvider("https://example.test/v1", "embed-model", dim=2, session=session)
    with pytest.raises(ProviderError):
        provider.embed("text")


def test_build_provider_from_settings() -> None:
    assert isinstance(build_provider(Settings(embedding_dim=16)), HashedEmbeddingProvider)
    http = build_provider(Settings(embedding_provider="http", embedding_model="m", embedding_dim=8))
    assert isinstance(http, HttpEmbeddingProvider)
    assert http.dim == 8
