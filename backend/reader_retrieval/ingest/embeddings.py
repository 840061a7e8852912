"""Embedding providers."""

from __future__ import annotations

import hashlib
import logging
import math
from typing import Protocol, Sequence

import requests

from reader_retrieval.core.config import Settings
from reader_retrieval.core.errors import ProviderError
from reader_retrieval.utils.text import lexical_tokens

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    dim: int

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


class HashedEmbeddingProvider:
    """Deterministic hashed bag-of-words vectors; needs no network."""

    def __init__(self, dim: int = 384) -> None:
        self.dim = dim

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for token in lexical_tokens(text):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class HttpEmbeddingProvider:
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        dim: int,
        api_key: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dim = dim
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        # Newlines degrade embedding quality for most hosted models.
        payload = {
            "model": self.model,
            "input": [text.replace("\n", " ") for text in texts],
            "encoding_format": "float",
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            resp = self._session.post(
                f"{self.base_url}/embeddings",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()["data"]
            vectors = [item["embedding"] for item in sorted(data, key=lambda item: item.get("index", 0))]
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning("Embedding request to %s failed: %s", self.base_url, exc)
            raise ProviderError(f"Failed to generate embedding: {exc}") from exc
        if len(vectors) != len(texts):
            raise ProviderError(f"Expected {len(texts)} embeddings, received {len(vectors)}")
        return vectors


def build_provider(settings: Settings) -> EmbeddingProvider:
    if settings.embedding_provider == "http":
        return HttpEmbeddingProvider(
            base_url=settings.embedding_base_url,
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            api_key=settings.embedding_api_key,
            timeout=settings.embedding_timeout_seconds,
        )
    return HashedEmbeddingProvider(dim=settings.embedding_dim)


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["EmbeddingProvider", "HashedEmbeddingProvider", "HttpEmbeddingProvider", "build_provider"]
