"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Header, HTTPException

from reader_retrieval.core.config import Settings, get_settings
from reader_retrieval.db.sqlite import SQLiteDatabase
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.ingest.embeddings import EmbeddingProvider, build_provider
from reader_retrieval.ingest.indexer import Indexer
from reader_retrieval.retrieval import EmbeddingCache, HybridRanker, ResultCache, RetrievalService, TTLCache

_DB: SQLiteDatabase | None = None
_PROVIDER: EmbeddingProvider | None = None
_EMBEDDING_CACHE: EmbeddingCache | None = None
_RESULT_CACHE: ResultCache | None = None
_RETRIEVAL_SERVICE: RetrievalService | None = None
_HYBRID_RANKER: HybridRanker | None = None
_INDEXER: Indexer | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_store() -> CorpusStore:
    return CorpusStore(get_database())


def get_embedding_provider() -> EmbeddingProvider:
    global _PROVIDER
    if _PROVIDER is None:
        _PROVIDER = build_provider(get_app_settings())
    return _PROVIDER


def get_embedding_cache() -> EmbeddingCache:
    global _EMBEDDING_CACHE
    if _EMBEDDING_CACHE is None:
        settings = get_app_settings()
        _EMBEDDING_CACHE = EmbeddingCache(
            get_embedding_provider(),
            TTLCache(ttl=settings.cache_ttl_seconds, max_size=settings.cache_max_size, name="embedding"),
        )
    return _EMBEDDING_CACHE


def get_result_cache() -> ResultCache:
    global _RESULT_CACHE
    if _RESULT_CACHE is None:
        settings = get_app_settings()
        _RESULT_CACHE = ResultCache(
            TTLCache(ttl=settings.cache_ttl_seconds, max_size=settings.cache_max_size, name="result"),
        )
    return _RESULT_CACHE


def get_retrieval_service() -> RetrievalService:
    global _RETRIEVAL_SERVICE
    if _RETRIEVAL_SERVICE is None:
        _RETRIEVAL_SERVICE = RetrievalService(
            store=get_store(),
            embedding_cache=get_embedding_cache(),
            result_cache=get_result_cache(),
            settings=get_app_settings(),
        )
    return _RETRIEVAL_SERVICE


def get_hybrid_ranker() -> HybridRanker:
    global _HYBRID_RANKER
    if _HYBRID_RANKER is None:
        _HYBRID_RANKER = HybridRanker(
            store=get_store(),
            embedding_cache=get_embedding_cache(),
            settings=get_app_settings(),
        )
    return _HYBRID_RANKER


def get_indexer() -> Indexer:
    global _INDEXER
    if _INDEXER is None:
        _INDEXER = Indexer(get_store(), get_embedding_provider())
    return _INDEXER


def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
    """Owner of the request; authentication happens upstream."""
    if x_owner_id is None or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


def reset_singletons() -> None:
    global _DB, _PROVIDER, _EMBEDDING_CACHE, _RESULT_CACHE, _RETRIEVAL_SERVICE, _HYBRID_RANKER, _INDEXER
    if _DB is not None:
        _DB.close()
    _DB = None
    _PROVIDER = None
    _EMBEDDING_CACHE = None
    _RESULT_CACHE = None
    _RETRIEVAL_SERVICE = None
    _HYBRID_RANKER = None
    _INDEXER = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_store",
    "get_embedding_provider",
    "get_embedding_cache",
    "get_result_cache",
    "get_retrieval_service",
    "get_hybrid_ranker",
    "get_indexer",
    "get_owner_id",
    "reset_singletons",
]
