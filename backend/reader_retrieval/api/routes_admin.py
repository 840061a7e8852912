"""Administrative routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from reader_retrieval.api.dependencies import get_embedding_cache, get_result_cache
from reader_retrieval.core.metrics import metrics_response
from reader_retrieval.models.dto import CacheStats, CacheStatsResponse
from reader_retrieval.retrieval.cache import EmbeddingCache, ResultCache

router = APIRouter()


@router.get("/cache/stats", response_model=CacheStatsResponse, summary="Cache sizes and hit counts")
async def cache_stats(
    embedding_cache: EmbeddingCache = Depends(get_embedding_cache),
    result_cache: ResultCache = Depends(get_result_cache),
) -> CacheStatsResponse:
    return CacheStatsResponse(
        embedding=CacheStats(**embedding_cache.stats()),
        result=CacheStats(**result_cache.stats()),
    )


@router.delete("/cache", response_model=CacheStatsResponse, summary="Drop every cached embedding and result")
async def clear_cache(
    embedding_cache: EmbeddingCache = Depends(get_embedding_cache),
    result_cache: ResultCache = Depends(get_result_cache),
) -> CacheStatsResponse:
    embedding_cache.clear()
    result_cache.clear()
    return CacheStatsResponse(
        embedding=CacheStats(**embedding_cache.stats()),
        result=CacheStats(**result_cache.stats()),
    )


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
