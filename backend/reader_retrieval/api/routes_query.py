"""Query API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from reader_retrieval.api.dependencies import get_hybrid_ranker, get_owner_id, get_retrieval_service
from reader_retrieval.core.errors import StorageError
from reader_retrieval.models.dto import RetrieveRequest, RetrieveResponse, SearchResponse
from reader_retrieval.models.search import RetrievalOptions, SearchType
from reader_retrieval.retrieval.hybrid import HybridRanker
from reader_retrieval.retrieval.search import RetrievalService

router = APIRouter()


@router.post("/retrieve", response_model=RetrieveResponse, summary="Retrieve grounding context for a query")
async def retrieve(
    request: RetrieveRequest,
    owner_id: str = Depends(get_owner_id),
    service: RetrievalService = Depends(get_retrieval_service),
) -> RetrieveResponse:
    options = RetrievalOptions(
        query=request.query,
        owner_id=owner_id,
        filter=request.filter.to_filter() if request.filter else None,
        mode=request.mode,
        top_k=request.top_k,
    )
    try:
        result = await service.retrieve(options)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return RetrieveResponse(**result.to_dict())


@router.get("/search", response_model=SearchResponse, summary="Hybrid search over concepts and articles")
async def search(
    q: str = Query(default=""),
    type: SearchType = Query(default=SearchType.ALL),
    limit: int = Query(default=20, ge=1, le=100),
    owner_id: str = Depends(get_owner_id),
    ranker: HybridRanker = Depends(get_hybrid_ranker),
) -> SearchResponse:
    result = await ranker.search(q, owner_id, search_type=type, limit=limit)
    return SearchResponse(**result.to_dict())


__all__ = ["router"]
