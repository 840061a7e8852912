"""Document and concept ingest routes."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from reader_retrieval.api.dependencies import get_indexer, get_owner_id, get_result_cache, get_store
from reader_retrieval.core.errors import StorageError
from reader_retrieval.db.store import CorpusStore
from reader_retrieval.ingest.indexer import Indexer
from reader_retrieval.models.dto import (
    ConceptCreateRequest,
    ConceptResponse,
    DeleteResponse,
    DocumentCreateRequest,
    DocumentResponse,
)
from reader_retrieval.retrieval.cache import ResultCache

router = APIRouter()


@router.post("/documents", response_model=DocumentResponse, summary="Store and index a document")
def create_document(
    request: DocumentCreateRequest,
    owner_id: str = Depends(get_owner_id),
    indexer: Indexer = Depends(get_indexer),
    result_cache: ResultCache = Depends(get_result_cache),
) -> DocumentResponse:
    try:
        document, outcome = indexer.add_document(
            owner_id,
            request.title,
            request.body,
            domain=request.domain,
            collection_id=request.collection_id,
            summary=request.summary,
        )
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    result_cache.clear()
    return DocumentResponse(
        id=document.id,
        title=document.title,
        domain=document.domain,
        collection_id=document.collection_id,
        summary=document.summary,
        created_at=datetime.fromtimestamp(document.created_at / 1000, tz=timezone.utc),
        status=outcome.status,
        chunks=outcome.chunks,
        failed_batches=outcome.failed_batches,
    )


@router.delete("/documents/{document_id}", response_model=DeleteResponse, summary="Soft delete a document")
def delete_document(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    store: CorpusStore = Depends(get_store),
    result_cache: ResultCache = Depends(get_result_cache),
) -> DeleteResponse:
    try:
        deleted = store.soft_delete_document(document_id, owner_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if deleted:
        # Cached answers may still cite the document.
        result_cache.clear()
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))


@router.post("/concepts", response_model=ConceptResponse, summary="Store a concept")
def create_concept(
    request: ConceptCreateRequest,
    owner_id: str = Depends(get_owner_id),
    indexer: Indexer = Depends(get_indexer),
) -> ConceptResponse:
    try:
        concept = indexer.add_concept(
            owner_id,
            request.term,
            definition=request.definition,
            example=request.example,
            ai_definition=request.ai_definition,
            source_document_id=request.source_document_id,
        )
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ConceptResponse(
        id=concept.id,
        term=concept.term,
        definition=concept.definition,
        example=concept.example,
        source_document_id=concept.source_document_id,
    )


@router.delete("/concepts/{concept_id}", response_model=DeleteResponse, summary="Soft delete a concept")
def delete_concept(
    concept_id: str,
    owner_id: str = Depends(get_owner_id),
    store: CorpusStore = Depends(get_store),
) -> DeleteResponse:
    try:
        deleted = store.soft_delete_concept(concept_id, owner_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))


__all__ = ["router"]
