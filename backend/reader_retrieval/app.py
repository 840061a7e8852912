"""FastAPI application setup for the retrieval service."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reader_retrieval.api.dependencies import (
    get_app_settings,
    get_database,
    get_embedding_cache,
    get_hybrid_ranker,
    get_indexer,
    get_result_cache,
    get_retrieval_service,
)
from reader_retrieval.api.routes_admin import router as admin_router
from reader_retrieval.api.routes_ingest import router as ingest_router
from reader_retrieval.api.routes_query import router as query_router
from reader_retrieval.core.logging import configure_logging

configure_logging()

app = FastAPI(
    title="Reader Retrieval",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(ingest_router, prefix="", tags=["ingest"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_embedding_cache()
    get_result_cache()
    get_retrieval_service()
    get_hybrid_ranker()
    get_indexer()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
