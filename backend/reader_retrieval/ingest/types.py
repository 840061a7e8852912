"""Common indexing data structures."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class IndexResult:
    """Outcome of indexing a single document."""

    document_id: str
    status: str
    chunks: int = 0
    failed_batches: int = 0


__all__ = ["IndexResult"]
