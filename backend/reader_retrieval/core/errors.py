"""Error taxonomy for the retrieval subsystem."""

from __future__ import annotations


class RetrievalError(Exception):
    """Base class for retrieval failures."""


class ProviderError(RetrievalError):
    """The embedding provider could not produce a vector."""


class StorageError(RetrievalError):
    """A query against the corpus store failed."""


class QueryError(RetrievalError):
    """The request cannot be answered as posed (e.g. a blank query)."""


__all__ = ["RetrievalError", "ProviderError", "StorageError", "QueryError"]
