"""Retrieval orchestration components."""

from .cache import EmbeddingCache, ResultCache, TTLCache
from .excerpt import ExcerptExtractor, extract_excerpt, highlight
from .hybrid import HybridRanker, merge_scores
from .search import RetrievalService
from .tiers import FullTextTier, RetrievalTier, SubstringTier, VectorTier

__all__ = [
    "TTLCache",
    "EmbeddingCache",
    "ResultCache",
    "ExcerptExtractor",
    "extract_excerpt",
    "highlight",
    "HybridRanker",
    "merge_scores",
    "RetrievalService",
    "RetrievalTier",
    "VectorTier",
    "FullTextTier",
    "SubstringTier",
]
