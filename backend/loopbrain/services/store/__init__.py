"""
Context Store: cached context snapshots, their vectors and summaries.
All reads and writes are scoped by workspace.
"""
from loopbrain.services.store.items import ContextItemStore, derive_title
from loopbrain.services.store.vectors import VectorStore, ScoredContextItem
from loopbrain.services.store.summaries import SummaryStore
from loopbrain.services.store.similarity import (
    SimilarityIndex,
    InProcessCosineIndex,
    cosine_similarity,
)

__all__ = [
    "ContextItemStore",
    "derive_title",
    "VectorStore",
    "ScoredContextItem",
    "SummaryStore",
    "SimilarityIndex",
    "InProcessCosineIndex",
    "cosine_similarity",
]
