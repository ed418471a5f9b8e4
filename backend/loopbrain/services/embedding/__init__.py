"""
Embedding & semantic search.
"""
from loopbrain.services.embedding.provider import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    get_embedding_provider,
)
from loopbrain.services.embedding.text import build_embedding_text
from loopbrain.services.embedding.service import EmbeddingService, SearchResult
from loopbrain.services.embedding.backfill import backfill_workspace_embeddings

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "get_embedding_provider",
    "build_embedding_text",
    "EmbeddingService",
    "SearchResult",
    "backfill_workspace_embeddings",
]
