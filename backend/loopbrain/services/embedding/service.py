"""
Embedding Service - embeds stored context items and runs semantic search.
"""
from typing import List, Optional

from loopbrain.core.config import settings
from loopbrain.core.exceptions import ContextItemNotFoundError, WorkspaceMismatchError
from loopbrain.core.logging import get_logger
from loopbrain.schemas.structured import CamelModel
from loopbrain.services.embedding.provider import EmbeddingProvider
from loopbrain.services.embedding.text import build_embedding_text
from loopbrain.services.store.items import ContextItemStore
from loopbrain.services.store.vectors import VectorStore

logger = get_logger(__name__)


class SearchResult(CamelModel):
    """A ranked semantic-search hit."""
    context_item_id: str
    context_id: str
    type: str
    title: str
    score: float


class EmbeddingService:
    """Builds embedding text for stored items and ranks them against queries."""
    
    def __init__(
        self,
        provider: EmbeddingProvider,
        items: ContextItemStore,
        vectors: VectorStore
    ):
        self.provider = provider
        self.items = items
        self.vectors = vectors
    
    async def embed(self, text: str) -> List[float]:
        return await self.provider.embed(text.strip())
    
    async def embed_context_item(self, workspace_id: str, context_item_id: str) -> None:
        """
        Embed one stored context item and save its vector.
        
        Raises:
            ContextItemNotFoundError: The item does not exist in this workspace
            WorkspaceMismatchError: The loaded item belongs to another workspace
            EmbeddingError: The provider call failed
        """
        item = await self.items.get_by_id(context_item_id, workspace_id)
        if item is None:
            raise ContextItemNotFoundError(context_item_id)
        
        if item.workspace_id != workspace_id:
            logger.error(
                "Workspace mismatch on context item",
                context_item_id=context_item_id,
                workspace_id=workspace_id,
            )
            raise WorkspaceMismatchError(context_item_id)
        
        context = self.items.deserialize(item)
        text = build_embedding_text(context)
        
        if not text.strip():
            logger.warning(
                "Empty embedding text for context item",
                context_item_id=context_item_id,
                type=item.type,
            )
            text = f"Type: {item.type}"
        
        vector = await self.embed(text)
        await self.vectors.save_embedding(context_item_id, vector, workspace_id)
        
        logger.debug(
            "Context item embedded",
            context_item_id=context_item_id,
            type=item.type,
            workspace_id=workspace_id,
            vector_dim=len(vector),
        )
    
    async def search_similar(
        self,
        workspace_id: str,
        query: str,
        type: Optional[str] = None,
        limit: int = 10
    ) -> List[SearchResult]:
        """Embed the query and return the closest stored items in the workspace."""
        vector = await self.embed(query)
        
        hits = await self.vectors.search(
            workspace_id,
            vector,
            type=type,
            limit=min(limit, settings.SEARCH_MAX_RESULTS),
        )
        
        return [
            SearchResult(
                context_item_id=hit.item.id,
                context_id=hit.item.context_id,
                type=hit.item.type,
                title=hit.item.title,
                score=hit.score,
            )
            for hit in hits
        ]
