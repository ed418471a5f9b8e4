"""
Vector Store - embeddings for context items and workspace-scoped similarity search.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loopbrain.core.config import settings
from loopbrain.core.database import utcnow
from loopbrain.core.logging import get_logger
from loopbrain.models.context import ContextEmbedding, ContextItem
from loopbrain.services.store.items import ensure_item_in_workspace
from loopbrain.services.store.similarity import SimilarityIndex, InProcessCosineIndex

logger = get_logger(__name__)


@dataclass
class ScoredContextItem:
    """A context item with its similarity to the query vector."""
    item: ContextItem
    score: float


def _log_dimension_mismatch(key: str, expected: int, actual: int) -> None:
    logger.warning(
        "Vector dimension mismatch in similarity search",
        query_dim=expected,
        candidate_dim=actual,
        context_item_id=key,
    )


class VectorStore:
    """Stores one vector per context item and ranks them against a query."""
    
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        index: Optional[SimilarityIndex] = None,
        max_candidates: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.index = index or InProcessCosineIndex(on_dimension_mismatch=_log_dimension_mismatch)
        self.max_candidates = max_candidates or settings.SEARCH_MAX_CANDIDATES
    
    async def save_embedding(
        self,
        context_item_id: str,
        vector: Sequence[float],
        workspace_id: str
    ) -> None:
        """
        Insert or replace the vector for a context item.

        Raises:
            ContextItemNotFoundError: The item is not in this workspace
        """
        vector = [float(x) for x in vector]

        async with self.session_factory() as session:
            await ensure_item_in_workspace(session, context_item_id, workspace_id)

            stmt = select(ContextEmbedding).where(
                ContextEmbedding.workspace_id == workspace_id,
                ContextEmbedding.context_item_id == context_item_id,
            )
            record = (await session.execute(stmt)).scalar_one_or_none()

            if record:
                record.embedding = vector
                record.updated_at = utcnow()
            else:
                session.add(ContextEmbedding(
                    context_item_id=context_item_id,
                    workspace_id=workspace_id,
                    embedding=vector,
                ))
            await session.commit()
    
    async def get_embedding(
        self,
        context_item_id: str,
        workspace_id: str
    ) -> Optional[List[float]]:
        async with self.session_factory() as session:
            stmt = select(ContextEmbedding.embedding).where(
                ContextEmbedding.workspace_id == workspace_id,
                ContextEmbedding.context_item_id == context_item_id,
            )
            vector = (await session.execute(stmt)).scalar_one_or_none()
        return [float(x) for x in vector] if vector is not None else None
    
    async def delete_embedding(self, context_item_id: str, workspace_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ContextEmbedding).where(
                    ContextEmbedding.workspace_id == workspace_id,
                    ContextEmbedding.context_item_id == context_item_id,
                )
            )
            await session.commit()
    
    async def search(
        self,
        workspace_id: str,
        vector: Sequence[float],
        type: Optional[str] = None,
        limit: int = 10
    ) -> List[ScoredContextItem]:
        """
        Rank stored vectors in a workspace against a query vector.
        
        Args:
            workspace_id: Tenant to search in
            vector: Query embedding
            type: Restrict to context items of this type
            limit: Maximum number of results
            
        Returns:
            Items with a positive score, best first
        """
        async with self.session_factory() as session:
            stmt = (
                select(ContextEmbedding, ContextItem)
                .join(ContextItem, ContextItem.id == ContextEmbedding.context_item_id)
                .where(
                    ContextEmbedding.workspace_id == workspace_id,
                    ContextItem.workspace_id == workspace_id,
                )
            )
            if type:
                stmt = stmt.where(ContextItem.type == type)
            stmt = stmt.order_by(ContextEmbedding.updated_at.desc()).limit(self.max_candidates)
            
            rows = (await session.execute(stmt)).all()
        
        if not rows:
            return []
        
        items = {}
        candidates = []
        for embedding, item in rows:
            items[item.id] = item
            candidates.append((item.id, [float(x) for x in embedding.embedding]))
        
        ranked = self.index.similarity_search(candidates, [float(x) for x in vector], limit)
        
        logger.debug(
            "Vector search completed",
            workspace_id=workspace_id,
            candidates=len(candidates),
            results_count=len(ranked),
            type=type,
        )
        
        return [ScoredContextItem(item=items[key], score=score) for key, score in ranked]
