"""
Summary store: long-form summaries for context items, mirrored onto the item row.
"""
from typing import Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loopbrain.core.database import utcnow
from loopbrain.core.logging import get_logger
from loopbrain.models.context import ContextItem, ContextSummary
from loopbrain.services.store.items import ensure_item_in_workspace

logger = get_logger(__name__)


class SummaryStore:
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def save_summary(
        self,
        context_item_id: str,
        summary: str,
        workspace_id: str
    ) -> None:
        """
        Upsert the summary record and copy it onto ContextItem.summary.

        Raises:
            ContextItemNotFoundError: The item is not in this workspace
        """
        async with self.session_factory() as session:
            await ensure_item_in_workspace(session, context_item_id, workspace_id)

            stmt = select(ContextSummary).where(
                ContextSummary.workspace_id == workspace_id,
                ContextSummary.context_item_id == context_item_id,
            )
            record = (await session.execute(stmt)).scalar_one_or_none()
            
            if record:
                record.summary = summary
                record.updated_at = utcnow()
            else:
                session.add(ContextSummary(
                    context_item_id=context_item_id,
                    workspace_id=workspace_id,
                    summary=summary,
                ))
            
            await session.execute(
                update(ContextItem)
                .where(
                    ContextItem.workspace_id == workspace_id,
                    ContextItem.id == context_item_id,
                )
                .values(summary=summary)
            )
            await session.commit()
    
    async def get_summary(self, context_item_id: str, workspace_id: str) -> Optional[str]:
        async with self.session_factory() as session:
            stmt = select(ContextSummary.summary).where(
                ContextSummary.workspace_id == workspace_id,
                ContextSummary.context_item_id == context_item_id,
            )
            return (await session.execute(stmt)).scalar_one_or_none()
    
    async def get_summary_with_fallback(
        self,
        context_item_id: str,
        workspace_id: str
    ) -> Optional[str]:
        """Summary record if present, else the inline ContextItem.summary."""
        summary = await self.get_summary(context_item_id, workspace_id)
        if summary:
            return summary
        
        async with self.session_factory() as session:
            stmt = select(ContextItem.summary).where(
                ContextItem.workspace_id == workspace_id,
                ContextItem.id == context_item_id,
            )
            return (await session.execute(stmt)).scalar_one_or_none()
    
    async def delete_summary(self, context_item_id: str, workspace_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ContextSummary).where(
                    ContextSummary.workspace_id == workspace_id,
                    ContextSummary.context_item_id == context_item_id,
                )
            )
            await session.execute(
                update(ContextItem)
                .where(
                    ContextItem.workspace_id == workspace_id,
                    ContextItem.id == context_item_id,
                )
                .values(summary=None)
            )
            await session.commit()
        
        logger.debug("Summary deleted", context_item_id=context_item_id, workspace_id=workspace_id)
