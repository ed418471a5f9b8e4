"""
Context item store: cached context snapshots keyed by (context_id, type, workspace_id).
"""
from typing import List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loopbrain.core.database import utcnow
from loopbrain.core.exceptions import ContextItemNotFoundError
from loopbrain.core.logging import get_logger
from loopbrain.models.context import ContextItem, ContextEmbedding, ContextSummary
from loopbrain.schemas.context import BaseContext, ContextType, context_to_json, context_from_json

logger = get_logger(__name__)


def derive_title(context: BaseContext) -> str:
    """Human-readable title stored alongside a snapshot."""
    ws = context.workspace_id
    match context.type:
        case ContextType.WORKSPACE | ContextType.PROJECT:
            return context.name
        case ContextType.PAGE | ContextType.TASK | ContextType.EPIC:
            return context.title
        case ContextType.ORG:
            return f"Org Context for {ws}"
        case ContextType.ACTIVITY:
            return f"Activity Context for {ws}"
        case ContextType.UNIFIED:
            return f"Unified Context for {ws}"
        case _:
            return "Unknown Context"


async def ensure_item_in_workspace(
    session: AsyncSession,
    context_item_id: str,
    workspace_id: str
) -> None:
    """
    Guard for rows keyed by a context item.

    Raises:
        ContextItemNotFoundError: No item with this id in the workspace
    """
    stmt = select(ContextItem.id).where(
        ContextItem.workspace_id == workspace_id,
        ContextItem.id == context_item_id,
    )
    if (await session.execute(stmt)).scalar_one_or_none() is None:
        logger.warning(
            "Write refused for context item outside workspace",
            context_item_id=context_item_id,
            workspace_id=workspace_id,
        )
        raise ContextItemNotFoundError(context_item_id)


class ContextItemStore:
    """
    Repository for ContextItem rows.
    
    Every query filters by workspace_id first. Each call opens its own
    session so callers may run several lookups concurrently.
    """
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
    
    async def save(self, context: BaseContext) -> ContextItem:
        """
        Upsert a snapshot.
        
        An existing row for the same (id, type, workspace) is updated in
        place; its summary is cleared since it no longer matches the data.
        """
        data = context_to_json(context)
        title = derive_title(context)
        
        async with self.session_factory() as session:
            stmt = select(ContextItem).where(
                ContextItem.workspace_id == context.workspace_id,
                ContextItem.context_id == context.id,
                ContextItem.type == context.type,
            )
            item = (await session.execute(stmt)).scalar_one_or_none()
            
            if item:
                item.title = title
                item.summary = None
                item.data = data
                item.updated_at = utcnow()
            else:
                item = ContextItem(
                    context_id=context.id,
                    workspace_id=context.workspace_id,
                    type=context.type,
                    title=title,
                    data=data,
                )
                session.add(item)
            
            await session.commit()
            await session.refresh(item)
        
        logger.debug(
            "Context item saved",
            context_item_id=item.id,
            context_id=context.id,
            type=context.type,
            workspace_id=context.workspace_id,
        )
        return item
    
    async def get(
        self,
        context_id: str,
        type: str,
        workspace_id: str
    ) -> Optional[ContextItem]:
        async with self.session_factory() as session:
            stmt = select(ContextItem).where(
                ContextItem.workspace_id == workspace_id,
                ContextItem.context_id == context_id,
                ContextItem.type == type,
            )
            return (await session.execute(stmt)).scalar_one_or_none()
    
    async def get_by_id(self, item_id: str, workspace_id: str) -> Optional[ContextItem]:
        async with self.session_factory() as session:
            stmt = select(ContextItem).where(
                ContextItem.workspace_id == workspace_id,
                ContextItem.id == item_id,
            )
            return (await session.execute(stmt)).scalar_one_or_none()
    
    async def list(
        self,
        workspace_id: str,
        type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[ContextItem]:
        """List snapshots for a workspace, most recently updated first."""
        async with self.session_factory() as session:
            stmt = select(ContextItem).where(ContextItem.workspace_id == workspace_id)
            if type:
                stmt = stmt.where(ContextItem.type == type)
            stmt = stmt.order_by(ContextItem.updated_at.desc(), ContextItem.id).limit(limit).offset(offset)
            return list((await session.execute(stmt)).scalars().all())
    
    async def count(self, workspace_id: str, type: Optional[str] = None) -> int:
        async with self.session_factory() as session:
            stmt = select(func.count()).select_from(ContextItem).where(
                ContextItem.workspace_id == workspace_id
            )
            if type:
                stmt = stmt.where(ContextItem.type == type)
            return (await session.execute(stmt)).scalar_one()
    
    async def delete(self, item_id: str, workspace_id: str) -> bool:
        async with self.session_factory() as session:
            # Dependent rows first; not every dialect enforces ON DELETE CASCADE
            owned = select(ContextItem.id).where(
                ContextItem.workspace_id == workspace_id,
                ContextItem.id == item_id,
            )
            await session.execute(delete(ContextEmbedding).where(ContextEmbedding.context_item_id.in_(owned)))
            await session.execute(delete(ContextSummary).where(ContextSummary.context_item_id.in_(owned)))
            result = await session.execute(
                delete(ContextItem).where(
                    ContextItem.workspace_id == workspace_id,
                    ContextItem.id == item_id,
                )
            )
            await session.commit()
        
        deleted = result.rowcount > 0
        logger.info("Context item deleted", context_item_id=item_id, workspace_id=workspace_id, deleted=deleted)
        return deleted
    
    @staticmethod
    def deserialize(item: ContextItem) -> BaseContext:
        """Parse a stored row back into its context variant."""
        return context_from_json(item.data)
