"""
Embedding backfill for existing context items.

Long-running; run it from ``scripts/backfill_embeddings.py``, never from a
request handler.
"""
import asyncio
from typing import Any, Dict, List, Optional

from loopbrain.core.config import settings
from loopbrain.core.logging import get_logger
from loopbrain.services.embedding.service import EmbeddingService

logger = get_logger(__name__)

MAX_REPORTED_ERRORS = 100


async def backfill_workspace_embeddings(
    service: EmbeddingService,
    workspace_id: str,
    type: Optional[str] = None,
    batch_size: Optional[int] = None,
    delay_ms: Optional[int] = None,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Embed every context item of a workspace, throttled in small batches.
    
    A failing item is recorded and skipped. There is no delay after the
    last batch of a page.
    
    Returns:
        Dict with total, processed, succeeded, failed and errors (first 100)
    """
    batch_size = batch_size or settings.BACKFILL_BATCH_SIZE
    delay_ms = settings.BACKFILL_DELAY_MS if delay_ms is None else delay_ms
    page_size = page_size or settings.BACKFILL_PAGE_SIZE
    
    logger.info(
        "Starting embedding backfill",
        workspace_id=workspace_id,
        type=type,
        batch_size=batch_size,
        delay_ms=delay_ms,
    )
    
    total = await service.items.count(workspace_id, type)
    logger.info("Found context items to backfill", workspace_id=workspace_id, total=total, type=type)
    
    processed = 0
    succeeded = 0
    failed = 0
    errors: List[Dict[str, str]] = []
    
    offset = 0
    while offset < total:
        items = await service.items.list(workspace_id, type=type, limit=page_size, offset=offset)
        if not items:
            break
        
        for i in range(0, len(items), batch_size):
            for item in items[i:i + batch_size]:
                try:
                    await service.embed_context_item(workspace_id, item.id)
                    succeeded += 1
                except Exception as e:
                    failed += 1
                    errors.append({"context_item_id": item.id, "error": str(e)})
                    logger.error(
                        "Failed to embed context item",
                        context_item_id=item.id,
                        workspace_id=workspace_id,
                        error=str(e),
                    )
                processed += 1
                
                if processed % 10 == 0:
                    logger.info(
                        "Backfill progress",
                        workspace_id=workspace_id,
                        processed=processed,
                        total=total,
                        succeeded=succeeded,
                        failed=failed,
                    )
            
            if i + batch_size < len(items) and delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)
        
        offset += page_size
    
    logger.info(
        "Embedding backfill completed",
        workspace_id=workspace_id,
        total=total,
        processed=processed,
        succeeded=succeeded,
        failed=failed,
        error_count=len(errors),
    )
    
    return {
        "total": total,
        "processed": processed,
        "succeeded": succeeded,
        "failed": failed,
        "errors": errors[:MAX_REPORTED_ERRORS],
    }
