"""
Loopbrain API endpoints.

Workspace and user identity come from the X-Workspace-Id / X-User-Id
headers set by the authentication layer, never from the request body.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from loopbrain.core.config import settings
from loopbrain.core.exceptions import (
    ContextItemNotFoundError,
    EmbeddingError,
    LLMError,
    RequestValidationError,
    WorkspaceMismatchError,
)
from loopbrain.core.logging import get_logger
from loopbrain.services.container import LoopbrainServices
from loopbrain.services.embedding.service import SearchResult
from loopbrain.services.orchestrator.state import Anchors, LoopRequest, LoopResponse

logger = get_logger(__name__)
router = APIRouter()


# ========================================
# Request/Response Schemas
# ========================================

class ChatRequest(BaseModel):
    """One question to Loopbrain."""
    mode: str = Field(..., description="spaces, org or dashboard")
    query: str = Field(..., description="The user's question")
    anchors: Optional[Anchors] = None
    useSemanticSearch: bool = True
    maxContextItems: Optional[int] = None
    actionFlag: bool = False
    actionChannel: Optional[str] = None


class SearchRequest(BaseModel):
    """Semantic search over stored context items."""
    query: str
    type: Optional[str] = None
    limit: int = 10


class SearchResponse(BaseModel):
    workspaceId: str
    query: str
    results: list[SearchResult]


class EmbedResponse(BaseModel):
    contextItemId: str
    embedded: bool


def get_services(request: Request) -> LoopbrainServices:
    return request.app.state.services


# ========================================
# API Endpoints
# ========================================

@router.post("/chat", response_model=LoopResponse, response_model_exclude_none=True)
async def chat(
    request: ChatRequest,
    workspace_id: str = Header(..., alias="X-Workspace-Id"),
    user_id: str = Header(..., alias="X-User-Id"),
    services: LoopbrainServices = Depends(get_services),
):
    """
    Ask Loopbrain a question in the given mode.
    """
    try:
        loop_request = LoopRequest(
            workspace_id=workspace_id,
            user_id=user_id,
            mode=request.mode,
            query=request.query,
            anchors=request.anchors,
            use_semantic_search=request.useSemanticSearch,
            max_context_items=request.maxContextItems,
            action_flag=request.actionFlag,
            action_channel=request.actionChannel,
        )
        return await services.orchestrator.handle(loop_request)

    except RequestValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMError as e:
        logger.error("Loopbrain answer failed", workspace_id=workspace_id, error=str(e))
        raise HTTPException(status_code=500, detail="AI service temporarily unavailable")
    except Exception as e:
        logger.error("Loopbrain request failed", workspace_id=workspace_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="AI service temporarily unavailable")


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    workspace_id: str = Header(..., alias="X-Workspace-Id"),
    services: LoopbrainServices = Depends(get_services),
):
    """
    Rank stored context items in the workspace against a query.
    """
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")

    limit = max(1, min(request.limit, settings.SEARCH_MAX_RESULTS))

    try:
        results = await services.embeddings.search_similar(
            workspace_id,
            request.query,
            type=request.type,
            limit=limit,
        )
    except EmbeddingError as e:
        logger.error("Semantic search failed", workspace_id=workspace_id, error=str(e))
        raise HTTPException(status_code=502, detail="Embedding service temporarily unavailable")

    return SearchResponse(workspaceId=workspace_id, query=request.query, results=results)


@router.post("/embed/{context_item_id}", response_model=EmbedResponse)
async def embed_context_item(
    context_item_id: str,
    workspace_id: str = Header(..., alias="X-Workspace-Id"),
    services: LoopbrainServices = Depends(get_services),
):
    """
    Re-embed one stored context item.
    """
    try:
        await services.embeddings.embed_context_item(workspace_id, context_item_id)
    except (ContextItemNotFoundError, WorkspaceMismatchError):
        raise HTTPException(status_code=404, detail="Context item not found")
    except EmbeddingError as e:
        logger.error(
            "Embedding failed",
            workspace_id=workspace_id,
            context_item_id=context_item_id,
            error=str(e),
        )
        raise HTTPException(status_code=502, detail="Embedding service temporarily unavailable")

    return EmbedResponse(contextItemId=context_item_id, embedded=True)
