"""
Context Loaders - assemble everything the prompt needs for one mode.

Every source is an independent coroutine run concurrently under its own
timeout. A source that raises or times out is logged and skipped; the
rest of the context still loads.
"""
import asyncio
from typing import Any, Awaitable, Dict, List, Optional

from loopbrain.core.config import settings
from loopbrain.core.logging import get_logger
from loopbrain.schemas.context import ContextType
from loopbrain.schemas.structured import StructuredContextObject
from loopbrain.services.embedding.service import EmbeddingService
from loopbrain.services.engine.engine import ContextEngine
from loopbrain.services.orchestrator.state import (
    ContextSummary,
    LoopMode,
    LoopRequest,
    RetrievedItem,
)

logger = get_logger(__name__)


STRUCTURED_OBJECT_LIMIT = 50
PERSONAL_DOCS_LIMIT = 50
ORG_PEOPLE_LIMIT = 100


class ContextLoader:
    """Mode-specific context assembly on top of the engine and semantic search."""

    def __init__(
        self,
        engine: ContextEngine,
        embeddings: Optional[EmbeddingService] = None,
        timeout: Optional[float] = None
    ):
        self.engine = engine
        self.embeddings = embeddings
        self.timeout = timeout if timeout is not None else settings.CONTEXT_SOURCE_TIMEOUT

    async def load(self, request: LoopRequest, mode: LoopMode) -> ContextSummary:
        if mode == LoopMode.SPACES:
            return await self.load_spaces(request)
        if mode == LoopMode.ORG:
            return await self.load_org(request)
        return await self.load_dashboard(request)

    # ========================================
    # Fan-out
    # ========================================

    async def _gather(self, sources: Dict[str, Awaitable[Any]]) -> tuple[Dict[str, Any], List[str], List[str]]:
        """Run all sources concurrently; return (results, loaded, failed)."""
        names = list(sources.keys())
        outcomes = await asyncio.gather(
            *(asyncio.wait_for(sources[name], timeout=self.timeout) for name in names),
            return_exceptions=True,
        )

        results: Dict[str, Any] = {}
        loaded: List[str] = []
        failed: List[str] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning("Context source timed out", source=name, timeout=self.timeout)
                failed.append(name)
            elif isinstance(outcome, Exception):
                logger.warning("Context source failed", source=name, error=str(outcome))
                failed.append(name)
            else:
                results[name] = outcome
                loaded.append(name)

        return results, loaded, failed

    async def _search(
        self,
        request: LoopRequest,
        type: Optional[str] = None
    ) -> List[RetrievedItem]:
        hits = await self.embeddings.search_similar(
            request.workspace_id,
            request.query,
            type=type,
            limit=request.max_context_items,
        )
        return [RetrievedItem(**hit.model_dump()) for hit in hits]

    def _wants_search(self, request: LoopRequest) -> bool:
        return request.use_semantic_search and self.embeddings is not None

    # ========================================
    # Modes
    # ========================================

    async def load_spaces(self, request: LoopRequest) -> ContextSummary:
        """Anchor context (page > project > task) or the workspace, plus project slices and personal docs."""
        ws = request.workspace_id
        anchors = request.anchors
        page_id = anchors.page_id if anchors else None
        project_id = anchors.project_id if anchors else None
        task_id = anchors.task_id if anchors else None
        epic_id = anchors.epic_id if anchors else None

        sources: Dict[str, Awaitable[Any]] = {}
        if page_id:
            sources["page"] = self.engine.get_page_context(page_id, ws)
        if project_id:
            sources["project"] = self.engine.get_project_context(project_id, ws)
            sources["project_object"] = self.engine.get_project_context_object(project_id, ws)
            sources["project_epics"] = self.engine.get_project_epics(project_id, ws)
            sources["project_tasks"] = self.engine.get_project_tasks(project_id, ws)
        if task_id:
            sources["task"] = self.engine.get_task_context(task_id, ws)
        if epic_id:
            sources["epic"] = self.engine.get_epic_context_object(epic_id, ws)
        if not (page_id or project_id or task_id):
            sources["workspace"] = self.engine.get_workspace_context(ws)
        if self._wants_search(request):
            sources["semantic_search"] = self._search(request)
        sources["structured"] = self.engine.get_workspace_context_objects(
            ws, user_id=request.user_id, include_tasks=True, limit=STRUCTURED_OBJECT_LIMIT
        )
        sources["personal_docs"] = self.engine.get_personal_space_docs(
            ws, request.user_id, limit=PERSONAL_DOCS_LIMIT
        )

        results, loaded, failed = await self._gather(sources)

        primary = (
            results.get("page")
            or results.get("project")
            or results.get("task")
            or results.get("workspace")
        )

        # Anchors given but none resolved: fall back to the unified view
        if primary is None and anchors and anchors.any():
            fallback, more_loaded, more_failed = await self._gather({
                "unified": self.engine.get_unified_context(
                    ws,
                    project_id=project_id,
                    page_id=page_id,
                    task_id=task_id,
                    user_id=request.user_id,
                ),
            })
            primary = fallback.get("unified")
            loaded += more_loaded
            failed += more_failed

        project_epics: List[StructuredContextObject] = list(results.get("project_epics") or [])
        structured: List[StructuredContextObject] = list(results.get("structured") or [])

        epic = results.get("epic")
        if epic is not None and all(e.id != epic.id for e in project_epics):
            project_epics.append(epic)

        seen = {obj.id for obj in structured}
        for obj in project_epics:
            if obj.id not in seen:
                structured.append(obj)
                seen.add(obj.id)

        project_object = results.get("project_object")
        if project_object is not None:
            structured = [project_object] + [obj for obj in structured if obj.id != project_object.id]

        return ContextSummary(
            primary_context=primary,
            retrieved_items=results.get("semantic_search") or [],
            structured_context=structured,
            project_epics=project_epics,
            project_tasks=results.get("project_tasks") or [],
            personal_docs=results.get("personal_docs") or [],
            sources_loaded=loaded,
            sources_failed=failed,
        )

    async def load_org(self, request: LoopRequest) -> ContextSummary:
        """Org structure, org-scoped semantic hits and the people directory."""
        ws = request.workspace_id
        sources: Dict[str, Awaitable[Any]] = {
            "org": self.engine.get_org_context(ws),
            "org_people": self.engine.get_org_people(ws, limit=ORG_PEOPLE_LIMIT),
        }
        if self._wants_search(request):
            sources["semantic_search"] = self._search(request, type=ContextType.ORG.value)

        results, loaded, failed = await self._gather(sources)

        return ContextSummary(
            primary_context=results.get("org"),
            retrieved_items=results.get("semantic_search") or [],
            org_people=results.get("org_people") or [],
            sources_loaded=loaded,
            sources_failed=failed,
        )

    async def load_dashboard(self, request: LoopRequest) -> ContextSummary:
        """Workspace overview with recent activity as related context."""
        ws = request.workspace_id
        sources: Dict[str, Awaitable[Any]] = {
            "workspace": self.engine.get_workspace_context(ws),
            "activity": self.engine.get_activity_context(ws),
            "org_people": self.engine.get_org_people(ws, limit=ORG_PEOPLE_LIMIT),
        }
        if self._wants_search(request):
            sources["semantic_search"] = self._search(request)

        results, loaded, failed = await self._gather(sources)

        activity = results.get("activity")
        return ContextSummary(
            primary_context=results.get("workspace"),
            related_context=[activity] if activity is not None else [],
            retrieved_items=results.get("semantic_search") or [],
            org_people=results.get("org_people") or [],
            sources_loaded=loaded,
            sources_failed=failed,
        )
