"""
Context Engine - builds canonical context objects from the product's domain tables.

Every query is scoped by workspace. Built contexts are cached in the
Context Store on a best-effort basis: a failed cache write is logged and
the freshly built context is still returned.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from loopbrain.core.logging import get_logger
from loopbrain.models.domain import (
    Activity,
    Epic,
    OrgPosition,
    OrgTeam,
    Project,
    Task,
    User,
    WikiPage,
    Workspace,
    WorkspaceMember,
)
from loopbrain.schemas.context import (
    ActivityContext,
    ActivitySummary,
    BaseContext,
    Breadcrumb,
    ContextMetadata,
    ContextType,
    DepartmentSummary,
    EntityRef,
    EpicContext,
    EpicSummary,
    OrgContext,
    OrgHierarchyNode,
    PageContext,
    PersonRef,
    ProjectContext,
    RelatedDoc,
    RoleSummary,
    TaskContext,
    TaskSummary,
    TeamSummary,
    UnifiedContext,
    WorkspaceContext,
)
from loopbrain.schemas.structured import StructuredContextObject
from loopbrain.services.engine.builders import (
    build_epic_object,
    build_task_object,
    page_to_context,
    project_to_context,
    role_to_context,
    task_to_context,
)
from loopbrain.services.store.items import ContextItemStore

logger = get_logger(__name__)

MAX_BREADCRUMB_DEPTH = 10


@dataclass
class ContextOptions:
    """Overrides for context retrieval."""
    limit: Optional[int] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _person(user: Optional[User]) -> Optional[PersonRef]:
    if user is None:
        return None
    return PersonRef(id=user.id, name=user.name or "Unknown", email=user.email)


def _task_summary(task: Task) -> TaskSummary:
    return TaskSummary(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        due_date=_iso(task.due_date),
        assignee=_person(task.assignee),
    )


def _limit(options: Optional[ContextOptions], default: int) -> int:
    return options.limit if options and options.limit else default


class ContextEngine:
    """
    Retrieves contextual information for Loopbrain.

    Each public call opens its own session from the factory, so the
    orchestrator can fan several lookups out concurrently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: ContextItemStore
    ):
        self.session_factory = session_factory
        self.store = store

    async def _cache(self, context: BaseContext) -> None:
        """Save to the Context Store; log errors but never fail the read."""
        try:
            await self.store.save(context)
        except Exception as e:
            logger.error(
                "Failed to save context to store",
                type=context.type,
                context_id=context.id,
                workspace_id=context.workspace_id,
                error=str(e),
            )

    # ========================================
    # Canonical contexts
    # ========================================

    async def get_workspace_context(
        self,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[WorkspaceContext]:
        """Workspace name, description and member/project/page counts."""
        try:
            async with self.session_factory() as session:
                workspace = await session.get(Workspace, workspace_id)
                if workspace is None:
                    return None

                member_count = await self._count(session, WorkspaceMember, WorkspaceMember.workspace_id == workspace_id)
                project_count = await self._count(session, Project, Project.workspace_id == workspace_id)
                page_count = await self._count(session, WikiPage, WikiPage.workspace_id == workspace_id)

            context = WorkspaceContext(
                id=workspace.id,
                workspace_id=workspace.id,
                timestamp=_now(),
                name=workspace.name,
                description=workspace.description,
                member_count=member_count,
                project_count=project_count,
                page_count=page_count,
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching workspace context", workspace_id=workspace_id, error=str(e))
            return None

    async def get_page_context(
        self,
        page_id: str,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[PageContext]:
        """Wiki page with breadcrumbs, related docs and author."""
        try:
            async with self.session_factory() as session:
                stmt = (
                    select(WikiPage)
                    .where(WikiPage.workspace_id == workspace_id, WikiPage.id == page_id)
                    .options(selectinload(WikiPage.created_by))
                )
                page = (await session.execute(stmt)).scalar_one_or_none()
                if page is None:
                    return None

                breadcrumbs = await self._build_breadcrumbs(session, page.id, workspace_id)
                related_docs = await self._find_related_docs(session, page, workspace_id, _limit(options, 5))

            context = PageContext(
                id=page.id,
                workspace_id=page.workspace_id,
                timestamp=_now(),
                title=page.title,
                slug=page.slug,
                content=page.content or None,
                excerpt=page.excerpt,
                is_empty=not (page.content or "").strip(),
                breadcrumbs=breadcrumbs or None,
                category=page.category or None,
                tags=page.tags or None,
                related_docs=related_docs or None,
                created_at=page.created_at.isoformat(),
                updated_at=page.updated_at.isoformat(),
                view_count=page.view_count or None,
                author=_person(page.created_by),
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching page context", page_id=page_id, workspace_id=workspace_id, error=str(e))
            return None

    async def get_project_context(
        self,
        project_id: str,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[ProjectContext]:
        """Project with its epics (by order) and most recently updated tasks."""
        try:
            async with self.session_factory() as session:
                stmt = select(Project).where(
                    Project.workspace_id == workspace_id,
                    Project.id == project_id,
                )
                project = (await session.execute(stmt)).scalar_one_or_none()
                if project is None:
                    return None

                epic_rows = (await session.execute(
                    select(Epic, func.count(Task.id))
                    .outerjoin(Task, Task.epic_id == Epic.id)
                    .where(Epic.workspace_id == workspace_id, Epic.project_id == project_id)
                    .group_by(Epic.id)
                    .order_by(Epic.order)
                )).all()

                tasks = (await session.execute(
                    select(Task)
                    .where(Task.workspace_id == workspace_id, Task.project_id == project_id)
                    .options(selectinload(Task.assignee))
                    .order_by(Task.updated_at.desc())
                    .limit(_limit(options, 20))
                )).scalars().all()

            epics = [
                EpicSummary(
                    id=epic.id,
                    name=epic.title,
                    description=epic.description,
                    task_count=task_count,
                )
                for epic, task_count in epic_rows
            ]

            context = ProjectContext(
                id=project.id,
                workspace_id=project.workspace_id,
                timestamp=_now(),
                name=project.name,
                description=project.description,
                status=project.status,
                priority=project.priority,
                start_date=_iso(project.start_date),
                end_date=_iso(project.end_date),
                department=project.department,
                team=project.team,
                epics=epics or None,
                tasks=[_task_summary(t) for t in tasks] or None,
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching project context", project_id=project_id, workspace_id=workspace_id, error=str(e))
            return None

    async def get_task_context(
        self,
        task_id: str,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[TaskContext]:
        """Task with assignee, project/epic refs, dependencies and sibling tasks."""
        try:
            async with self.session_factory() as session:
                stmt = (
                    select(Task)
                    .where(Task.workspace_id == workspace_id, Task.id == task_id)
                    .options(
                        selectinload(Task.assignee),
                        selectinload(Task.project),
                        selectinload(Task.epic),
                    )
                )
                task = (await session.execute(stmt)).scalar_one_or_none()
                if task is None:
                    return None

                related = (await session.execute(
                    select(Task)
                    .where(
                        Task.workspace_id == workspace_id,
                        Task.project_id == task.project_id,
                        Task.id != task.id,
                    )
                    .options(selectinload(Task.assignee))
                    .order_by(Task.updated_at.desc())
                    .limit(5)
                )).scalars().all()

            context = TaskContext(
                id=task.id,
                workspace_id=task.workspace_id,
                timestamp=_now(),
                title=task.title,
                description=task.description,
                status=task.status,
                priority=task.priority,
                due_date=_iso(task.due_date),
                assignee=_person(task.assignee),
                project=EntityRef(id=task.project.id, name=task.project.name) if task.project else None,
                epic=EntityRef(id=task.epic.id, name=task.epic.title) if task.epic else None,
                dependencies=list(task.depends_on) if task.depends_on else None,
                related_tasks=[_task_summary(t) for t in related] or None,
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching task context", task_id=task_id, workspace_id=workspace_id, error=str(e))
            return None

    async def get_org_context(
        self,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[OrgContext]:
        """
        Teams, roles, departments and reporting hierarchy from active positions.

        An org with no positions still yields a context with empty lists.
        """
        try:
            async with self.session_factory() as session:
                stmt = (
                    select(OrgPosition)
                    .where(OrgPosition.workspace_id == workspace_id, OrgPosition.is_active.is_(True))
                    .options(
                        selectinload(OrgPosition.team).selectinload(OrgTeam.department),
                        selectinload(OrgPosition.user),
                    )
                    .order_by(OrgPosition.level, OrgPosition.order)
                    .limit(_limit(options, 100))
                )
                positions = (await session.execute(stmt)).scalars().all()

            teams: Dict[str, TeamSummary] = {}
            departments: Dict[str, DepartmentSummary] = {}
            roles: List[RoleSummary] = []

            for position in positions:
                team = position.team
                department = team.department if team else None

                roles.append(RoleSummary(
                    id=position.id,
                    title=position.title,
                    team_id=position.team_id,
                    team_name=team.name if team else None,
                    department=department.name if department else None,
                    level=position.level,
                    user_id=position.user_id,
                    user_name=position.user.name if position.user else None,
                    parent_id=position.parent_id,
                ))

                if team and team.id not in teams:
                    teams[team.id] = TeamSummary(
                        id=team.id,
                        name=team.name,
                        department=department.name if department else None,
                    )
                if department and department.id not in departments:
                    departments[department.id] = DepartmentSummary(id=department.id, name=department.name)

            hierarchy = self._build_org_hierarchy(positions)

            context = OrgContext(
                id=workspace_id,
                workspace_id=workspace_id,
                timestamp=_now(),
                teams=list(teams.values()),
                roles=roles,
                departments=list(departments.values()),
                hierarchy=hierarchy or None,
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching org context", workspace_id=workspace_id, error=str(e))
            return None

    async def get_activity_context(
        self,
        workspace_id: str,
        options: Optional[ContextOptions] = None
    ) -> Optional[ActivityContext]:
        """
        Most recent activities on the workspace's projects, tasks and pages.

        Activity rows carry no workspace column; they are scoped by entity_id.
        """
        try:
            async with self.session_factory() as session:
                workspace_entity = or_(
                    Activity.entity_id.in_(select(Project.id).where(Project.workspace_id == workspace_id)),
                    Activity.entity_id.in_(select(Task.id).where(Task.workspace_id == workspace_id)),
                    Activity.entity_id.in_(select(WikiPage.id).where(WikiPage.workspace_id == workspace_id)),
                )
                stmt = (
                    select(Activity)
                    .where(workspace_entity)
                    .options(selectinload(Activity.actor))
                    .order_by(Activity.created_at.desc())
                    .limit(_limit(options, 50))
                )
                activities = (await session.execute(stmt)).scalars().all()

            context = ActivityContext(
                id=workspace_id,
                workspace_id=workspace_id,
                timestamp=_now(),
                activities=[
                    ActivitySummary(
                        id=a.id,
                        entity=a.entity,
                        entity_id=a.entity_id,
                        action=a.action,
                        user_id=a.actor_id,
                        user_name=(a.actor.name if a.actor else None) or "Unknown",
                        timestamp=a.created_at.isoformat(),
                        metadata=a.meta,
                    )
                    for a in activities
                ],
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching activity context", workspace_id=workspace_id, error=str(e))
            return None

    async def get_unified_context(
        self,
        workspace_id: str,
        project_id: Optional[str] = None,
        page_id: Optional[str] = None,
        task_id: Optional[str] = None,
        user_id: Optional[str] = None,
        options: Optional[ContextOptions] = None
    ) -> Optional[UnifiedContext]:
        """
        Workspace context plus at most one anchor (page > project > task).

        A task anchor that belongs to a project also pulls in that project.
        """
        try:
            workspace = await self.get_workspace_context(workspace_id, options)
            if workspace is None:
                return None

            active_page = None
            active_project = None
            active_task = None

            if page_id:
                active_page = await self.get_page_context(page_id, workspace_id, options)
            elif project_id:
                active_project = await self.get_project_context(project_id, workspace_id, options)
            elif task_id:
                active_task = await self.get_task_context(task_id, workspace_id, options)
                if active_task and active_task.project:
                    active_project = await self.get_project_context(active_task.project.id, workspace_id, options)

            context = UnifiedContext(
                id=workspace_id,
                workspace_id=workspace_id,
                timestamp=_now(),
                workspace=workspace,
                active_page=active_page,
                active_project=active_project,
                active_task=active_task,
                related_docs=active_page.related_docs if active_page else None,
            )
            await self._cache(context)
            return context

        except Exception as e:
            logger.error("Error fetching unified context", workspace_id=workspace_id, error=str(e))
            return None

    # ========================================
    # Helpers
    # ========================================

    @staticmethod
    async def _count(session: AsyncSession, model, *criteria) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        return (await session.execute(stmt)).scalar_one()

    async def _build_breadcrumbs(
        self,
        session: AsyncSession,
        page_id: str,
        workspace_id: str
    ) -> List[Breadcrumb]:
        """Walk up the parent chain; the root ends up first."""
        breadcrumbs: List[Breadcrumb] = []
        current_id: Optional[str] = page_id
        level = 0

        while current_id and level < MAX_BREADCRUMB_DEPTH:
            stmt = select(WikiPage.id, WikiPage.title, WikiPage.slug, WikiPage.parent_id).where(
                WikiPage.workspace_id == workspace_id,
                WikiPage.id == current_id,
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                break

            breadcrumbs.insert(0, Breadcrumb(id=row.id, title=row.title, slug=row.slug, level=level))
            current_id = row.parent_id
            level += 1

        return breadcrumbs

    async def _find_related_docs(
        self,
        session: AsyncSession,
        page: WikiPage,
        workspace_id: str,
        limit: int = 5
    ) -> List[RelatedDoc]:
        """Published pages sharing a tag or the category, newest first."""
        tags = set(page.tags or [])
        if not tags and not page.category:
            return []

        stmt = (
            select(WikiPage)
            .where(
                WikiPage.workspace_id == workspace_id,
                WikiPage.id != page.id,
                WikiPage.is_published.is_(True),
            )
            .order_by(WikiPage.updated_at.desc())
        )
        candidates = (await session.execute(stmt)).scalars().all()

        related = []
        for doc in candidates:
            # Tags live in a JSON column, so overlap is checked here rather than in SQL
            if tags.intersection(doc.tags or []) or (page.category and doc.category == page.category):
                related.append(RelatedDoc(
                    id=doc.id,
                    title=doc.title,
                    slug=doc.slug,
                    excerpt=doc.excerpt,
                    snippet=doc.excerpt,
                    category=doc.category or None,
                    tags=doc.tags or None,
                ))
                if len(related) >= limit:
                    break

        return related

    @staticmethod
    def _build_org_hierarchy(positions) -> List[OrgHierarchyNode]:
        """Link positions by parent_id; a node whose parent is absent becomes a root."""
        nodes = {
            p.id: OrgHierarchyNode(
                id=p.id,
                title=p.title,
                level=p.level,
                user_id=p.user_id,
                team_id=p.team_id,
            )
            for p in positions
        }

        roots: List[OrgHierarchyNode] = []
        for position in positions:
            node = nodes[position.id]
            parent = nodes.get(position.parent_id) if position.parent_id else None
            if parent is not None:
                parent.children.append(node)
            else:
                roots.append(node)

        return roots

    async def _stored_structured(
        self,
        context_id: str,
        type: str,
        workspace_id: str
    ) -> Optional[StructuredContextObject]:
        """Flat object cached alongside a stored context, if any."""
        item = await self.store.get(context_id, type, workspace_id)
        if item is None:
            return None
        context = self.store.deserialize(item)
        if context.metadata and context.metadata.structured:
            return context.metadata.structured
        return None

    # ========================================
    # Structured queries
    # ========================================

    async def get_workspace_context_objects(
        self,
        workspace_id: str,
        user_id: Optional[str] = None,
        include_tasks: bool = False,
        limit: int = 50
    ) -> List[StructuredContextObject]:
        """Non-archived projects newest first, then optionally their tasks."""
        try:
            async with self.session_factory() as session:
                projects = (await session.execute(
                    select(Project)
                    .where(Project.workspace_id == workspace_id, Project.is_archived.is_(False))
                    .order_by(Project.updated_at.desc())
                    .limit(limit)
                )).scalars().all()

                objects = [project_to_context(p) for p in projects]

                if include_tasks and projects:
                    tasks = (await session.execute(
                        select(Task)
                        .where(
                            Task.workspace_id == workspace_id,
                            Task.project_id.in_([p.id for p in projects]),
                        )
                        .options(selectinload(Task.project), selectinload(Task.assignee))
                        .order_by(Task.updated_at.desc())
                        .limit(limit)
                    )).scalars().all()
                    objects.extend(task_to_context(t) for t in tasks)

            return objects

        except Exception as e:
            logger.error("Error fetching workspace context objects", workspace_id=workspace_id, error=str(e))
            return []

    async def get_personal_space_docs(
        self,
        workspace_id: str,
        user_id: str,
        limit: int = 50
    ) -> List[StructuredContextObject]:
        """Published pages in the user's personal space."""
        try:
            async with self.session_factory() as session:
                personal = or_(
                    WikiPage.workspace_type == "personal",
                    and_(
                        or_(WikiPage.workspace_type.is_(None), WikiPage.workspace_type == ""),
                        WikiPage.permission_level == "personal",
                    ),
                )
                pages = (await session.execute(
                    select(WikiPage)
                    .where(
                        WikiPage.workspace_id == workspace_id,
                        WikiPage.created_by_id == user_id,
                        WikiPage.is_published.is_(True),
                        personal,
                    )
                    .order_by(WikiPage.updated_at.desc())
                    .limit(limit)
                )).scalars().all()

            return [page_to_context(p, include_project=False) for p in pages]

        except Exception as e:
            logger.error("Error fetching personal space docs", workspace_id=workspace_id, error=str(e))
            return []

    async def get_org_people(
        self,
        workspace_id: str,
        limit: int = 100
    ) -> List[StructuredContextObject]:
        """Active, occupied positions, most recently updated first."""
        try:
            async with self.session_factory() as session:
                positions = (await session.execute(
                    select(OrgPosition)
                    .where(
                        OrgPosition.workspace_id == workspace_id,
                        OrgPosition.is_active.is_(True),
                        OrgPosition.user_id.is_not(None),
                    )
                    .options(selectinload(OrgPosition.user), selectinload(OrgPosition.team))
                    .order_by(OrgPosition.updated_at.desc())
                    .limit(limit)
                )).scalars().all()

            return [role_to_context(p) for p in positions]

        except Exception as e:
            logger.error("Error fetching org people", workspace_id=workspace_id, error=str(e))
            return []

    async def get_project_epics(
        self,
        project_id: str,
        workspace_id: str
    ) -> List[StructuredContextObject]:
        """Epics of a project by order, preferring the cached flat object."""
        try:
            async with self.session_factory() as session:
                epics = (await session.execute(
                    select(Epic)
                    .where(Epic.workspace_id == workspace_id, Epic.project_id == project_id)
                    .options(selectinload(Epic.project), selectinload(Epic.tasks))
                    .order_by(Epic.order)
                )).scalars().all()

            objects = []
            for epic in epics:
                stored = await self._stored_structured(f"epic:{epic.id}", ContextType.EPIC.value, workspace_id)
                objects.append(stored or build_epic_object(epic))
            return objects

        except Exception as e:
            logger.error("Error fetching project epics", project_id=project_id, workspace_id=workspace_id, error=str(e))
            return []

    async def get_project_tasks(
        self,
        project_id: str,
        workspace_id: str
    ) -> List[StructuredContextObject]:
        try:
            async with self.session_factory() as session:
                tasks = (await session.execute(
                    select(Task)
                    .where(Task.workspace_id == workspace_id, Task.project_id == project_id)
                    .options(
                        selectinload(Task.project),
                        selectinload(Task.epic),
                        selectinload(Task.subtasks),
                    )
                    .order_by(Task.updated_at.desc())
                )).scalars().all()

            return [build_task_object(t) for t in tasks]

        except Exception as e:
            logger.error("Error fetching project tasks", project_id=project_id, workspace_id=workspace_id, error=str(e))
            return []

    async def get_project_context_object(
        self,
        project_id: str,
        workspace_id: str
    ) -> Optional[StructuredContextObject]:
        """Store first, else build fresh from the project row."""
        try:
            stored = await self._stored_structured(project_id, ContextType.PROJECT.value, workspace_id)
            if stored:
                return stored

            async with self.session_factory() as session:
                project = (await session.execute(
                    select(Project).where(Project.workspace_id == workspace_id, Project.id == project_id)
                )).scalar_one_or_none()

            return project_to_context(project) if project else None

        except Exception as e:
            logger.error("Error getting project context object", project_id=project_id, workspace_id=workspace_id, error=str(e))
            return None

    async def get_epic_context_object(
        self,
        epic_id: str,
        workspace_id: str
    ) -> Optional[StructuredContextObject]:
        """Store first, else build fresh from the epic row."""
        try:
            stored = await self._stored_structured(f"epic:{epic_id}", ContextType.EPIC.value, workspace_id)
            if stored:
                return stored

            async with self.session_factory() as session:
                epic = (await session.execute(
                    select(Epic)
                    .where(Epic.workspace_id == workspace_id, Epic.id == epic_id)
                    .options(selectinload(Epic.project), selectinload(Epic.tasks))
                )).scalar_one_or_none()

            return build_epic_object(epic) if epic else None

        except Exception as e:
            logger.error("Error getting epic context object", epic_id=epic_id, workspace_id=workspace_id, error=str(e))
            return None

    # ========================================
    # Upsert hooks (called by the product after CRUD writes)
    # ========================================

    async def upsert_project_context(self, project_id: str) -> None:
        try:
            async with self.session_factory() as session:
                project = await session.get(Project, project_id)

            if project is None:
                logger.warning("Project not found for context upsert", project_id=project_id)
                return

            structured = project_to_context(project)
            context = ProjectContext(
                id=project.id,
                workspace_id=project.workspace_id,
                timestamp=_now(),
                name=project.name,
                description=project.description,
                status=project.status,
                priority=project.priority,
                start_date=_iso(project.start_date),
                end_date=_iso(project.end_date),
                department=project.department,
                team=project.team,
                metadata=ContextMetadata(source="pm", structured=structured),
            )
            await self._cache(context)
            logger.debug("Project context upserted", project_id=project_id, workspace_id=project.workspace_id)

        except Exception as e:
            logger.error("Error upserting project context", project_id=project_id, error=str(e))

    async def upsert_epic_context(self, epic_id: str) -> None:
        try:
            async with self.session_factory() as session:
                epic = (await session.execute(
                    select(Epic)
                    .where(Epic.id == epic_id)
                    .options(selectinload(Epic.project), selectinload(Epic.tasks))
                )).scalar_one_or_none()

            if epic is None:
                logger.warning("Epic not found for context upsert", epic_id=epic_id)
                return

            structured = build_epic_object(epic)
            context = EpicContext(
                id=structured.id,
                workspace_id=epic.workspace_id,
                timestamp=_now(),
                title=epic.title,
                description=epic.description,
                project_id=epic.project_id,
                tasks_total=structured.metadata.tasks_total,
                tasks_done=structured.metadata.tasks_done,
                color=epic.color,
                order=epic.order or None,
                metadata=ContextMetadata(source="pm", structured=structured),
            )
            await self._cache(context)
            logger.debug("Epic context upserted", epic_id=epic_id, workspace_id=epic.workspace_id)

        except Exception as e:
            logger.error("Error upserting epic context", epic_id=epic_id, error=str(e))

    async def upsert_task_context(self, task_id: str) -> None:
        try:
            async with self.session_factory() as session:
                task = (await session.execute(
                    select(Task)
                    .where(Task.id == task_id)
                    .options(
                        selectinload(Task.project),
                        selectinload(Task.epic),
                        selectinload(Task.assignee),
                        selectinload(Task.subtasks),
                    )
                )).scalar_one_or_none()

            if task is None:
                logger.warning("Task not found for context upsert", task_id=task_id)
                return

            structured = build_task_object(task)
            context = TaskContext(
                id=structured.id,
                workspace_id=task.workspace_id,
                timestamp=_now(),
                title=task.title,
                description=task.description,
                status=structured.status or task.status,
                priority=task.priority,
                due_date=_iso(task.due_date),
                assignee=_person(task.assignee),
                project=EntityRef(id=task.project.id, name=task.project.name) if task.project else None,
                epic=EntityRef(id=task.epic.id, name=task.epic.title) if task.epic else None,
                dependencies=list(task.depends_on) if task.depends_on else None,
                metadata=ContextMetadata(source="pm", structured=structured),
            )
            await self._cache(context)
            logger.debug("Task context upserted", task_id=task_id, workspace_id=task.workspace_id)

        except Exception as e:
            logger.error("Error upserting task context", task_id=task_id, error=str(e))
