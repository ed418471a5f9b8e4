"""
Canonical context objects.

Every snapshot the engine builds is one variant of ``ContextObject``,
discriminated on ``type``. JSON uses camelCase keys so stored rows and
API payloads match the product's frontend.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from loopbrain.schemas.structured import CamelModel, StructuredContextObject


class ContextType(str, Enum):
    """Kinds of context snapshot."""
    WORKSPACE = "workspace"
    PAGE = "page"
    PROJECT = "project"
    TASK = "task"
    EPIC = "epic"
    ORG = "org"
    ACTIVITY = "activity"
    UNIFIED = "unified"


CONTEXT_SCHEMA_VERSION = "1"


class ContextMetadata(CamelModel):
    source: Optional[str] = None
    version: str = CONTEXT_SCHEMA_VERSION
    # Flattened form of the same entity, when one was built alongside it
    structured: Optional[StructuredContextObject] = None


# ========================================
# Supporting records
# ========================================

class PersonRef(CamelModel):
    id: str
    name: str
    email: Optional[str] = None


class EntityRef(CamelModel):
    id: str
    name: str


class Breadcrumb(CamelModel):
    id: str
    title: str
    slug: Optional[str] = None
    level: int


class RelatedDoc(CamelModel):
    id: str
    title: str
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    snippet: Optional[str] = None
    relevance_score: Optional[float] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class EpicSummary(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    status: Optional[str] = None
    task_count: Optional[int] = None


class TaskSummary(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    due_date: Optional[str] = None
    assignee: Optional[PersonRef] = None


class ProjectSummary(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    task_count: Optional[int] = None


class TeamSummary(CamelModel):
    id: str
    name: str
    department: Optional[str] = None
    member_count: Optional[int] = None


class RoleSummary(CamelModel):
    id: str
    title: str
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    department: Optional[str] = None
    level: Optional[int] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    parent_id: Optional[str] = None


class DepartmentSummary(CamelModel):
    id: str
    name: str
    team_count: Optional[int] = None


class OrgHierarchyNode(CamelModel):
    id: str
    title: str
    level: int
    children: List["OrgHierarchyNode"] = Field(default_factory=list)
    user_id: Optional[str] = None
    team_id: Optional[str] = None


class ActivitySummary(CamelModel):
    id: str
    entity: str
    entity_id: str
    action: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    timestamp: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class TimeRange(CamelModel):
    start: str = Field(alias="from")
    end: str = Field(alias="to")


# ========================================
# Context variants
# ========================================

class BaseContext(CamelModel):
    id: str
    workspace_id: str = Field(min_length=1)
    timestamp: str
    metadata: Optional[ContextMetadata] = None


class WorkspaceContext(BaseContext):
    type: Literal["workspace"] = "workspace"
    name: str
    description: Optional[str] = None
    purpose: Optional[str] = None
    member_count: Optional[int] = None
    project_count: Optional[int] = None
    page_count: Optional[int] = None
    recent_activity: Optional[List[ActivitySummary]] = None


class PageContext(BaseContext):
    type: Literal["page"] = "page"
    title: str
    slug: str
    content: Optional[str] = None
    excerpt: Optional[str] = None
    is_empty: bool
    selected_text: Optional[str] = None
    breadcrumbs: Optional[List[Breadcrumb]] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    related_docs: Optional[List[RelatedDoc]] = None
    created_at: str
    updated_at: str
    view_count: Optional[int] = None
    author: Optional[PersonRef] = None


class ProjectContext(BaseContext):
    type: Literal["project"] = "project"
    name: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    department: Optional[str] = None
    team: Optional[str] = None
    epics: Optional[List[EpicSummary]] = None
    tasks: Optional[List[TaskSummary]] = None
    recent_activity: Optional[List[ActivitySummary]] = None


class TaskContext(BaseContext):
    type: Literal["task"] = "task"
    title: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    due_date: Optional[str] = None
    assignee: Optional[PersonRef] = None
    project: Optional[EntityRef] = None
    epic: Optional[EntityRef] = None
    dependencies: Optional[List[str]] = None
    related_tasks: Optional[List[TaskSummary]] = None


class EpicContext(BaseContext):
    type: Literal["epic"] = "epic"
    title: str
    description: Optional[str] = None
    project_id: str
    tasks_total: Optional[int] = None
    tasks_done: Optional[int] = None
    color: Optional[str] = None
    order: Optional[int] = None


class OrgContext(BaseContext):
    type: Literal["org"] = "org"
    teams: Optional[List[TeamSummary]] = None
    roles: Optional[List[RoleSummary]] = None
    departments: Optional[List[DepartmentSummary]] = None
    hierarchy: Optional[List[OrgHierarchyNode]] = None
    recent_changes: Optional[List[ActivitySummary]] = None


class ActivityContext(BaseContext):
    type: Literal["activity"] = "activity"
    activities: List[ActivitySummary] = Field(default_factory=list)
    time_range: Optional[TimeRange] = None


class UnifiedContext(BaseContext):
    type: Literal["unified"] = "unified"
    workspace: WorkspaceContext
    active_page: Optional[PageContext] = None
    active_project: Optional[ProjectContext] = None
    active_task: Optional[TaskContext] = None
    org: Optional[OrgContext] = None
    recent_activity: Optional[ActivityContext] = None
    related_docs: Optional[List[RelatedDoc]] = None
    projects: Optional[List[ProjectSummary]] = None
    tasks: Optional[List[TaskSummary]] = None


ContextObject = Annotated[
    Union[
        WorkspaceContext,
        PageContext,
        ProjectContext,
        TaskContext,
        EpicContext,
        OrgContext,
        ActivityContext,
        UnifiedContext,
    ],
    Field(discriminator="type"),
]

_context_adapter: TypeAdapter = TypeAdapter(ContextObject)


def context_to_json(context: BaseContext) -> dict:
    """Serialize a context object to its stored JSON form."""
    return context.model_dump(mode="json", by_alias=True, exclude_none=True)


def context_from_json(data: dict) -> BaseContext:
    """Parse stored JSON back into the matching context variant."""
    return _context_adapter.validate_python(data)
