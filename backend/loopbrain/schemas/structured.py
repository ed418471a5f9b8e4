"""
Flat context objects handed to the language model as JSON.

One shape for every entity kind: title, summary, status, tags and
relations, plus an explicit per-kind metadata record.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


StructuredObjectType = Literal["project", "page", "task", "epic", "role", "person", "team", "workspace"]


class ContextRelation(CamelModel):
    type: str
    id: str
    label: Optional[str] = None
    direction: Optional[Literal["in", "out"]] = None


# ========================================
# Per-kind metadata records
# ========================================

class ProjectObjectMeta(CamelModel):
    kind: Literal["project"] = "project"
    priority: Optional[str] = None
    department: Optional[str] = None
    team: Optional[str] = None
    color: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_archived: bool = False


class TaskObjectMeta(CamelModel):
    kind: Literal["task"] = "task"
    priority: Optional[str] = None
    raw_status: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    completed_at: Optional[str] = None
    order: Optional[int] = None
    points: Optional[int] = None
    project_id: Optional[str] = None
    epic_id: Optional[str] = None
    epic_title: Optional[str] = None
    assignee_id: Optional[str] = None
    workspace_id: Optional[str] = None
    subtask_count: Optional[int] = None
    subtask_done_count: Optional[int] = None


class EpicObjectMeta(CamelModel):
    kind: Literal["epic"] = "epic"
    epic_id: str
    project_id: str
    workspace_id: str
    description: Optional[str] = None
    tasks_total: int = 0
    tasks_done: int = 0
    color: Optional[str] = None
    order: Optional[int] = None


class PageObjectMeta(CamelModel):
    kind: Literal["page"] = "page"
    slug: str
    category: Optional[str] = None
    permission_level: Optional[str] = None
    view_count: Optional[int] = None
    is_featured: Optional[bool] = None
    workspace_type: Optional[str] = None


class RoleObjectMeta(CamelModel):
    kind: Literal["role"] = "role"
    level: int
    order: Optional[int] = None
    role_description: Optional[str] = None
    responsibilities: Optional[List[str]] = None
    required_skills: Optional[List[str]] = None
    preferred_skills: Optional[List[str]] = None
    key_metrics: Optional[List[str]] = None


ObjectMeta = Annotated[
    Union[ProjectObjectMeta, TaskObjectMeta, EpicObjectMeta, PageObjectMeta, RoleObjectMeta],
    Field(discriminator="kind"),
]


class StructuredContextObject(CamelModel):
    id: str
    type: StructuredObjectType
    title: str
    summary: str
    tags: List[str] = Field(default_factory=list)
    owner_id: Optional[str] = None
    status: Optional[str] = None
    updated_at: datetime
    relations: List[ContextRelation] = Field(default_factory=list)
    metadata: Optional[ObjectMeta] = None
    
    def to_prompt_dict(self, max_tags: int = 5) -> dict:
        """Compact JSON form used inside prompts."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "summary": self.summary,
            "tags": self.tags[:max_tags],
            "updatedAt": self.updated_at.isoformat(),
        }
