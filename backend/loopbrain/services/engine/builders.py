"""
Pure builders that flatten domain rows into StructuredContextObject.

Callers must eager-load the relationships a builder reads (owner,
assignee, project, epic, subtasks, team, user); the ORM raises on
lazy access.
"""
import re
from datetime import datetime
from typing import List, Optional

from loopbrain.models.domain import Epic, OrgPosition, Project, Task, WikiPage
from loopbrain.schemas.structured import (
    ContextRelation,
    EpicObjectMeta,
    PageObjectMeta,
    ProjectObjectMeta,
    RoleObjectMeta,
    StructuredContextObject,
    TaskObjectMeta,
)

PROJECT_STATUS_MAP = {
    "ACTIVE": "active",
    "ON_HOLD": "on-hold",
    "COMPLETED": "completed",
    "CANCELLED": "cancelled",
}

TASK_STATUS_MAP = {
    "TODO": "todo",
    "IN_PROGRESS": "in-progress",
    "IN_REVIEW": "in-review",
    "DONE": "done",
    "BLOCKED": "blocked",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def normalize_project_status(status: str) -> str:
    return PROJECT_STATUS_MAP.get(status, status.lower())


def normalize_task_status(status: str) -> str:
    return TASK_STATUS_MAP.get(status, status.lower())


def _out(type: str, id: str, label: str) -> ContextRelation:
    return ContextRelation(type=type, id=id, label=label, direction="out")


# ========================================
# Generic builders
# ========================================

def project_to_context(project: Project) -> StructuredContextObject:
    """Flatten a project row."""
    status = normalize_project_status(project.status)
    priority = project.priority.lower()
    
    relations = []
    if project.owner_id:
        relations.append(_out("person", project.owner_id, "owner"))
    
    tags = [status, priority]
    if project.department:
        tags.append(f"department:{project.department}")
    if project.team:
        tags.append(f"team:{project.team}")
    if project.is_archived:
        tags.append("archived")
    
    department = project.department or "Unknown department"
    archived = " (archived)" if project.is_archived else ""
    
    return StructuredContextObject(
        id=project.id,
        type="project",
        title=project.name,
        summary=f"{status} project in {department} (priority: {priority}){archived}",
        tags=tags,
        owner_id=project.owner_id,
        status=status,
        updated_at=project.updated_at,
        relations=relations,
        metadata=ProjectObjectMeta(
            priority=project.priority,
            department=project.department,
            team=project.team,
            color=project.color,
            start_date=_iso(project.start_date),
            end_date=_iso(project.end_date),
            is_archived=project.is_archived,
        ),
    )


def task_to_context(task: Task) -> StructuredContextObject:
    """Flatten a task. Requires ``task.project`` and ``task.assignee`` loaded."""
    status = normalize_task_status(task.status)
    
    relations = []
    if task.project_id:
        relations.append(_out("project", task.project_id, "project"))
    if task.assignee_id:
        relations.append(_out("person", task.assignee_id, "assignee"))
    
    summary = f"{status} task"
    if task.assignee and task.assignee.name:
        summary += f" assigned to {task.assignee.name}"
    if task.project:
        summary += f" in project {task.project.name}"
    
    return StructuredContextObject(
        id=task.id,
        type="task",
        title=task.title,
        summary=summary,
        tags=[status, task.priority.lower(), *(task.tags or [])],
        owner_id=task.assignee_id,
        status=status,
        updated_at=task.updated_at,
        relations=relations,
        metadata=TaskObjectMeta(
            priority=task.priority,
            due_date=_iso(task.due_date),
            completed_at=_iso(task.completed_at),
            order=task.order,
            points=task.points,
            epic_id=task.epic_id,
        ),
    )


def page_to_context(page: WikiPage, include_project: bool = True) -> StructuredContextObject:
    """Flatten a wiki page."""
    relations = []
    if include_project and page.project_id:
        relations.append(_out("project", page.project_id, "project"))
    if page.created_by_id:
        relations.append(_out("person", page.created_by_id, "created by"))
    
    excerpt = page.excerpt or (page.content[:100] if page.content else "")
    if len(excerpt) > 100:
        excerpt = excerpt[:100] + "..."
    published = "published" if page.is_published else "draft"
    summary = f"{published} page in {page.category or 'general'} category"
    if excerpt:
        summary += f": {excerpt}"
    
    tags = list(page.tags or [])
    if page.category:
        tags.append(f"category:{page.category}")
    tags.append(published)
    
    return StructuredContextObject(
        id=page.id,
        type="page",
        title=page.title,
        summary=summary,
        tags=tags,
        owner_id=page.created_by_id,
        status=published,
        updated_at=page.updated_at,
        relations=relations,
        metadata=PageObjectMeta(
            slug=page.slug,
            category=page.category or None,
            permission_level=page.permission_level,
            view_count=page.view_count or None,
            is_featured=page.is_featured or None,
            workspace_type=page.workspace_type or None,
        ),
    )


def role_to_context(position: OrgPosition) -> StructuredContextObject:
    """Flatten an org position. Requires ``position.user`` and ``position.team`` loaded."""
    relations = []
    if position.user_id:
        relations.append(_out("person", position.user_id, "occupied by"))
    if position.team_id:
        relations.append(_out("team", position.team_id, "team"))
    
    summary = f"Level {position.level} {position.title}"
    if position.user and position.user.name:
        summary += f" held by {position.user.name}"
    else:
        summary += " (vacant)"
    if position.team:
        summary += f" in team {position.team.name}"
    
    tags = [f"level:{position.level}"]
    if position.team:
        tags.append(f"team:{position.team.name}")
    if not position.is_active:
        tags.append("inactive")
    
    return StructuredContextObject(
        id=position.id,
        type="role",
        title=position.title,
        summary=summary,
        tags=tags,
        owner_id=position.user_id,
        status="active" if position.is_active else "inactive",
        updated_at=position.updated_at,
        relations=relations,
        metadata=RoleObjectMeta(
            level=position.level,
            order=position.order,
            role_description=position.role_description,
            responsibilities=position.responsibilities or None,
            required_skills=position.required_skills or None,
            preferred_skills=position.preferred_skills or None,
            key_metrics=position.key_metrics or None,
        ),
    )


# ========================================
# Project-management builders
# ========================================

def build_epic_object(epic: Epic) -> StructuredContextObject:
    """Flatten an epic. Requires ``epic.project`` and ``epic.tasks`` loaded."""
    relations = []
    if epic.project_id:
        relations.append(_out("project", epic.project_id, "project"))
    
    tags = ["epic"]
    if epic.project:
        tags.append(f"project:{_slug(epic.project.name)}")
    
    tasks_total = len(epic.tasks)
    tasks_done = sum(1 for t in epic.tasks if t.status == "DONE")
    
    parts: List[str] = []
    if epic.description:
        parts.append(epic.description[:200])
    if tasks_total > 0:
        parts.append(f"{_plural(tasks_total, 'task')} ({tasks_done} done)")
    
    return StructuredContextObject(
        id=f"epic:{epic.id}",
        type="epic",
        title=epic.title,
        summary=". ".join(parts) or f"Epic: {epic.title}",
        tags=tags,
        status="active",
        updated_at=epic.updated_at,
        relations=relations,
        metadata=EpicObjectMeta(
            epic_id=epic.id,
            project_id=epic.project_id,
            workspace_id=epic.workspace_id,
            description=epic.description,
            tasks_total=tasks_total,
            tasks_done=tasks_done,
            color=epic.color,
            order=epic.order or None,
        ),
    )


def build_task_object(task: Task) -> StructuredContextObject:
    """
    Flatten a task for the project-management views.
    
    Requires ``task.project``, ``task.epic`` and ``task.subtasks`` loaded.
    """
    relations = []
    if task.project_id:
        relations.append(_out("project", task.project_id, "project"))
    if task.epic_id:
        relations.append(_out("epic", task.epic_id, "epic"))
    if task.assignee_id:
        relations.append(_out("user", task.assignee_id, "assignee"))
    
    tags = ["task"]
    if task.status:
        tags.append(f"status:{task.status.lower()}")
    if task.priority:
        tags.append(f"priority:{task.priority.lower()}")
    if task.project:
        tags.append(f"project:{_slug(task.project.name)}")
    if task.epic:
        tags.append(f"epic:{_slug(task.epic.title)}")
    
    subtask_count = len(task.subtasks)
    subtask_done = sum(1 for s in task.subtasks if s.status == "COMPLETED")
    
    parts: List[str] = []
    if task.description:
        parts.append(task.description[:200])
    if subtask_count > 0:
        parts.append(f"{_plural(subtask_count, 'subtask')} ({subtask_done} done)")
    
    return StructuredContextObject(
        id=f"task:{task.id}",
        type="task",
        title=task.title,
        summary=". ".join(parts) or f"Task: {task.title}",
        tags=tags,
        owner_id=task.assignee_id,
        status=task.status.lower(),
        updated_at=task.updated_at,
        relations=relations,
        metadata=TaskObjectMeta(
            priority=task.priority,
            raw_status=task.status,
            description=task.description,
            due_date=_iso(task.due_date),
            project_id=task.project_id,
            epic_id=task.epic_id,
            epic_title=task.epic.title if task.epic else None,
            assignee_id=task.assignee_id,
            workspace_id=task.workspace_id,
            subtask_count=subtask_count,
            subtask_done_count=subtask_done,
        ),
    )
