from loopbrain.models.context import ContextItem, ContextEmbedding, ContextSummary
from loopbrain.models.domain import (
    User,
    Workspace,
    WorkspaceMember,
    WikiPage,
    Project,
    Epic,
    Task,
    Subtask,
    OrgDepartment,
    OrgTeam,
    OrgPosition,
    Activity,
)

__all__ = [
    "ContextItem",
    "ContextEmbedding",
    "ContextSummary",
    "User",
    "Workspace",
    "WorkspaceMember",
    "WikiPage",
    "Project",
    "Epic",
    "Task",
    "Subtask",
    "OrgDepartment",
    "OrgTeam",
    "OrgPosition",
    "Activity",
]
