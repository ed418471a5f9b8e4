"""
Pydantic schemas for context snapshots and flat context objects.
"""
from loopbrain.schemas.context import (
    ContextType,
    ContextMetadata,
    ContextObject,
    BaseContext,
    WorkspaceContext,
    PageContext,
    ProjectContext,
    TaskContext,
    EpicContext,
    OrgContext,
    ActivityContext,
    UnifiedContext,
    context_to_json,
    context_from_json,
)
from loopbrain.schemas.structured import (
    StructuredContextObject,
    ContextRelation,
)

__all__ = [
    "ContextType",
    "ContextMetadata",
    "ContextObject",
    "BaseContext",
    "WorkspaceContext",
    "PageContext",
    "ProjectContext",
    "TaskContext",
    "EpicContext",
    "OrgContext",
    "ActivityContext",
    "UnifiedContext",
    "context_to_json",
    "context_from_json",
    "StructuredContextObject",
    "ContextRelation",
]
