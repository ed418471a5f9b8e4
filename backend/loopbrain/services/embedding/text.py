"""
Text serialization of context objects for embedding.
"""
from typing import List

from loopbrain.schemas.context import BaseContext, ContextType


def build_embedding_text(context: BaseContext) -> str:
    """
    Build a concise, deterministic text representation of a context object.
    
    Empty parts are dropped and the rest joined by newlines.
    """
    parts: List[str] = []
    
    match context.type:
        case ContextType.WORKSPACE:
            parts.append(context.name)
            if context.description:
                parts.append(context.description)
            if context.purpose:
                parts.append(f"Purpose: {context.purpose}")
        
        case ContextType.PAGE:
            parts.append(context.title)
            if context.excerpt:
                parts.append(context.excerpt)
            elif context.content:
                parts.append(context.content[:500].strip())
            if context.category:
                parts.append(f"Category: {context.category}")
            if context.tags:
                parts.append(f"Tags: {', '.join(context.tags)}")
        
        case ContextType.PROJECT:
            parts.append(context.name)
            if context.description:
                parts.append(context.description)
            parts.append(f"Status: {context.status}")
            if context.priority:
                parts.append(f"Priority: {context.priority}")
            if context.department:
                parts.append(f"Department: {context.department}")
            if context.team:
                parts.append(f"Team: {context.team}")
        
        case ContextType.TASK:
            parts.append(context.title)
            if context.description:
                parts.append(context.description)
            parts.append(f"Status: {context.status}")
            if context.priority:
                parts.append(f"Priority: {context.priority}")
            if context.project:
                parts.append(f"Project: {context.project.name}")
            if context.epic:
                parts.append(f"Epic: {context.epic.name}")
        
        case ContextType.EPIC:
            parts.append(context.title)
            if context.description:
                parts.append(context.description)
            if context.tasks_total is not None:
                parts.append(f"Tasks: {context.tasks_total} ({context.tasks_done or 0} done)")
        
        case ContextType.ORG:
            if context.teams:
                parts.append(f"Teams: {', '.join(t.name for t in context.teams)}")
            if context.roles:
                parts.append(f"Roles: {', '.join(r.title for r in context.roles)}")
            if context.departments:
                parts.append(f"Departments: {', '.join(d.name for d in context.departments)}")
        
        case ContextType.ACTIVITY:
            if context.activities:
                parts.append("; ".join(
                    f"{a.action} on {a.entity} {a.entity_id}" for a in context.activities[:10]
                ))
        
        case ContextType.UNIFIED:
            parts.append(f"Workspace: {context.workspace.name}")
            if context.workspace.description:
                parts.append(context.workspace.description)
            if context.active_page:
                parts.append(f"Page: {context.active_page.title}")
                if context.active_page.excerpt:
                    parts.append(context.active_page.excerpt)
            if context.active_project:
                parts.append(f"Project: {context.active_project.name}")
                if context.active_project.description:
                    parts.append(context.active_project.description)
            if context.active_task:
                parts.append(f"Task: {context.active_task.title}")
                if context.active_task.description:
                    parts.append(context.active_task.description)
    
    return "\n".join(p for p in parts if p and p.strip())
