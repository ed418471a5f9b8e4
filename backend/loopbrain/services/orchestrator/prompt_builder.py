"""
Prompt Builder - assembles the Loopbrain prompt for each mode.

Section order is the same in every mode:
system role, capability disclosure (only when an integration is
available and the user asked for it), primary context, semantic hits,
structured JSON blocks with grounding rules, the user question, and
closing guidance.
"""
import json
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from loopbrain.core.database import utcnow
from loopbrain.prompts import (
    DASHBOARD_SYSTEM_PROMPT,
    ORG_SYSTEM_PROMPT,
    SPACES_SYSTEM_PROMPT,
    generate_capability_prompt,
)
from loopbrain.prompts.templates import (
    DASHBOARD_INSTRUCTIONS,
    EPIC_TASK_JOIN_PROMPT,
    EPICS_PROMPT,
    ORG_INSTRUCTIONS,
    ORG_PEOPLE_EMPTY_PROMPT,
    ORG_PEOPLE_PROMPT,
    PERSONAL_DOCS_EMPTY_PROMPT,
    PERSONAL_DOCS_PROMPT,
    PROJECT_GROUNDING_PROMPT,
    PROJECT_RISK_PROMPT,
    SPACES_INSTRUCTIONS,
    STRUCTURED_OBJECTS_FOOTER,
    STRUCTURED_OBJECTS_PROMPT,
    TASKS_PROMPT,
)
from loopbrain.schemas.context import BaseContext, ContextType
from loopbrain.schemas.structured import StructuredContextObject
from loopbrain.services.orchestrator.intent import INTEGRATION_KEYWORD
from loopbrain.services.orchestrator.state import ContextSummary, LoopMode, LoopRequest


PROJECT_SLICE = 10
TASK_SLICE = 30
PERSONAL_DOCS_SLICE = 20
ORG_PEOPLE_SLICE = 50
MAX_TAGS = 5

BLOCKED_TASK_TAGS = {"blocked", "stuck", "waiting", "dependency"}
AT_RISK_PROJECT_TAGS = {"delayed", "behind", "at-risk"}
DONE_STATUSES = ("done", "completed")
INCOMPLETE_TASK_LIMIT = 5

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_TEAM_RE = re.compile(r"team\s+([^)]+)", re.IGNORECASE)
_DEPARTMENT_RE = re.compile(r"department\s+([^)]+)", re.IGNORECASE)


def _json_block(data: Any) -> List[str]:
    return ["```json", json.dumps(data, indent=2, ensure_ascii=False), "```"]


def _compact(data: dict) -> dict:
    """Drop empty values so the JSON stays small."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


# ========================================
# Slices
# ========================================

def filter_project_objects(objects: Optional[List[StructuredContextObject]]) -> List[StructuredContextObject]:
    """Non-archived projects, most recently updated first."""
    projects = [
        obj for obj in objects or []
        if obj.type == "project" and obj.status != "archived" and "archived" not in obj.tags
    ]
    return sorted(projects, key=lambda obj: obj.updated_at, reverse=True)


def filter_task_objects(objects: Optional[List[StructuredContextObject]]) -> List[StructuredContextObject]:
    """Tasks that are not done, most recently updated first."""
    tasks = [
        obj for obj in objects or []
        if obj.type == "task" and obj.status not in DONE_STATUSES
    ]
    return sorted(tasks, key=lambda obj: obj.updated_at, reverse=True)


# ========================================
# Blocked / at-risk inference
# ========================================

@dataclass
class ProjectRisk:
    """A flagged project with the reasons and the task titles behind them."""
    project: StructuredContextObject
    reasons: List[str]
    tasks: List[str] = field(default_factory=list)

    def to_prompt_dict(self) -> dict:
        return _compact({
            "projectId": self.project.id,
            "title": self.project.title,
            "reasons": self.reasons,
            "tasks": self.tasks,
        })


@dataclass
class ProjectRiskSignals:
    blocked: List[ProjectRisk] = field(default_factory=list)
    at_risk: List[ProjectRisk] = field(default_factory=list)


def _tag_set(obj: StructuredContextObject) -> set:
    return {tag.lower() for tag in obj.tags}


def _due_before(task: StructuredContextObject, now: datetime) -> bool:
    meta = task.metadata if task.metadata and task.metadata.kind == "task" else None
    if meta is None or not meta.due_date:
        return False
    try:
        due = datetime.fromisoformat(meta.due_date)
    except ValueError:
        return False
    if due.tzinfo is not None:
        due = due.astimezone(timezone.utc).replace(tzinfo=None)
    return due < now


def infer_project_risk(
    objects: Optional[List[StructuredContextObject]],
    now: Optional[datetime] = None
) -> ProjectRiskSignals:
    """
    Classify non-archived projects from their tasks.

    Blocked: any task with status 'blocked' or a blocking tag.
    At risk (only when not blocked): an overdue open task, more than
    INCOMPLETE_TASK_LIMIT open tasks, status 'on-hold', or a delay tag
    on the project.
    """
    now = now or utcnow()
    tasks_by_project = defaultdict(list)
    for obj in objects or []:
        if obj.type != "task":
            continue
        project_id = next((r.id for r in obj.relations if r.type == "project"), None)
        if project_id:
            tasks_by_project[project_id].append(obj)

    signals = ProjectRiskSignals()
    for project in filter_project_objects(objects):
        tasks = tasks_by_project.get(project.id, [])

        blocking = [t for t in tasks if t.status == "blocked" or _tag_set(t) & BLOCKED_TASK_TAGS]
        if blocking:
            signals.blocked.append(ProjectRisk(project, ["blocked tasks"], [t.title for t in blocking]))
            continue

        open_tasks = [t for t in tasks if t.status not in DONE_STATUSES]
        overdue = [t for t in open_tasks if _due_before(t, now)]
        reasons = []
        if overdue:
            reasons.append("overdue tasks")
        if len(open_tasks) > INCOMPLETE_TASK_LIMIT:
            reasons.append(f"{len(open_tasks)} incomplete tasks")
        if project.status == "on-hold":
            reasons.append("project on hold")
        if _tag_set(project) & AT_RISK_PROJECT_TAGS:
            reasons.append("project tagged as delayed")
        if reasons:
            signals.at_risk.append(ProjectRisk(project, reasons, [t.title for t in overdue]))

    return signals


# ========================================
# Canonical context rendering
# ========================================

def format_context_object(context: BaseContext) -> str:
    """Readable plain-text rendering of one context snapshot."""
    parts: List[str] = []

    match ContextType(context.type):
        case ContextType.WORKSPACE:
            parts.append(f"Workspace: {context.name}")
            if context.description:
                parts.append(f"Description: {context.description}")
            if context.member_count is not None:
                parts.append(f"Members: {context.member_count}")
            if context.project_count is not None:
                parts.append(f"Projects: {context.project_count}")
            if context.page_count is not None:
                parts.append(f"Pages: {context.page_count}")

        case ContextType.PAGE:
            parts.append(f"Page: {context.title}")
            if context.excerpt:
                parts.append(f"Excerpt: {context.excerpt}")
            if context.content:
                text = _HTML_TAG_RE.sub("", context.content).strip()
                if text:
                    parts.append(f"Content:\n{text}")
            if context.category:
                parts.append(f"Category: {context.category}")
            if context.tags:
                parts.append(f"Tags: {', '.join(context.tags)}")

        case ContextType.PROJECT:
            parts.append(f"Project: {context.name}")
            if context.description:
                parts.append(f"Description: {context.description}")
            parts.append(f"Status: {context.status}")
            if context.priority:
                parts.append(f"Priority: {context.priority}")
            if context.tasks:
                parts.append(f"Tasks: {len(context.tasks)} tasks")

        case ContextType.TASK:
            parts.append(f"Task: {context.title}")
            if context.description:
                parts.append(f"Description: {context.description}")
            parts.append(f"Status: {context.status}")
            if context.priority:
                parts.append(f"Priority: {context.priority}")
            if context.project:
                parts.append(f"Project: {context.project.name}")

        case ContextType.EPIC:
            parts.append(f"Epic: {context.title}")
            if context.description:
                parts.append(f"Description: {context.description}")
            if context.tasks_total is not None:
                parts.append(f"Tasks: {context.tasks_total} ({context.tasks_done or 0} done)")

        case ContextType.ORG:
            if context.teams:
                parts.append(f"Teams: {', '.join(t.name for t in context.teams)}")
            if context.roles:
                parts.append(f"Roles: {len(context.roles)} roles")

        case ContextType.ACTIVITY:
            if context.activities:
                parts.append(f"Recent Activities: {len(context.activities)} activities")
                for act in context.activities[:5]:
                    parts.append(f"- {act.action} on {act.entity} ({act.user_name or 'unknown'})")

        case ContextType.UNIFIED:
            parts.append(f"Workspace: {context.workspace.name}")
            if context.active_project:
                parts.append(f"Active Project: {context.active_project.name}")
            if context.active_page:
                parts.append(f"Active Page: {context.active_page.title}")
            if context.active_task:
                parts.append(f"Active Task: {context.active_task.title}")

    return "\n".join(parts)


# ========================================
# Structured object rendering
# ========================================

def _project_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "project" else None
    return _compact({
        "id": obj.id,
        "type": obj.type,
        "title": obj.title,
        "summary": obj.summary,
        "status": obj.status,
        "tags": obj.tags[:MAX_TAGS],
        "ownerId": obj.owner_id,
        "metadata": _compact({
            "department": meta.department if meta else None,
            "team": meta.team if meta else None,
            "priority": meta.priority if meta else None,
        }),
        "relations": [
            {"type": r.type, "id": r.id, "label": r.label}
            for r in obj.relations
            if r.type == "person" and r.label == "owner"
        ],
    })


def _task_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "task" else None
    return _compact({
        "id": obj.id,
        "type": obj.type,
        "title": obj.title,
        "summary": obj.summary,
        "status": obj.status,
        "tags": obj.tags[:MAX_TAGS],
        "ownerId": obj.owner_id,
        "metadata": _compact({
            "dueDate": meta.due_date if meta else None,
            "priority": meta.priority if meta else None,
        }),
        "relations": [
            {"type": r.type, "id": r.id, "label": r.label}
            for r in obj.relations
            if r.type == "project" or (r.type == "person" and r.label == "assignee")
        ],
    })


def _epic_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "epic" else None
    return _compact({
        "id": meta.epic_id if meta else obj.id,
        "title": obj.title,
        "status": obj.status,
        "description": meta.description if meta else None,
        "tasksTotal": meta.tasks_total if meta else 0,
        "tasksDone": meta.tasks_done if meta else 0,
        "order": meta.order if meta else None,
    })


def _project_task_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "task" else None
    if meta is None:
        return _compact({"id": obj.id, "title": obj.title, "status": obj.status})
    return _compact({
        "id": obj.id,
        "title": obj.title,
        "status": obj.status,
        "priority": meta.priority,
        "description": meta.description,
        "epicId": meta.epic_id,
        "epicTitle": meta.epic_title,
        "assigneeId": meta.assignee_id,
        "dueDate": meta.due_date,
        "subtaskCount": meta.subtask_count or 0,
        "subtaskDoneCount": meta.subtask_done_count or 0,
    })


def _personal_doc_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "page" else None
    entry = obj.to_prompt_dict(MAX_TAGS)
    entry.update(_compact({
        "type": obj.type,
        "ownerId": obj.owner_id,
        "metadata": _compact({
            "category": meta.category if meta else None,
            "slug": meta.slug if meta else None,
            "viewCount": meta.view_count if meta else None,
        }),
    }))
    return entry


def _person_entry(obj: StructuredContextObject) -> dict:
    meta = obj.metadata if obj.metadata and obj.metadata.kind == "role" else None
    team = next((r.id for r in obj.relations if r.type == "team"), None)
    team_name = _TEAM_RE.search(obj.summary)
    department = _DEPARTMENT_RE.search(obj.summary)
    entry = obj.to_prompt_dict(MAX_TAGS)
    entry.update(_compact({
        "type": obj.type,
        "ownerId": obj.owner_id,
        "metadata": _compact({
            "level": meta.level if meta else None,
            "team": team,
            "teamName": team_name.group(1).strip() if team_name else None,
            "department": department.group(1).strip() if department else None,
        }),
        "relations": [
            {"type": r.type, "id": r.id, "label": r.label}
            for r in obj.relations
            if r.type in ("person", "team")
        ],
    }))
    return entry


class PromptBuilder:
    """Builds the per-mode prompt from a loaded context summary."""

    def disclose_actions(self, request: LoopRequest, action_available: bool) -> bool:
        """Capability disclosure is intent-gated: available AND (flag OR keyword)."""
        return action_available and (
            request.action_flag or INTEGRATION_KEYWORD in request.query.lower()
        )

    def build(
        self,
        request: LoopRequest,
        mode: LoopMode,
        context: ContextSummary,
        action_available: bool = False
    ) -> str:
        if mode == LoopMode.SPACES:
            sections = self._spaces_sections(request, context, action_available)
        elif mode == LoopMode.ORG:
            sections = self._org_sections(request, context, action_available)
        else:
            sections = self._dashboard_sections(request, context, action_available)
        return "\n".join(sections)

    # ========================================
    # Shared sections
    # ========================================

    def _primary(self, context: ContextSummary) -> List[str]:
        if context.primary_context is None:
            return []
        return ["\n## Primary Context:", format_context_object(context.primary_context)]

    def _retrieved(self, context: ContextSummary) -> List[str]:
        if not context.retrieved_items:
            return []
        lines = ["\n## Related Items:"]
        for item in context.retrieved_items:
            relevance = f" [relevance: {item.score:.2f}]" if item.score else ""
            lines.append(f"- {item.title} ({item.type}){relevance}")
        return lines

    def _org_people(self, context: ContextSummary) -> List[str]:
        if not context.org_people:
            return [ORG_PEOPLE_EMPTY_PROMPT]
        people = context.org_people[:ORG_PEOPLE_SLICE]
        lines = [
            f"\n## Org People ContextObjects (JSON, {len(context.org_people)} total, showing top {len(people)}):",
        ]
        lines += _json_block([_person_entry(p) for p in people])
        lines.append(ORG_PEOPLE_PROMPT)
        return lines

    def _question(self, request: LoopRequest, instructions: str) -> List[str]:
        return ["\n## User Question:", request.query, "\n## Instructions:", instructions]

    # ========================================
    # Modes
    # ========================================

    def _spaces_sections(
        self,
        request: LoopRequest,
        context: ContextSummary,
        action_available: bool
    ) -> List[str]:
        projects = filter_project_objects(context.structured_context)
        tasks = filter_task_objects(context.structured_context)

        sections = [SPACES_SYSTEM_PROMPT]
        if self.disclose_actions(request, action_available):
            sections.append(generate_capability_prompt(LoopMode.SPACES.value))

        sections += self._primary(context)
        sections += self._retrieved(context)

        if context.project_epics:
            sections += ["\n## EPICS IN THIS PROJECT:", EPICS_PROMPT, "\nEPICS IN THIS PROJECT (JSON):"]
            sections += _json_block([_epic_entry(e) for e in context.project_epics])

        if context.project_tasks:
            sections += ["\n## TASKS IN THIS PROJECT:", TASKS_PROMPT, "\nTASKS IN THIS PROJECT (JSON):"]
            sections += _json_block([_project_task_entry(t) for t in context.project_tasks])

        if context.project_epics and context.project_tasks:
            sections.append(EPIC_TASK_JOIN_PROMPT)

        project_slice = projects[:PROJECT_SLICE]
        task_slice = tasks[:TASK_SLICE]
        if project_slice or task_slice:
            sections.append(PROJECT_GROUNDING_PROMPT.format(project_count=len(projects)))
            sections.append(
                f"\n## Structured Context Objects (JSON, {len(project_slice)} active projects, "
                f"{len(task_slice)} active tasks):"
            )
            sections.append(STRUCTURED_OBJECTS_PROMPT)
            sections += _json_block(
                [_project_entry(p) for p in project_slice] + [_task_entry(t) for t in task_slice]
            )
            sections.append(STRUCTURED_OBJECTS_FOOTER)

        if projects:
            signals = infer_project_risk(context.structured_context)
            sections += ["\n## Derived Project Signals (JSON):", PROJECT_RISK_PROMPT]
            sections += _json_block({
                "blocked": [r.to_prompt_dict() for r in signals.blocked],
                "atRisk": [r.to_prompt_dict() for r in signals.at_risk],
            })

        if context.personal_docs:
            docs = context.personal_docs[:PERSONAL_DOCS_SLICE]
            sections.append(
                f"\n## Personal Docs ContextObjects (JSON, {len(context.personal_docs)} total, "
                f"showing top {len(docs)}):"
            )
            sections += _json_block([_personal_doc_entry(d) for d in docs])
            sections.append(PERSONAL_DOCS_PROMPT)
        else:
            sections.append(PERSONAL_DOCS_EMPTY_PROMPT)

        sections += self._question(request, SPACES_INSTRUCTIONS)
        return sections

    def _org_sections(
        self,
        request: LoopRequest,
        context: ContextSummary,
        action_available: bool
    ) -> List[str]:
        sections = [ORG_SYSTEM_PROMPT]
        if self.disclose_actions(request, action_available):
            sections.append(generate_capability_prompt(LoopMode.ORG.value))

        sections += self._primary(context)
        sections += self._retrieved(context)
        sections += self._org_people(context)
        sections += self._question(request, ORG_INSTRUCTIONS)
        return sections

    def _dashboard_sections(
        self,
        request: LoopRequest,
        context: ContextSummary,
        action_available: bool
    ) -> List[str]:
        sections = [DASHBOARD_SYSTEM_PROMPT]
        if self.disclose_actions(request, action_available):
            sections.append(generate_capability_prompt(LoopMode.DASHBOARD.value))

        sections += self._primary(context)
        if context.related_context:
            sections.append("\n## Recent Activity:")
            sections += [format_context_object(c) for c in context.related_context]
        sections += self._retrieved(context)
        sections += self._org_people(context)
        sections += self._question(request, DASHBOARD_INSTRUCTIONS)
        return sections
