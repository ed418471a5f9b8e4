"""
Tests for prompt assembly: section order, grounding slices and
intent-gated capability disclosure.
"""
import json
import re

from loopbrain.models.domain import Project, Task, User
from loopbrain.schemas.context import ActivityContext, ActivitySummary, WorkspaceContext
from loopbrain.schemas.structured import StructuredContextObject
from loopbrain.services.engine.builders import project_to_context, task_to_context
from loopbrain.services.orchestrator.prompt_builder import (
    PromptBuilder,
    filter_project_objects,
    filter_task_objects,
    format_context_object,
    infer_project_risk,
)
from loopbrain.services.orchestrator.state import (
    Anchors,
    ContextSummary,
    LoopMode,
    LoopRequest,
    RetrievedItem,
)

from conftest import USER_ID, WORKSPACE_ID, at

CAPABILITY_HEADER = "## Slack Integration Available"


def request(query: str = "what projects are active?", mode: str = "spaces", **kwargs) -> LoopRequest:
    return LoopRequest(workspace_id=WORKSPACE_ID, user_id=USER_ID, mode=mode, query=query, **kwargs)


def project_obj(id: str, name: str, minutes: int = 0, **kwargs) -> StructuredContextObject:
    fields = dict(
        id=id, workspace_id=WORKSPACE_ID, name=name, status="ACTIVE", priority="MEDIUM",
        is_archived=False, updated_at=at(minutes),
    )
    fields.update(kwargs)
    return project_to_context(Project(**fields))


def task_obj(id: str, title: str, status: str = "TODO", minutes: int = 0, **kwargs) -> StructuredContextObject:
    fields = dict(
        id=id, workspace_id=WORKSPACE_ID, project_id="proj-apollo", title=title, status=status,
        priority="HIGH", tags=[], order=0, updated_at=at(minutes), project=None, assignee=None,
    )
    fields.update(kwargs)
    return task_to_context(Task(**fields))


def workspace_context() -> WorkspaceContext:
    return WorkspaceContext(
        id=WORKSPACE_ID, workspace_id=WORKSPACE_ID, timestamp="now", name="Acme", project_count=3,
    )


def json_blocks(prompt: str) -> list:
    return [json.loads(block) for block in re.findall(r"```json\n(.*?)\n```", prompt, re.DOTALL)]


class TestSlices:
    """Grounding slices exclude archived projects and finished tasks."""

    def test_filter_projects(self):
        objects = [
            project_obj("p-old", "Old", minutes=1),
            project_obj("p-new", "New", minutes=5),
            project_obj("p-arch", "Archived", minutes=9, is_archived=True),
            task_obj("t1", "Task"),
        ]

        assert [o.id for o in filter_project_objects(objects)] == ["p-new", "p-old"]

    def test_filter_tasks(self):
        objects = [task_obj("t1", "Open", minutes=1), task_obj("t2", "Finished", status="DONE"),
                   task_obj("t3", "Newer", status="BLOCKED", minutes=3)]

        assert [o.id for o in filter_task_objects(objects)] == ["t3", "t1"]
        assert filter_task_objects(None) == []


class TestProjectRisk:
    """Blocked and at-risk classification from task signals."""

    NOW = at(0)

    def test_blocked_by_status_or_tag(self):
        objects = [
            project_obj("proj-apollo", "Apollo"),
            project_obj("proj-gemini", "Gemini"),
            task_obj("t1", "Vendor contract", status="BLOCKED"),
            task_obj("t2", "Data migration", project_id="proj-gemini", tags=["Waiting"]),
            task_obj("t3", "Docs", project_id="proj-gemini"),
        ]

        signals = infer_project_risk(objects, now=self.NOW)

        assert [(r.project.id, r.tasks) for r in signals.blocked] == [
            ("proj-apollo", ["Vendor contract"]),
            ("proj-gemini", ["Data migration"]),
        ]
        assert signals.at_risk == []

    def test_at_risk_reasons(self):
        delayed = project_obj("proj-mercury", "Mercury").model_copy(update={"tags": ["active", "Delayed"]})
        objects = [
            project_obj("proj-apollo", "Apollo"),
            project_obj("proj-gemini", "Gemini", status="ON_HOLD"),
            delayed,
            task_obj("t1", "Overdue review", due_date=at(-60)),
            task_obj("t2", "Future review", due_date=at(60)),
            task_obj("t3", "Late but done", status="DONE", due_date=at(-60)),
        ]

        signals = infer_project_risk(objects, now=self.NOW)
        at_risk = {r.project.id: r for r in signals.at_risk}

        assert at_risk["proj-apollo"].reasons == ["overdue tasks"]
        assert at_risk["proj-apollo"].tasks == ["Overdue review"]
        assert at_risk["proj-gemini"].reasons == ["project on hold"]
        assert at_risk["proj-mercury"].reasons == ["project tagged as delayed"]
        assert signals.blocked == []

    def test_many_incomplete_tasks(self):
        objects = [project_obj("proj-apollo", "Apollo")]
        objects += [task_obj(f"t{i}", f"Task {i}") for i in range(6)]

        signals = infer_project_risk(objects, now=self.NOW)

        assert signals.at_risk[0].reasons == ["6 incomplete tasks"]

    def test_blocked_takes_precedence_and_archived_is_ignored(self):
        objects = [
            project_obj("proj-apollo", "Apollo", status="ON_HOLD"),
            project_obj("proj-old", "Old", is_archived=True),
            task_obj("t1", "Stuck", status="BLOCKED"),
            task_obj("t2", "Also stuck", status="BLOCKED", project_id="proj-old"),
        ]

        signals = infer_project_risk(objects, now=self.NOW)

        assert [r.project.id for r in signals.blocked] == ["proj-apollo"]
        assert signals.at_risk == []

    def test_healthy_workspace(self):
        objects = [project_obj("proj-apollo", "Apollo"), task_obj("t1", "Open", due_date=at(60))]

        signals = infer_project_risk(objects, now=self.NOW)

        assert (signals.blocked, signals.at_risk) == ([], [])
        assert infer_project_risk(None).blocked == []


class TestFormatContextObject:

    def test_workspace(self):
        text = format_context_object(workspace_context())

        assert text == "Workspace: Acme\nProjects: 3"

    def test_activity_lists_first_five(self):
        activity = ActivityContext(
            id=WORKSPACE_ID,
            workspace_id=WORKSPACE_ID,
            timestamp="now",
            activities=[
                ActivitySummary(id=str(i), entity="task", entity_id=f"t{i}", action="updated",
                                user_name="Ada", timestamp="now")
                for i in range(8)
            ],
        )

        lines = format_context_object(activity).splitlines()

        assert lines[0] == "Recent Activities: 8 activities"
        assert len(lines) == 6


class TestSpacesPrompt:
    """Spaces mode grounding and section order."""

    def setup_method(self):
        self.builder = PromptBuilder()

    def context(self, **kwargs) -> ContextSummary:
        kwargs.setdefault("primary_context", workspace_context())
        kwargs.setdefault("structured_context", [
            project_obj("proj-apollo", "Apollo", minutes=30, owner_id="user-ada"),
            project_obj("proj-mercury", "Mercury", minutes=10, is_archived=True),
            task_obj("task-api", "Ship public API", status="IN_PROGRESS"),
            task_obj("task-auth", "Harden auth", status="DONE"),
        ])
        return ContextSummary(**kwargs)

    def test_only_active_projects_are_grounded(self):
        prompt = self.builder.build(request(), LoopMode.SPACES, self.context())

        structured = json_blocks(prompt)[0]
        titles = [entry["title"] for entry in structured]
        assert "Apollo" in titles
        assert "Ship public API" in titles
        assert "Mercury" not in prompt
        assert "Harden auth" not in prompt
        assert "The workspace currently has 1 active project(s)" in prompt

    def test_project_entry_keeps_owner_relation(self):
        prompt = self.builder.build(request(), LoopMode.SPACES, self.context())

        apollo = json_blocks(prompt)[0][0]
        assert apollo["ownerId"] == "user-ada"
        assert apollo["relations"] == [{"type": "person", "id": "user-ada", "label": "owner"}]

    def test_section_order(self):
        prompt = self.builder.build(
            request(query="slack: what projects are active?"),
            LoopMode.SPACES,
            self.context(retrieved_items=[RetrievedItem(
                context_item_id="i1", context_id="proj-apollo", type="project", title="Apollo", score=0.91,
            )]),
            action_available=True,
        )

        markers = [
            "operating in Spaces mode",
            CAPABILITY_HEADER,
            "## Primary Context:",
            "## Related Items:",
            "## CRITICAL: Using Structured Context Objects",
            "## Structured Context Objects (JSON",
            "## Personal Docs ContextObjects:",
            "## User Question:",
            "## Instructions:",
        ]
        positions = [prompt.index(marker) for marker in markers]
        assert positions == sorted(positions)
        assert "- Apollo (project) [relevance: 0.91]" in prompt

    def test_derived_project_signals(self):
        prompt = self.builder.build(request(query="which projects are blocked?"), LoopMode.SPACES, self.context(
            structured_context=[
                project_obj("proj-apollo", "Apollo"),
                task_obj("task-vendor", "Vendor contract", status="BLOCKED"),
            ],
        ))

        assert prompt.index("## Structured Context Objects (JSON") < prompt.index("## Derived Project Signals (JSON):")
        signals = json_blocks(prompt)[1]
        assert signals == {
            "blocked": [{
                "projectId": "proj-apollo",
                "title": "Apollo",
                "reasons": ["blocked tasks"],
                "tasks": ["Vendor contract"],
            }],
            "atRisk": [],
        }

    def test_no_derived_signals_without_projects(self):
        prompt = self.builder.build(request(), LoopMode.SPACES, self.context(structured_context=[]))

        assert "## Derived Project Signals" not in prompt

    def test_empty_personal_docs_notice(self):
        prompt = self.builder.build(request(), LoopMode.SPACES, self.context())

        assert "The user has 0 documents in their personal space." in prompt

    def test_project_epics_and_tasks_sections(self):
        epic = StructuredContextObject(
            id="epic:e1", type="epic", title="Launch", summary="Launch work", status="active",
            updated_at=at(0),
            metadata={"kind": "epic", "epic_id": "e1", "project_id": "p", "workspace_id": WORKSPACE_ID,
                      "tasks_total": 2, "tasks_done": 1},
        )
        task = StructuredContextObject(
            id="task:t1", type="task", title="Ship", summary="Ship it", status="todo", updated_at=at(0),
            metadata={"kind": "task", "epic_id": "e1", "epic_title": "Launch", "priority": "HIGH"},
        )

        prompt = self.builder.build(
            request(anchors=Anchors(project_id="p")),
            LoopMode.SPACES,
            self.context(project_epics=[epic], project_tasks=[task]),
        )

        assert prompt.index("EPICS IN THIS PROJECT (JSON)") < prompt.index("TASKS IN THIS PROJECT (JSON)")
        assert "How to reason about epics and tasks" in prompt
        blocks = json_blocks(prompt)
        assert blocks[0] == [{"id": "e1", "title": "Launch", "status": "active", "tasksTotal": 2, "tasksDone": 1}]
        assert blocks[1][0]["epicTitle"] == "Launch"


class TestCapabilityDisclosure:
    """The integration is only described when available and asked for."""

    def setup_method(self):
        self.builder = PromptBuilder()

    def test_not_disclosed_for_informational_question(self):
        prompt = self.builder.build(request(), LoopMode.SPACES, ContextSummary(), action_available=True)

        assert CAPABILITY_HEADER not in prompt

    def test_disclosed_when_keyword_present(self):
        prompt = self.builder.build(
            request(query="Post the summary to Slack"), LoopMode.SPACES, ContextSummary(), action_available=True,
        )

        assert CAPABILITY_HEADER in prompt
        assert "[SLACK_SEND:channel=#channel-name:text=Your message here]" in prompt

    def test_disclosed_when_flag_set(self):
        prompt = self.builder.build(
            request(action_flag=True), LoopMode.ORG, ContextSummary(), action_available=True,
        )

        assert CAPABILITY_HEADER in prompt
        assert '"who works in my organization"' in prompt

    def test_never_disclosed_when_unavailable(self):
        prompt = self.builder.build(
            request(query="send to slack", action_flag=True), LoopMode.DASHBOARD, ContextSummary(),
            action_available=False,
        )

        assert CAPABILITY_HEADER not in prompt


class TestOrgAndDashboardPrompts:

    def setup_method(self):
        self.builder = PromptBuilder()

    def test_org_people_block(self):
        person = StructuredContextObject(
            id="pos-cto", type="role", title="CTO",
            summary="Level 1 CTO held by Ada Lovelace in team Platform",
            owner_id="user-ada", status="active", updated_at=at(0),
            relations=[{"type": "team", "id": "team-platform", "label": "team", "direction": "out"}],
            metadata={"kind": "role", "level": 1},
        )

        prompt = self.builder.build(
            request(query="who works here?", mode="org"), LoopMode.ORG, ContextSummary(org_people=[person]),
        )

        assert "Org People ContextObjects (JSON, 1 total, showing top 1)" in prompt
        entry = json_blocks(prompt)[0][0]
        assert entry["title"] == "CTO"
        assert entry["metadata"] == {"level": 1, "team": "team-platform", "teamName": "Platform"}

    def test_org_without_people(self):
        prompt = self.builder.build(request(mode="org"), LoopMode.ORG, ContextSummary())

        assert "The organization has 0 people with assigned roles." in prompt

    def test_dashboard_includes_recent_activity(self):
        activity = ActivityContext(
            id=WORKSPACE_ID, workspace_id=WORKSPACE_ID, timestamp="now",
            activities=[ActivitySummary(id="a1", entity="project", entity_id="p1", action="updated",
                                        user_name="Ada", timestamp="now")],
        )

        prompt = self.builder.build(
            request(mode="dashboard"),
            LoopMode.DASHBOARD,
            ContextSummary(primary_context=workspace_context(), related_context=[activity]),
        )

        assert prompt.index("## Primary Context:") < prompt.index("## Recent Activity:")
        assert "- updated on project (Ada)" in prompt
        assert prompt.index("## Recent Activity:") < prompt.index("## User Question:")
