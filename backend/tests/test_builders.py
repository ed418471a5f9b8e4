"""
Tests for the flat context object builders.
"""
from loopbrain.models.domain import Epic, OrgPosition, OrgTeam, Project, Subtask, Task, User, WikiPage
from loopbrain.services.engine.builders import (
    build_epic_object,
    build_task_object,
    normalize_project_status,
    normalize_task_status,
    page_to_context,
    project_to_context,
    role_to_context,
    task_to_context,
)

from conftest import BASE_TIME, WORKSPACE_ID


def apollo(**kwargs) -> Project:
    fields = dict(
        id="proj-apollo",
        workspace_id=WORKSPACE_ID,
        name="Apollo Launch",
        status="ACTIVE",
        priority="HIGH",
        department="Engineering",
        team="Platform",
        is_archived=False,
        owner_id="user-ada",
        updated_at=BASE_TIME,
    )
    fields.update(kwargs)
    return Project(**fields)


def api_task(**kwargs) -> Task:
    fields = dict(
        id="task-api",
        workspace_id=WORKSPACE_ID,
        project_id="proj-apollo",
        title="Ship public API",
        description="Expose the v1 endpoints",
        status="IN_PROGRESS",
        priority="HIGH",
        tags=["api"],
        order=0,
        updated_at=BASE_TIME,
    )
    fields.update(kwargs)
    return Task(**fields)


class TestStatusNormalization:

    def test_known_and_unknown_values(self):
        assert normalize_project_status("ON_HOLD") == "on-hold"
        assert normalize_task_status("IN_REVIEW") == "in-review"
        assert normalize_project_status("PLANNING") == "planning"


class TestProjectToContext:
    """Projects flatten to a summary line with tags and an owner relation."""

    def test_active_project(self):
        obj = project_to_context(apollo())

        assert obj.type == "project"
        assert obj.status == "active"
        assert obj.summary == "active project in Engineering (priority: high)"
        assert obj.tags == ["active", "high", "department:Engineering", "team:Platform"]
        assert obj.owner_id == "user-ada"
        assert [(r.type, r.id, r.label) for r in obj.relations] == [("person", "user-ada", "owner")]
        assert obj.metadata.kind == "project"
        assert obj.metadata.is_archived is False

    def test_archived_project_is_marked(self):
        obj = project_to_context(apollo(is_archived=True, department=None, owner_id=None))

        assert "archived" in obj.tags
        assert obj.summary.endswith("(archived)")
        assert "Unknown department" in obj.summary
        assert obj.relations == []


class TestTaskBuilders:
    """Generic and project-management task flattening."""

    def test_task_to_context_mentions_assignee_and_project(self):
        task = api_task(
            assignee_id="user-grace",
            assignee=User(id="user-grace", name="Grace Hopper"),
            project=apollo(),
        )

        obj = task_to_context(task)

        assert obj.id == "task-api"
        assert obj.summary == "in-progress task assigned to Grace Hopper in project Apollo Launch"
        assert obj.tags == ["in-progress", "high", "api"]
        assert {r.label for r in obj.relations} == {"project", "assignee"}

    def test_build_task_object_counts_subtasks(self):
        task = api_task(
            epic_id="epic-launch",
            project=apollo(),
            epic=Epic(id="epic-launch", title="Launch Readiness"),
            subtasks=[
                Subtask(title="Rate limits", status="COMPLETED"),
                Subtask(title="Pagination", status="TODO"),
            ],
        )

        obj = build_task_object(task)

        assert obj.id == "task:task-api"
        assert obj.status == "in_progress"
        assert obj.tags == [
            "task", "status:in_progress", "priority:high",
            "project:apollo-launch", "epic:launch-readiness",
        ]
        assert obj.summary == "Expose the v1 endpoints. 2 subtasks (1 done)"
        assert obj.metadata.epic_title == "Launch Readiness"
        assert obj.metadata.subtask_count == 2
        assert obj.metadata.subtask_done_count == 1

    def test_build_task_object_without_details(self):
        obj = build_task_object(api_task(description=None, project=None, epic=None, subtasks=[]))

        assert obj.summary == "Task: Ship public API"
        assert obj.metadata.subtask_count == 0


class TestEpicBuilder:

    def test_counts_done_tasks(self):
        epic = Epic(
            id="epic-launch",
            workspace_id=WORKSPACE_ID,
            project_id="proj-apollo",
            title="Launch readiness",
            description="Everything for go-live",
            order=1,
            updated_at=BASE_TIME,
            project=apollo(),
            tasks=[api_task(status="DONE"), api_task(id="task-2", status="TODO")],
        )

        obj = build_epic_object(epic)

        assert obj.id == "epic:epic-launch"
        assert obj.type == "epic"
        assert obj.summary == "Everything for go-live. 2 tasks (1 done)"
        assert obj.tags == ["epic", "project:apollo-launch"]
        assert obj.metadata.epic_id == "epic-launch"
        assert (obj.metadata.tasks_total, obj.metadata.tasks_done) == (2, 1)

    def test_empty_epic_summary(self):
        epic = Epic(
            id="e", workspace_id=WORKSPACE_ID, project_id="p", title="Later",
            order=0, updated_at=BASE_TIME, project=None, tasks=[],
        )

        assert build_epic_object(epic).summary == "Epic: Later"


class TestPageAndRoleBuilders:

    def test_page_summary_truncates_excerpt(self):
        page = WikiPage(
            id="pg1",
            workspace_id=WORKSPACE_ID,
            title="Handbook",
            slug="handbook",
            content="x" * 300,
            category="process",
            tags=["people"],
            is_published=True,
            project_id="proj-apollo",
            view_count=0,
            is_featured=False,
            updated_at=BASE_TIME,
        )

        obj = page_to_context(page, include_project=False)

        assert obj.status == "published"
        assert obj.summary.startswith("published page in process category: ")
        assert len(obj.summary) < 200
        assert obj.tags == ["people", "category:process", "published"]
        assert obj.relations == []
        assert obj.metadata.view_count is None

    def test_role_held_and_vacant(self):
        team = OrgTeam(id="team-platform", name="Platform")
        held = OrgPosition(
            id="pos-cto", title="CTO", level=1, order=0, is_active=True, updated_at=BASE_TIME,
            user_id="user-ada", user=User(id="user-ada", name="Ada Lovelace"),
            team_id="team-platform", team=team,
        )
        vacant = OrgPosition(
            id="pos-open", title="Engineer", level=3, order=0, is_active=True, updated_at=BASE_TIME,
            user=None, team=None,
        )

        assert role_to_context(held).summary == "Level 1 CTO held by Ada Lovelace in team Platform"
        assert role_to_context(vacant).summary == "Level 3 Engineer (vacant)"
        assert role_to_context(held).tags == ["level:1", "team:Platform"]
