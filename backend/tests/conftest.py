"""
Shared pytest fixtures for Loopbrain tests.

Provides:
- A throwaway SQLite database per test (aiosqlite, one connection per session)
- In-memory fakes for the embedding provider, the language model and the
  messaging integration
- Small factories for the host product's rows
"""
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import loopbrain.models  # noqa: F401
from loopbrain.core.database import Base
from loopbrain.core.exceptions import EmbeddingError, LLMError
from loopbrain.models.domain import (
    Activity,
    Epic,
    OrgDepartment,
    OrgPosition,
    OrgTeam,
    Project,
    Subtask,
    Task,
    User,
    WikiPage,
    Workspace,
    WorkspaceMember,
)
from loopbrain.services.adapter.provider import AIProviderAdapter, AIResponse, ChatMessage
from loopbrain.services.adapter.slack import (
    ActionAdapter,
    ActionResult,
    ChannelMessage,
    ReadResult,
)
from loopbrain.services.embedding.provider import EmbeddingProvider
from loopbrain.services.embedding.service import EmbeddingService
from loopbrain.services.engine.engine import ContextEngine
from loopbrain.services.store.items import ContextItemStore
from loopbrain.services.store.summaries import SummaryStore
from loopbrain.services.store.vectors import VectorStore


WORKSPACE_ID = "ws-acme"
OTHER_WORKSPACE_ID = "ws-globex"
USER_ID = "user-ada"

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0)


def at(minutes: int) -> datetime:
    """Deterministic timestamps so 'most recent first' ordering is testable."""
    return BASE_TIME + timedelta(minutes=minutes)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    """
    Fresh schema in a temporary SQLite file.

    A file (not :memory:) so concurrent sessions each get their own
    connection, as they would against PostgreSQL.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'loopbrain.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


async def add_rows(session_factory, *rows) -> None:
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()


# ============================================================================
# Fakes
# ============================================================================

class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Bag-of-words vectors: each word bumps one bucket.

    Texts containing any of ``fail_on`` raise EmbeddingError.
    """

    model = "fake-embedding"

    def __init__(self, dimensions: int = 64, fail_on: Optional[List[str]] = None):
        self.dimensions = dimensions
        self.fail_on = [f.lower() for f in fail_on or []]
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        lowered = text.lower()
        if any(token in lowered for token in self.fail_on):
            raise EmbeddingError("Embedding API error: 500")

        vector = [0.0] * self.dimensions
        for word in re.findall(r"[a-z0-9]+", lowered):
            vector[sum(ord(c) for c in word) % self.dimensions] += 1.0
        return vector


class FakeLLM(AIProviderAdapter):
    """Returns canned answers in order (the last one repeats) and records every call."""

    def __init__(self, responses=None, fail: bool = False):
        super().__init__(api_key="test-key", model="fake-model")
        self.provider_name = "fake"
        self.responses = list(responses or ["Here is what I found."])
        self.fail = fail
        self.calls: List[dict] = []

    @property
    def prompts(self) -> List[str]:
        return [call["prompt"] for call in self.calls]

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AIResponse:
        self.calls.append({
            "system": next((m.content for m in messages if m.role == "system"), None),
            "prompt": messages[-1].content,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.fail:
            raise LLMError("AI API Error: 503")

        content = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return AIResponse(
            content=content,
            model="fake-model",
            prompt_tokens=120,
            completion_tokens=30,
            total_tokens=150,
        )


class FakeActionAdapter(ActionAdapter):
    """Records sends and reads; results are configurable per test."""

    name = "slack"

    def __init__(
        self,
        available: bool = True,
        send_result: Optional[ActionResult] = None,
        read_result: Optional[ReadResult] = None,
        send_error: Optional[Exception] = None,
        read_error: Optional[Exception] = None,
    ):
        self.available = available
        self.send_result = send_result or ActionResult(ok=True, ts="1717243200.000100")
        self.read_result = read_result or ReadResult(ok=True, messages=[])
        self.send_error = send_error
        self.read_error = read_error
        self.sent: List[tuple] = []
        self.reads: List[tuple] = []

    async def is_available(self, workspace_id: str) -> bool:
        return self.available

    async def send(self, workspace_id: str, channel: str, text: str) -> ActionResult:
        self.sent.append((channel, text))
        if self.send_error:
            raise self.send_error
        return self.send_result

    async def read(self, workspace_id: str, channel: str, limit: int = 50) -> ReadResult:
        self.reads.append((channel, limit))
        if self.read_error:
            raise self.read_error
        return self.read_result


def channel_messages(*texts: str) -> List[ChannelMessage]:
    return [
        ChannelMessage(user=f"U{i}", text=text, ts=f"{1717243200 + i * 60}.000100")
        for i, text in enumerate(texts)
    ]


# ============================================================================
# Component Fixtures
# ============================================================================

@pytest.fixture
def item_store(session_factory) -> ContextItemStore:
    return ContextItemStore(session_factory)


@pytest.fixture
def vector_store(session_factory) -> VectorStore:
    return VectorStore(session_factory)


@pytest.fixture
def summary_store(session_factory) -> SummaryStore:
    return SummaryStore(session_factory)


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_service(embedding_provider, item_store, vector_store) -> EmbeddingService:
    return EmbeddingService(embedding_provider, item_store, vector_store)


@pytest.fixture
def context_engine(session_factory, item_store) -> ContextEngine:
    return ContextEngine(session_factory, item_store)


# ============================================================================
# Test Data Factories
# ============================================================================

def make_workspace(id: str = WORKSPACE_ID, name: str = "Acme") -> Workspace:
    return Workspace(id=id, name=name, description=f"{name} operating workspace")


def make_user(id: str = USER_ID, name: str = "Ada Lovelace") -> User:
    return User(id=id, name=name, email=f"{id}@example.com")


def make_project(id: str, name: str, workspace_id: str = WORKSPACE_ID, minutes: int = 0, **kwargs) -> Project:
    kwargs.setdefault("status", "ACTIVE")
    kwargs.setdefault("priority", "HIGH")
    return Project(
        id=id,
        workspace_id=workspace_id,
        name=name,
        created_at=at(minutes),
        updated_at=at(minutes),
        **kwargs,
    )


def make_task(id: str, title: str, project_id: str, workspace_id: str = WORKSPACE_ID, minutes: int = 0, **kwargs) -> Task:
    kwargs.setdefault("status", "TODO")
    kwargs.setdefault("priority", "MEDIUM")
    return Task(
        id=id,
        workspace_id=workspace_id,
        project_id=project_id,
        title=title,
        created_at=at(minutes),
        updated_at=at(minutes),
        **kwargs,
    )


def make_epic(id: str, title: str, project_id: str, workspace_id: str = WORKSPACE_ID, **kwargs) -> Epic:
    return Epic(
        id=id,
        workspace_id=workspace_id,
        project_id=project_id,
        title=title,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
        **kwargs,
    )


def make_page(id: str, title: str, workspace_id: str = WORKSPACE_ID, minutes: int = 0, **kwargs) -> WikiPage:
    kwargs.setdefault("slug", title.lower().replace(" ", "-"))
    kwargs.setdefault("content", f"<p>{title} body</p>")
    return WikiPage(
        id=id,
        workspace_id=workspace_id,
        title=title,
        created_at=at(minutes),
        updated_at=at(minutes),
        **kwargs,
    )


@pytest_asyncio.fixture
async def acme(session_factory):
    """
    A small but complete workspace:
    two live projects and one archived, tasks and epics on Apollo,
    a nested wiki, a personal doc, an org chart and some activity.
    """
    users = [
        make_user(),
        make_user("user-grace", "Grace Hopper"),
        make_user("user-alan", "Alan Turing"),
    ]
    workspaces = [make_workspace(), make_workspace(OTHER_WORKSPACE_ID, "Globex")]
    members = [
        WorkspaceMember(workspace_id=WORKSPACE_ID, user_id=USER_ID, role="OWNER"),
        WorkspaceMember(workspace_id=WORKSPACE_ID, user_id="user-grace"),
    ]
    projects = [
        make_project("proj-apollo", "Apollo", minutes=30, department="Engineering",
                     team="Platform", owner_id=USER_ID, description="Launch the new platform"),
        make_project("proj-gemini", "Gemini", minutes=20, status="ON_HOLD", priority="LOW"),
        make_project("proj-mercury", "Mercury", minutes=10, is_archived=True),
        make_project("proj-globex", "Globex Secret", workspace_id=OTHER_WORKSPACE_ID, minutes=40),
    ]
    epics = [
        make_epic("epic-launch", "Launch readiness", "proj-apollo", order=1, description="Everything for go-live"),
        make_epic("epic-docs", "Documentation", "proj-apollo", order=2),
    ]
    tasks = [
        make_task("task-api", "Ship public API", "proj-apollo", minutes=25, status="IN_PROGRESS",
                  epic_id="epic-launch", assignee_id="user-grace", tags=["api"], depends_on=["task-auth"]),
        make_task("task-auth", "Harden auth", "proj-apollo", minutes=15, status="DONE", epic_id="epic-launch"),
        make_task("task-guide", "Write user guide", "proj-apollo", minutes=5, epic_id="epic-docs"),
        make_task("task-globex", "Globex only task", "proj-globex", workspace_id=OTHER_WORKSPACE_ID, minutes=5),
    ]
    subtasks = [
        Subtask(task_id="task-api", title="Rate limits", status="COMPLETED"),
        Subtask(task_id="task-api", title="Pagination", status="TODO"),
    ]
    pages = [
        make_page("page-handbook", "Handbook", minutes=1, category="process", tags=["onboarding"]),
        make_page("page-onboarding", "Onboarding", minutes=2, category="process", tags=["onboarding"],
                  parent_id="page-handbook", excerpt="How new people get started", created_by_id=USER_ID),
        make_page("page-journal", "Ada's journal", minutes=3, workspace_type="personal", created_by_id=USER_ID),
        make_page("page-draft", "Unpublished draft", minutes=4, workspace_type="personal",
                  created_by_id=USER_ID, is_published=False),
        make_page("page-globex", "Globex handbook", workspace_id=OTHER_WORKSPACE_ID, category="process",
                  tags=["onboarding"]),
    ]
    department = OrgDepartment(id="dept-eng", workspace_id=WORKSPACE_ID, name="Engineering")
    team = OrgTeam(id="team-platform", workspace_id=WORKSPACE_ID, department_id="dept-eng", name="Platform")
    positions = [
        OrgPosition(id="pos-cto", workspace_id=WORKSPACE_ID, title="CTO", level=1, user_id=USER_ID,
                    team_id="team-platform", updated_at=at(3)),
        OrgPosition(id="pos-lead", workspace_id=WORKSPACE_ID, title="Platform Lead", level=2,
                    parent_id="pos-cto", user_id="user-grace", team_id="team-platform", updated_at=at(2)),
        OrgPosition(id="pos-open", workspace_id=WORKSPACE_ID, title="Platform Engineer", level=3,
                    parent_id="pos-lead", team_id="team-platform", updated_at=at(1)),
        OrgPosition(id="pos-retired", workspace_id=WORKSPACE_ID, title="Old Role", level=2,
                    user_id="user-alan", is_active=False),
    ]
    activities = [
        Activity(actor_id=USER_ID, entity="project", entity_id="proj-apollo", action="updated", created_at=at(50)),
        Activity(actor_id="user-grace", entity="task", entity_id="task-api", action="created", created_at=at(40)),
        Activity(actor_id="user-alan", entity="project", entity_id="proj-globex", action="updated", created_at=at(60)),
    ]

    await add_rows(session_factory, *users, *workspaces)
    await add_rows(session_factory, *members, *projects)
    await add_rows(session_factory, *epics, *pages, department)
    await add_rows(session_factory, *tasks, team)
    await add_rows(session_factory, *subtasks, *positions, *activities)
    return WORKSPACE_ID
