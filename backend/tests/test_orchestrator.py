"""
Tests for context loading and the full orchestrator pipeline
against a seeded workspace with fake providers.
"""
import asyncio

import pytest

from loopbrain.core.exceptions import LLMError, RequestValidationError
from loopbrain.services.adapter.slack import ActionResult, ReadResult
from loopbrain.services.engine.engine import ContextEngine
from loopbrain.services.orchestrator import ContextLoader, LoopbrainOrchestrator
from loopbrain.services.orchestrator.orchestrator import READ_MODEL, SEND_MODEL
from loopbrain.services.orchestrator.state import Anchors, LoopMode, LoopRequest

from conftest import OTHER_WORKSPACE_ID, USER_ID, WORKSPACE_ID, FakeActionAdapter, FakeLLM, channel_messages


def loop_request(query: str = "what projects are active?", mode: str = "spaces", **kwargs) -> LoopRequest:
    kwargs.setdefault("workspace_id", WORKSPACE_ID)
    return LoopRequest(user_id=USER_ID, mode=mode, query=query, **kwargs)


@pytest.fixture
def loader(context_engine, embedding_service) -> ContextLoader:
    return ContextLoader(context_engine, embedding_service)


@pytest.fixture
def make_orchestrator(loader):
    def _make(llm=None, actions=None):
        return LoopbrainOrchestrator(
            loader=loader,
            llm=llm or FakeLLM(),
            actions=actions or FakeActionAdapter(available=False),
        )
    return _make


class FlakyEngine(ContextEngine):
    """One source raises, another hangs."""

    async def get_personal_space_docs(self, workspace_id, user_id, limit=50):
        raise RuntimeError("personal docs unavailable")

    async def get_org_people(self, workspace_id, limit=100):
        await asyncio.sleep(5)
        return []


# ============================================================================
# Request Validation
# ============================================================================

class TestLoopRequest:

    def test_anchor_forces_spaces(self):
        request = loop_request(mode="org", anchors=Anchors(project_id="proj-apollo"))

        assert request.resolve_mode() == LoopMode.SPACES

    def test_org_anchor_keeps_declared_mode(self):
        request = loop_request(mode="org", anchors=Anchors(role_id="pos-cto", team_id="team-platform"))

        assert request.resolve_mode() == LoopMode.ORG

    def test_declared_mode_without_anchor(self):
        assert loop_request(mode="dashboard").resolve_mode() == LoopMode.DASHBOARD

    def test_invalid_mode(self):
        with pytest.raises(RequestValidationError, match="Invalid mode"):
            loop_request(mode="finance").resolve_mode()

    def test_blank_query(self):
        with pytest.raises(RequestValidationError, match="Query is required"):
            loop_request(query="   ").resolve_mode()

    def test_max_context_items_clamped(self):
        assert loop_request(max_context_items=500).max_context_items == 50
        assert loop_request(max_context_items=0).max_context_items == 1
        assert loop_request(max_context_items=None).max_context_items == 10


# ============================================================================
# Context Loading
# ============================================================================

class TestContextLoader:
    """Mode-specific fan-out with per-source failure isolation."""

    async def test_spaces_without_anchor_uses_workspace(self, acme, loader):
        context = await loader.load(loop_request(), LoopMode.SPACES)

        assert context.primary_context.type == "workspace"
        assert {"workspace", "structured", "personal_docs", "semantic_search"} <= set(context.sources_loaded)
        assert [d.title for d in context.personal_docs] == ["Ada's journal"]
        assert context.sources_failed == []

    async def test_project_anchor(self, acme, loader):
        request = loop_request(anchors=Anchors(project_id="proj-apollo", epic_id="epic-launch"))

        context = await loader.load(request, LoopMode.SPACES)

        assert context.primary_context.type == "project"
        assert context.primary_context.name == "Apollo"
        assert context.structured_context[0].id == "proj-apollo"
        assert [e.id for e in context.project_epics] == ["epic:epic-launch", "epic:epic-docs"]
        assert len(context.project_tasks) == 3
        structured_ids = [o.id for o in context.structured_context]
        assert structured_ids.count("epic:epic-launch") == 1
        assert "workspace" not in context.sources_loaded

    async def test_page_anchor_wins(self, acme, loader):
        request = loop_request(anchors=Anchors(page_id="page-onboarding", project_id="proj-apollo"))

        context = await loader.load(request, LoopMode.SPACES)

        assert context.primary_context.type == "page"

    async def test_unresolved_anchor_falls_back_to_unified(self, acme, loader):
        request = loop_request(anchors=Anchors(task_id="task-globex"))

        context = await loader.load(request, LoopMode.SPACES)

        assert context.primary_context.type == "unified"
        assert context.primary_context.active_task is None
        assert "unified" in context.sources_loaded

    async def test_semantic_search_can_be_disabled(self, acme, loader):
        context = await loader.load(loop_request(use_semantic_search=False), LoopMode.SPACES)

        assert "semantic_search" not in context.sources_loaded

    async def test_org_mode(self, acme, loader):
        context = await loader.load(loop_request(mode="org"), LoopMode.ORG)

        assert context.primary_context.type == "org"
        assert [p.title for p in context.org_people] == ["CTO", "Platform Lead"]

    async def test_dashboard_mode(self, acme, loader):
        context = await loader.load(loop_request(mode="dashboard"), LoopMode.DASHBOARD)

        assert context.primary_context.type == "workspace"
        assert [c.type for c in context.related_context] == ["activity"]

    async def test_failed_and_slow_sources_are_skipped(self, acme, session_factory, item_store):
        loader = ContextLoader(FlakyEngine(session_factory, item_store), timeout=0.2)

        spaces = await loader.load(loop_request(), LoopMode.SPACES)
        org = await loader.load(loop_request(mode="org"), LoopMode.ORG)

        assert spaces.sources_failed == ["personal_docs"]
        assert spaces.primary_context.type == "workspace"
        assert spaces.personal_docs == []
        assert org.sources_failed == ["org_people"]
        assert org.primary_context.type == "org"


# ============================================================================
# Full Pipeline
# ============================================================================

class TestOrchestrator:
    """Query in, grounded answer out."""

    async def test_active_projects_end_to_end(self, acme, make_orchestrator):
        llm = FakeLLM(["You have two active projects: Apollo and Gemini."])
        orchestrator = make_orchestrator(llm=llm)

        response = await orchestrator.handle(loop_request())

        assert response.mode == LoopMode.SPACES
        assert response.workspace_id == WORKSPACE_ID
        assert response.user_id == USER_ID
        assert response.answer == "You have two active projects: Apollo and Gemini."
        assert response.metadata.model == "fake-model"
        assert response.metadata.token_usage == {"promptTokens": 120, "completionTokens": 30, "totalTokens": 150}

        prompt = llm.prompts[0]
        assert "Apollo" in prompt
        assert "Gemini" in prompt
        assert "Mercury" not in prompt
        assert "Globex" not in prompt
        assert "## Slack Integration Available" not in prompt
        assert llm.calls[0]["system"] == "You are Loopbrain, Loopwell's Virtual COO assistant."

    async def test_anchor_overrides_declared_mode(self, acme, make_orchestrator):
        llm = FakeLLM()
        orchestrator = make_orchestrator(llm=llm)

        response = await orchestrator.handle(loop_request(
            query="which epics exist in this project?",
            mode="dashboard",
            anchors=Anchors(project_id="proj-apollo"),
        ))

        assert response.mode == LoopMode.SPACES
        assert response.context.primary_context.type == "project"
        assert "operating in Spaces mode" in llm.prompts[0]
        assert "EPICS IN THIS PROJECT (JSON)" in llm.prompts[0]
        assert [s.action for s in response.suggestions] == ["create_tasks_from_answer", "update_project_status"]

    async def test_other_workspace_sees_only_its_data(self, acme, make_orchestrator):
        llm = FakeLLM()
        orchestrator = make_orchestrator(llm=llm)

        response = await orchestrator.handle(loop_request(workspace_id=OTHER_WORKSPACE_ID))

        assert response.workspace_id == OTHER_WORKSPACE_ID
        assert "Globex Secret" in llm.prompts[0]
        assert "Apollo" not in llm.prompts[0]

    async def test_org_and_dashboard_modes(self, acme, make_orchestrator):
        llm = FakeLLM()
        orchestrator = make_orchestrator(llm=llm)

        org = await orchestrator.handle(loop_request(query="who works here?", mode="org"))
        dashboard = await orchestrator.handle(loop_request(query="how are we doing?", mode="dashboard"))

        assert org.mode == LoopMode.ORG
        assert "Platform Lead" in llm.prompts[0]
        assert dashboard.mode == LoopMode.DASHBOARD
        assert "## Recent Activity:" in llm.prompts[1]
        assert [s.action for s in dashboard.suggestions] == ["create_meeting_notes", "log_risks"]

    async def test_semantic_hits_are_reported(self, acme, context_engine, item_store, embedding_service, make_orchestrator):
        await context_engine.upsert_project_context("proj-apollo")
        item = await item_store.get("proj-apollo", "project", WORKSPACE_ID)
        await embedding_service.embed_context_item(WORKSPACE_ID, item.id)
        llm = FakeLLM()

        response = await make_orchestrator(llm=llm).handle(loop_request(query="Launch the new platform"))

        assert response.metadata.retrieved_count >= 1
        assert response.context.retrieved_items[0].context_id == "proj-apollo"
        assert "## Related Items:" in llm.prompts[0]

    async def test_llm_failure_propagates(self, acme, make_orchestrator):
        orchestrator = make_orchestrator(llm=FakeLLM(fail=True))

        with pytest.raises(LLMError):
            await orchestrator.handle(loop_request())

    async def test_invalid_mode_is_rejected_before_work(self, acme, make_orchestrator):
        llm = FakeLLM()

        with pytest.raises(RequestValidationError):
            await make_orchestrator(llm=llm).handle(loop_request(mode="finance"))

        assert llm.calls == []


class TestPreActions:
    """Explicit send/read requests handled before the model."""

    async def test_explicit_send_short_circuits(self, acme, make_orchestrator):
        llm = FakeLLM()
        actions = FakeActionAdapter()

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Send a message to #general on Slack saying 'Standup moved to 10am'",
        ))

        assert actions.sent == [("#general", "Standup moved to 10am")]
        assert response.answer == '✅ Message sent to #general in Slack!\n\n"Standup moved to 10am"'
        assert response.metadata.model == SEND_MODEL
        assert response.context.sources_loaded == []
        assert llm.calls == []
        assert response.suggestions[-1].action == "send_slack"

    async def test_send_with_question_keeps_going(self, acme, make_orchestrator):
        llm = FakeLLM(["Apollo and Gemini are active."])
        actions = FakeActionAdapter()

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Post to #general on slack saying 'Deploy done'. Which projects are active?",
        ))

        assert actions.sent == [("#general", "Deploy done")]
        assert response.answer.startswith('✅ Message sent to #general in Slack!\n\n"Deploy done"')
        assert response.answer.endswith("Apollo and Gemini are active.")
        assert len(llm.calls) == 1

    async def test_failed_send_falls_through_to_answer(self, acme, make_orchestrator):
        llm = FakeLLM(["Normal answer."])
        actions = FakeActionAdapter(send_result=ActionResult(ok=False, error="channel_not_found"))

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Send a message to #nowhere on Slack saying 'hello there'",
        ))

        assert response.answer == "Normal answer."
        assert len(llm.calls) == 1

    async def test_action_flag_sends_whole_query(self, acme, make_orchestrator):
        actions = FakeActionAdapter()

        response = await make_orchestrator(actions=actions).handle(loop_request(
            query="Release 2.1 is live", action_flag=True, action_channel="releases",
        ))

        assert actions.sent == [("#releases", "Release 2.1 is live")]
        assert response.answer == "✅ Message sent to #releases successfully!"

    async def test_action_flag_defaults_channel(self, acme, make_orchestrator):
        actions = FakeActionAdapter()

        await make_orchestrator(actions=actions).handle(loop_request(query="Heads up team", action_flag=True))

        assert actions.sent == [("#general", "Heads up team")]

    async def test_read_request_is_summarized(self, acme, make_orchestrator):
        llm = FakeLLM(["The team discussed the deploy."])
        actions = FakeActionAdapter(read_result=ReadResult(
            ok=True, messages=channel_messages("Deploy at 5", "Rollback ready"),
        ))

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Read messages from #eng",
        ))

        assert actions.reads == [("#eng", 50)]
        assert response.answer.startswith("📬 **Summary of recent messages from #eng** (2 messages):")
        assert response.metadata.model == READ_MODEL
        assert response.metadata.retrieved_count == 2
        assert len(llm.calls) == 1

    async def test_empty_channel_read(self, acme, make_orchestrator):
        llm = FakeLLM()

        response = await make_orchestrator(llm=llm, actions=FakeActionAdapter()).handle(loop_request(
            query="Read messages from #quiet",
        ))

        assert response.answer == "📭 No messages found in #quiet."
        assert llm.calls == []

    async def test_failed_read_continues(self, acme, make_orchestrator):
        llm = FakeLLM(["Fallback answer."])
        actions = FakeActionAdapter(read_error=RuntimeError("slack down"))

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Read messages from #eng",
        ))

        assert response.answer == "Fallback answer."

    async def test_unavailable_integration_never_acts(self, acme, make_orchestrator):
        actions = FakeActionAdapter(available=False)

        response = await make_orchestrator(actions=actions).handle(loop_request(
            query="Send a message to #general on Slack saying 'Standup moved to 10am'",
        ))

        assert actions.sent == []
        assert all(s.action != "send_slack" for s in response.suggestions)


class TestEmbeddedCommands:
    """Commands in the model's answer are executed and replaced."""

    async def test_send_command_replaced_with_confirmation(self, acme, make_orchestrator):
        llm = FakeLLM(["Done. [SEND:channel=general:text=Hello team]"])
        actions = FakeActionAdapter()

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Greet the team via slack",
        ))

        assert actions.sent == [("#general", "Hello team")]
        assert "[SEND" not in response.answer
        assert "✅ Message sent to #general" in response.answer
        assert "## Slack Integration Available" in llm.prompts[0]

    async def test_failed_command_becomes_note(self, acme, make_orchestrator):
        llm = FakeLLM(["Done. [SEND:channel=general:text=Hello team]"])
        actions = FakeActionAdapter(send_result=ActionResult(ok=False, error="not_authed"))

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Greet the team via slack",
        ))

        assert "[SEND" not in response.answer
        assert "_Note: I couldn't send to #general." in response.answer

    async def test_commands_left_alone_when_unavailable(self, acme, make_orchestrator):
        llm = FakeLLM(["Done. [SEND:channel=general:text=Hello team]"])
        actions = FakeActionAdapter(available=False)

        response = await make_orchestrator(llm=llm, actions=actions).handle(loop_request(
            query="Greet the team via slack",
        ))

        assert actions.sent == []
        assert response.answer == "Done. [SEND:channel=general:text=Hello team]"
