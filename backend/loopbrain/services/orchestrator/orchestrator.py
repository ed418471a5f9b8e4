"""
LoopbrainOrchestrator - one assistant turn from query to answer.

Graph structure:
detect_action -> (finalize) | load_context -> build_prompt -> call_model -> execute_commands -> finalize -> END

An explicit send/read request can short-circuit straight to finalize
without loading context or calling the model.
"""
from typing import Any, Optional

from langgraph.graph import StateGraph, END

from loopbrain.core.config import settings
from loopbrain.core.exceptions import LLMError
from loopbrain.core.logging import get_logger, AgentDecisionLogger, DecisionType
from loopbrain.prompts import LOOPBRAIN_SYSTEM_PROMPT
from loopbrain.services.adapter.provider import AIProviderAdapter
from loopbrain.services.adapter.slack import ActionAdapter, normalize_channel
from loopbrain.services.orchestrator.commands import CommandParser
from loopbrain.services.orchestrator.executor import CommandExecutor, summarize_channel
from loopbrain.services.orchestrator.intent import (
    MIN_MESSAGE_LENGTH,
    detect_read_intent,
    detect_send_intent,
    has_question,
)
from loopbrain.services.orchestrator.loaders import ContextLoader
from loopbrain.services.orchestrator.prompt_builder import PromptBuilder
from loopbrain.services.orchestrator.state import (
    ContextSummary,
    LoopbrainState,
    LoopMode,
    LoopRequest,
    LoopResponse,
    ResponseMetadata,
)
from loopbrain.services.orchestrator.suggestions import build_suggestions

logger = get_logger(__name__)
decision_logger = AgentDecisionLogger(logger)


SEND_MODEL = "loopbrain-slack"
READ_MODEL = "loopbrain-slack-read"


class LoopbrainOrchestrator:
    """
    Runs the Loopbrain pipeline.

    Coordinates:
    - Pre-action detection and execution
    - Mode-specific context loading
    - Prompt construction and the model call
    - Embedded command execution
    """

    def __init__(
        self,
        loader: ContextLoader,
        llm: AIProviderAdapter,
        actions: ActionAdapter,
        prompt_builder: Optional[PromptBuilder] = None,
        parser: Optional[CommandParser] = None,
    ):
        self.loader = loader
        self.llm = llm
        self.actions = actions
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.parser = parser or CommandParser()
        self.executor = CommandExecutor(actions, llm)

        self._graph = self._build_graph()

    def _build_graph(self) -> Any:
        graph = StateGraph(LoopbrainState)

        graph.add_node("detect_action", self._detect_action_node)
        graph.add_node("load_context", self._load_context_node)
        graph.add_node("build_prompt", self._build_prompt_node)
        graph.add_node("call_model", self._call_model_node)
        graph.add_node("execute_commands", self._execute_commands_node)
        graph.add_node("finalize", self._finalize_node)

        graph.set_entry_point("detect_action")

        graph.add_conditional_edges(
            "detect_action",
            self._after_detection,
            {
                "short_circuit": "finalize",
                "continue": "load_context",
            }
        )

        graph.add_edge("load_context", "build_prompt")
        graph.add_edge("build_prompt", "call_model")
        graph.add_edge("call_model", "execute_commands")
        graph.add_edge("execute_commands", "finalize")
        graph.add_edge("finalize", END)

        return graph.compile()

    # ========================================
    # Graph Nodes
    # ========================================

    async def _detect_action_node(self, state: LoopbrainState) -> LoopbrainState:
        """Handle explicit send/read requests before any context work."""
        request = state["request"]
        trace = state.get("trace")
        workspace_id = request.workspace_id

        try:
            available = await self.actions.is_available(workspace_id)
        except Exception as e:
            logger.warning("Action availability check failed", workspace_id=workspace_id, error=str(e))
            available = False
        state["action_available"] = available

        if not available:
            if trace:
                trace.log_action_detection(None, False, "Action integration unavailable")
            return state

        # Explicit flag: send the whole query to the requested channel
        if request.action_flag:
            channel = normalize_channel(request.action_channel or settings.ACTION_DEFAULT_CHANNEL)
            message = request.query.strip()
            if len(message) >= MIN_MESSAGE_LENGTH and await self._try_send(workspace_id, channel, message):
                self._short_circuit(state, f"✅ Message sent to {channel} successfully!", SEND_MODEL, 0)
                if trace:
                    trace.log_action_detection("send", True, "Action flag set")
                return state
        else:
            intent = detect_send_intent(request.query)
            if intent and await self._try_send(workspace_id, intent.channel, intent.message):
                confirmation = f'✅ Message sent to {intent.channel} in Slack!\n\n"{intent.message}"'
                if not has_question(request.query):
                    self._short_circuit(state, confirmation, SEND_MODEL, 0)
                    if trace:
                        trace.log_action_detection("send", True, "Explicit send request")
                    return state
                # Sent, but the user also asked something: keep going and answer it
                state["pre_action_prefix"] = confirmation
                if trace:
                    trace.log_action_detection("send", False, "Sent; query also contains a question")

        read_intent = detect_read_intent(request.query)
        if read_intent:
            try:
                result = await self.actions.read(workspace_id, read_intent.channel, read_intent.limit)
            except Exception as e:
                logger.error("Error in read pre-action", workspace_id=workspace_id, error=str(e))
                result = None

            if result is not None and result.ok:
                count = len(result.messages)
                if count == 0:
                    answer = f"📭 No messages found in {read_intent.channel}."
                else:
                    answer = await summarize_channel(self.llm, read_intent.channel, result.messages)
                self._short_circuit(state, answer, READ_MODEL, count)
                if trace:
                    trace.log_action_detection("read", True, f"Read {count} messages")
                return state

            logger.warning(
                "Read pre-action failed, continuing with full answer",
                workspace_id=workspace_id,
                channel=read_intent.channel,
                error=result.error if result is not None else "exception",
            )

        if trace and not state.get("pre_action_prefix"):
            trace.log_action_detection(None, False, "No explicit action request")
        return state

    async def _load_context_node(self, state: LoopbrainState) -> LoopbrainState:
        trace = state.get("trace")
        context = await self.loader.load(state["request"], state["mode"])
        state["context"] = context

        if trace:
            trace.log_context_loaded(context.sources_loaded, context.sources_failed)

        logger.debug(
            "Context loaded",
            workspace_id=state["request"].workspace_id,
            has_primary=context.primary_context is not None,
            retrieved=len(context.retrieved_items),
            structured=len(context.structured_context),
        )
        return state

    async def _build_prompt_node(self, state: LoopbrainState) -> LoopbrainState:
        trace = state.get("trace")
        request = state["request"]
        prompt = self.prompt_builder.build(
            request,
            state["mode"],
            state["context"],
            action_available=state.get("action_available", False),
        )
        state["prompt"] = prompt

        if trace:
            trace.log_decision(
                DecisionType.PROMPT_BUILT,
                "build_prompt",
                decision=f"Prompt of {len(prompt)} chars",
                reasoning="Actions disclosed" if self.prompt_builder.disclose_actions(
                    request, state.get("action_available", False)
                ) else "Actions not disclosed",
            )
        return state

    async def _call_model_node(self, state: LoopbrainState) -> LoopbrainState:
        """Single completion; a failure here fails the whole request."""
        trace = state.get("trace")
        try:
            response = await self.llm.generate(
                state["prompt"],
                system_prompt=LOOPBRAIN_SYSTEM_PROMPT,
                temperature=settings.LOOPBRAIN_TEMPERATURE,
                max_tokens=settings.LOOPBRAIN_MAX_TOKENS,
            )
        except Exception as e:
            logger.error(
                "LLM call failed in Loopbrain orchestrator",
                workspace_id=state["request"].workspace_id,
                error=str(e),
            )
            raise LLMError(f"LLM call failed: {e}") from e

        state["raw_answer"] = response.content
        state["model"] = response.model
        state["token_usage"] = response.usage

        if trace:
            trace.log_decision(
                DecisionType.MODEL_CALLED,
                "call_model",
                decision=response.model,
                reasoning=f"{len(response.content)} chars returned",
                total_tokens=response.total_tokens,
            )
        return state

    async def _execute_commands_node(self, state: LoopbrainState) -> LoopbrainState:
        trace = state.get("trace")
        raw = state.get("raw_answer", "")

        if not state.get("action_available"):
            state["answer"] = raw
            return state

        commands = self.parser.parse(raw)
        result = await self.executor.execute(state["request"].workspace_id, raw, commands)
        state["answer"] = result.text
        state["commands_run"] = result.executed
        state["commands_failed"] = result.failed

        if trace and commands:
            trace.log_commands_executed(result.executed, result.failed)
        return state

    async def _finalize_node(self, state: LoopbrainState) -> LoopbrainState:
        trace = state.get("trace")

        if state.get("short_circuit"):
            state["answer"] = state.get("pre_action_answer", "")
        elif state.get("pre_action_prefix"):
            state["answer"] = f"{state['pre_action_prefix']}\n\n{state.get('answer', '')}"

        if trace:
            trace.log_decision(
                DecisionType.RESPONSE_GENERATED,
                "finalize",
                decision="Short-circuit" if state.get("short_circuit") else "Full answer",
                reasoning=f"Answer of {len(state.get('answer', ''))} chars",
            )
        return state

    # ========================================
    # Conditional Edges
    # ========================================

    def _after_detection(self, state: LoopbrainState) -> str:
        return "short_circuit" if state.get("short_circuit") else "continue"

    # ========================================
    # Helpers
    # ========================================

    async def _try_send(self, workspace_id: str, channel: str, message: str) -> bool:
        try:
            result = await self.actions.send(workspace_id, channel, message)
        except Exception as e:
            logger.error("Error in send pre-action", workspace_id=workspace_id, channel=channel, error=str(e))
            return False

        if not result.ok:
            logger.error("Send pre-action failed", workspace_id=workspace_id, channel=channel, error=result.error)
            return False

        logger.info("Send pre-action succeeded", workspace_id=workspace_id, channel=channel, ts=result.ts)
        return True

    @staticmethod
    def _short_circuit(state: LoopbrainState, answer: str, model: str, count: int) -> None:
        state["short_circuit"] = True
        state["pre_action_answer"] = answer
        state["pre_action_model"] = model
        state["pre_action_count"] = count

    # ========================================
    # Public API
    # ========================================

    async def handle(self, request: LoopRequest) -> LoopResponse:
        """
        Answer one request.

        Raises:
            RequestValidationError: Unknown mode or empty query
            LLMError: The model call failed
        """
        mode = request.resolve_mode()

        logger.info(
            "Loopbrain request",
            workspace_id=request.workspace_id,
            user_id=request.user_id,
            declared_mode=request.mode,
            mode=mode.value,
            query_length=len(request.query),
        )

        with decision_logger.trace(request.workspace_id, request.user_id, mode.value) as trace:
            trace.log_decision(
                DecisionType.REQUEST_RECEIVED,
                "entry",
                decision=f"Processing {mode.value}",
                reasoning="Anchor forces spaces" if mode.value != request.mode else "Declared mode",
                query_length=len(request.query),
                use_semantic_search=request.use_semantic_search,
            )

            final_state = await self._graph.ainvoke(LoopbrainState(
                request=request,
                mode=mode,
                action_available=False,
                short_circuit=False,
                trace=trace,
            ))

        return self._state_to_response(mode, final_state)

    def _state_to_response(self, mode: LoopMode, state: LoopbrainState) -> LoopResponse:
        request = state["request"]
        suggestions = build_suggestions(mode, state.get("action_available", False))

        if state.get("short_circuit"):
            context = ContextSummary()
            metadata = ResponseMetadata(
                model=state.get("pre_action_model", SEND_MODEL),
                retrieved_count=state.get("pre_action_count", 0),
            )
        else:
            context = state["context"]
            metadata = ResponseMetadata(
                model=state.get("model", ""),
                token_usage=state.get("token_usage"),
                retrieved_count=len(context.retrieved_items),
            )

        return LoopResponse(
            mode=mode,
            workspace_id=request.workspace_id,
            user_id=request.user_id,
            query=request.query,
            context=context,
            answer=state.get("answer", ""),
            suggestions=suggestions,
            metadata=metadata,
        )
