"""
Structured logging configuration.

Log lines carry identifiers (workspace, user, trace, context item) and
sizes. Prompt text, message bodies and keys are only ever logged when
AI_DEBUG_LOG is switched on, and then truncated.
"""
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Iterable, List, Optional

import structlog
from structlog.types import Processor

from loopbrain.core.config import settings


def setup_logging() -> None:
    """Configure structlog and route stdlib logging through the same renderer."""

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def bind_request_context(**ids: Any) -> Generator[None, None, None]:
    """Attach tenant/request identifiers to every log line emitted inside the block."""
    tokens = structlog.contextvars.bind_contextvars(**{k: v for k, v in ids.items() if v is not None})
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def _clip(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more chars]"


# ========================================
# Provider Request Logging
# ========================================

def log_ai_request(
    logger: structlog.stdlib.BoundLogger,
    provider: str,
    model: str,
    prompt_type: str,
    **extra: Any
) -> None:
    """Outbound provider request. Sizes only, never the text or the key."""
    logger.info("AI request", provider=provider, model=model, prompt_type=prompt_type, **extra)


def log_ai_response(
    logger: structlog.stdlib.BoundLogger,
    provider: str,
    model: str,
    prompt_tokens: Optional[int] = None,
    completion_tokens: Optional[int] = None,
    total_tokens: Optional[int] = None,
    duration_ms: Optional[float] = None,
    **extra: Any
) -> None:
    """Provider response: usage and timing."""
    logger.info(
        "AI response",
        provider=provider,
        model=model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
        **extra
    )


def log_ai_error(
    logger: structlog.stdlib.BoundLogger,
    provider: str,
    model: str,
    error_type: str,
    error_message: str,
    **extra: Any
) -> None:
    logger.error(
        "AI error",
        provider=provider,
        model=model,
        error_type=error_type,
        error_message=error_message,
        **extra
    )


# ========================================
# Provider Call Tracking
# ========================================

class ProviderCall:
    """
    One chat or embeddings call: roles, sizes, usage and outcome.

    Summarized in a single log line when the call ends.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, debug: bool, clip: int,
                 provider: str, model: str, endpoint: str):
        self.logger = logger
        self.debug = debug
        self.clip = clip
        self.call_id = uuid.uuid4().hex[:8]
        self.provider = provider
        self.model = model
        self.endpoint = endpoint

        self.roles: List[str] = []
        self.request_chars = 0
        self.temperature: Optional[float] = None
        self.max_tokens: Optional[int] = None
        self.response_chars = 0
        self.usage: Dict[str, Optional[int]] = {}
        self.error: Optional[tuple[str, str]] = None
        self._started = time.perf_counter()

    def record_request(self, messages: Iterable[Any], temperature: Optional[float] = None,
                       max_tokens: Optional[int] = None) -> None:
        """``messages`` are anything with ``role`` and ``content``."""
        self.temperature = temperature
        self.max_tokens = max_tokens
        for m in messages:
            self.roles.append(m.role)
            self.request_chars += len(m.content)
            if self.debug:
                self.logger.debug(
                    "AI request message",
                    call_id=self.call_id,
                    role=m.role,
                    content=_clip(m.content, self.clip),
                )

    def record_response(self, content: str, prompt_tokens: Optional[int] = None,
                        completion_tokens: Optional[int] = None,
                        total_tokens: Optional[int] = None) -> None:
        self.response_chars = len(content)
        self.usage = {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": total_tokens,
        }
        if self.debug:
            self.logger.debug("AI response content", call_id=self.call_id, content=_clip(content, self.clip))

    def fail(self, kind: str, message: str) -> None:
        self.error = (kind, message)

    def close(self) -> None:
        duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        fields = dict(
            call_id=self.call_id,
            provider=self.provider,
            model=self.model,
            endpoint=self.endpoint,
            duration_ms=duration_ms,
        )
        if self.error:
            self.logger.error("AI call failed", error_type=self.error[0], error_message=self.error[1], **fields)
            return
        self.logger.info(
            "AI call completed",
            message_roles=self.roles,
            request_chars=self.request_chars,
            response_chars=self.response_chars,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **self.usage,
            **fields,
        )


class AIDebugLogger:
    """
    Wraps provider calls in a ``ProviderCall``.

    Usage:
        with debug_logger.track_call("openai", "gpt-4o-mini") as call:
            call.record_request(messages, temperature=0.7, max_tokens=2000)
            ...
            call.record_response(content, prompt_tokens, completion_tokens, total_tokens)
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger

    @contextmanager
    def track_call(
        self,
        provider: str,
        model: str,
        endpoint: str = "chat/completions"
    ) -> Generator[ProviderCall, None, None]:
        call = ProviderCall(
            self.logger,
            debug=settings.AI_DEBUG_LOG,
            clip=settings.AI_DEBUG_LOG_MAX_LENGTH,
            provider=provider,
            model=model,
            endpoint=endpoint,
        )
        try:
            yield call
        except Exception as e:
            if call.error is None:
                call.fail(type(e).__name__, str(e))
            raise
        finally:
            call.close()


# ========================================
# Pipeline Decision Logging
# ========================================

class DecisionType:
    """Orchestrator steps that record a decision."""
    REQUEST_RECEIVED = "request_received"
    ACTION_DETECTED = "action_detected"
    CONTEXT_LOADED = "context_loaded"
    PROMPT_BUILT = "prompt_built"
    MODEL_CALLED = "model_called"
    COMMANDS_EXECUTED = "commands_executed"
    RESPONSE_GENERATED = "response_generated"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class Decision:
    decision_type: str
    node: str
    decision: str
    reasoning: str
    elapsed_ms: float
    details: Dict[str, Any] = field(default_factory=dict)


class PipelineTrace:
    """
    Decisions made while answering one request.

    Always emits a summary line on close; the per-step lines and the
    flow line only when AGENT_DECISION_LOG (or AI_DEBUG_LOG) is on.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, verbose: bool,
                 workspace_id: str, user_id: Optional[str], mode: str):
        self.logger = logger
        self.verbose = verbose
        self.trace_id = uuid.uuid4().hex[:12]
        self.workspace_id = workspace_id
        self.user_id = user_id
        self.mode = mode
        self.decisions: List[Decision] = []

        self.short_circuited = False
        self.sources_loaded: List[str] = []
        self.sources_failed: List[str] = []
        self.commands_run = 0
        self.commands_failed = 0
        self.error: Optional[str] = None

        self._started = time.perf_counter()
        self._last = self._started

    def log_decision(self, decision_type: str, node: str, decision: str, reasoning: str, **details: Any) -> None:
        now = time.perf_counter()
        elapsed = round((now - self._last) * 1000, 2)
        self._last = now
        self.decisions.append(Decision(decision_type, node, decision, reasoning, elapsed, details))

        if self.verbose:
            self.logger.debug(
                "Pipeline decision",
                trace_id=self.trace_id,
                decision_type=decision_type,
                node=node,
                decision=decision,
                reasoning=reasoning,
                elapsed_ms=elapsed,
                **details,
            )

    def log_action_detection(self, action: Optional[str], handled: bool, reasoning: str) -> None:
        self.short_circuited = handled
        outcome = "none" if not action else f"{action} ({'handled' if handled else 'continue'})"
        self.log_decision(DecisionType.ACTION_DETECTED, "detect_action", decision=outcome, reasoning=reasoning)

    def log_context_loaded(self, loaded: List[str], failed: List[str]) -> None:
        self.sources_loaded = list(loaded)
        self.sources_failed = list(failed)
        self.log_decision(
            DecisionType.CONTEXT_LOADED,
            "load_context",
            decision=f"{len(loaded)} sources",
            reasoning=f"failed: {', '.join(failed)}" if failed else "all sources loaded",
        )

    def log_commands_executed(self, count: int, failures: int) -> None:
        self.commands_run = count
        self.commands_failed = failures
        self.log_decision(
            DecisionType.COMMANDS_EXECUTED,
            "execute_commands",
            decision=f"{count} commands",
            reasoning=f"{failures} failed" if failures else "no failures",
        )

    def log_error(self, error: str) -> None:
        self.error = error
        self.log_decision(DecisionType.ERROR_OCCURRED, "error", decision="failed", reasoning=error)

    def close(self) -> None:
        self.logger.info(
            "Pipeline trace completed",
            trace_id=self.trace_id,
            workspace_id=self.workspace_id,
            user_id=self.user_id,
            mode=self.mode,
            duration_ms=round((time.perf_counter() - self._started) * 1000, 2),
            success=self.error is None,
            error=self.error,
            decision_count=len(self.decisions),
            short_circuited=self.short_circuited,
            sources_loaded=self.sources_loaded,
            sources_failed=self.sources_failed,
            commands_run=self.commands_run,
            commands_failed=self.commands_failed,
        )
        if self.verbose and self.decisions:
            self.logger.debug(
                "Pipeline decision flow",
                trace_id=self.trace_id,
                flow=" -> ".join(f"{d.node}({d.decision})" for d in self.decisions),
            )


class AgentDecisionLogger:
    """
    Opens a ``PipelineTrace`` per request.

    Usage:
        with decision_logger.trace(workspace_id, user_id, mode) as trace:
            trace.log_decision(DecisionType.ACTION_DETECTED, "detect_action",
                               decision="none", reasoning="No channel token in query")
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger

    @contextmanager
    def trace(
        self,
        workspace_id: str,
        user_id: Optional[str],
        mode: str
    ) -> Generator[PipelineTrace, None, None]:
        trace = PipelineTrace(
            self.logger,
            verbose=settings.AGENT_DECISION_LOG or settings.AI_DEBUG_LOG,
            workspace_id=workspace_id,
            user_id=user_id,
            mode=mode,
        )
        with bind_request_context(workspace_id=workspace_id, user_id=user_id, trace_id=trace.trace_id):
            try:
                yield trace
            except Exception as e:
                trace.log_error(str(e))
                raise
            finally:
                trace.close()
