"""
Orchestrator state and request/response models.

``LoopbrainState`` is the shared state passed between graph nodes;
``LoopRequest`` and ``LoopResponse`` are the public shapes of one turn.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from pydantic import Field, field_validator

from loopbrain.core.exceptions import RequestValidationError
from loopbrain.schemas.context import ContextObject
from loopbrain.schemas.structured import CamelModel, StructuredContextObject


MAX_CONTEXT_ITEMS = 50
DEFAULT_CONTEXT_ITEMS = 10


class LoopMode(str, Enum):
    """Where the assistant is being asked from."""
    SPACES = "spaces"
    ORG = "org"
    DASHBOARD = "dashboard"


class Anchors(CamelModel):
    project_id: Optional[str] = None
    page_id: Optional[str] = None
    task_id: Optional[str] = None
    epic_id: Optional[str] = None
    # Org anchors are accepted from the client but do not change the mode
    role_id: Optional[str] = None
    team_id: Optional[str] = None

    def any(self) -> bool:
        """True when a Spaces entity is anchored."""
        return bool(self.project_id or self.page_id or self.task_id or self.epic_id)


class LoopRequest(CamelModel):
    """One assistant turn. Tenant identity is set by the caller, never by the client body."""
    workspace_id: str
    user_id: str
    mode: str
    query: str
    anchors: Optional[Anchors] = None
    use_semantic_search: bool = True
    max_context_items: int = DEFAULT_CONTEXT_ITEMS
    action_flag: bool = False
    action_channel: Optional[str] = None

    @field_validator("max_context_items", mode="before")
    @classmethod
    def _clamp_items(cls, v: Any) -> int:
        if v is None:
            return DEFAULT_CONTEXT_ITEMS
        return max(1, min(int(v), MAX_CONTEXT_ITEMS))

    def resolve_mode(self) -> LoopMode:
        """
        Validate the declared mode and apply the anchor override.

        Raises:
            RequestValidationError: Unknown mode or empty query
        """
        if not self.query or not self.query.strip():
            raise RequestValidationError("Query is required")

        try:
            mode = LoopMode(self.mode)
        except ValueError:
            raise RequestValidationError(f"Invalid mode: {self.mode}")

        # An anchored entity always lives in Spaces
        if self.anchors and self.anchors.any():
            return LoopMode.SPACES
        return mode


class RetrievedItem(CamelModel):
    context_item_id: str
    context_id: str
    type: str
    title: str
    score: float


class ContextSummary(CamelModel):
    """What was actually loaded for this turn."""
    primary_context: Optional[ContextObject] = None
    related_context: List[ContextObject] = Field(default_factory=list)
    retrieved_items: List[RetrievedItem] = Field(default_factory=list)
    structured_context: List[StructuredContextObject] = Field(default_factory=list)
    project_epics: List[StructuredContextObject] = Field(default_factory=list)
    project_tasks: List[StructuredContextObject] = Field(default_factory=list)
    personal_docs: List[StructuredContextObject] = Field(default_factory=list)
    org_people: List[StructuredContextObject] = Field(default_factory=list)
    sources_loaded: List[str] = Field(default_factory=list)
    sources_failed: List[str] = Field(default_factory=list)


class Suggestion(CamelModel):
    label: str
    action: str
    payload: Optional[Dict[str, Any]] = None


class ResponseMetadata(CamelModel):
    model: str
    token_usage: Optional[Dict[str, Optional[int]]] = None
    retrieved_count: int = 0


class LoopResponse(CamelModel):
    mode: LoopMode
    workspace_id: str
    user_id: str
    query: str
    context: ContextSummary
    answer: str
    suggestions: List[Suggestion] = Field(default_factory=list)
    metadata: ResponseMetadata


class LoopbrainState(TypedDict, total=False):
    """
    Shared state for the orchestrator graph.

    Nodes read what earlier nodes produced and add their own outputs.
    """
    # Request
    request: LoopRequest
    mode: LoopMode
    action_available: bool

    # Pre-action
    short_circuit: bool
    pre_action_answer: str
    pre_action_model: str
    pre_action_count: int
    pre_action_prefix: str

    # Context and prompt
    context: ContextSummary
    prompt: str

    # Model output
    raw_answer: str
    model: str
    token_usage: Optional[Dict[str, Optional[int]]]

    # Final
    answer: str
    commands_run: int
    commands_failed: int

    # Decision trace for the current run
    trace: Any
