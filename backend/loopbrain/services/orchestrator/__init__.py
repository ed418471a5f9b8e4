"""
Loopbrain orchestrator: pre-actions, context assembly, prompting and command execution.
"""
from loopbrain.services.orchestrator.state import (
    Anchors,
    ContextSummary,
    LoopMode,
    LoopRequest,
    LoopResponse,
    RetrievedItem,
    Suggestion,
)
from loopbrain.services.orchestrator.commands import ActionCommand, CommandParser, CommandVerb
from loopbrain.services.orchestrator.executor import CommandExecutor, ExecutionResult
from loopbrain.services.orchestrator.loaders import ContextLoader
from loopbrain.services.orchestrator.prompt_builder import PromptBuilder
from loopbrain.services.orchestrator.orchestrator import LoopbrainOrchestrator

__all__ = [
    "Anchors",
    "ContextSummary",
    "LoopMode",
    "LoopRequest",
    "LoopResponse",
    "RetrievedItem",
    "Suggestion",
    "ActionCommand",
    "CommandParser",
    "CommandVerb",
    "CommandExecutor",
    "ExecutionResult",
    "ContextLoader",
    "PromptBuilder",
    "LoopbrainOrchestrator",
]
