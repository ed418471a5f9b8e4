"""
Outbound provider adapters: language models and messaging actions.
"""
from loopbrain.services.adapter.provider import (
    ChatMessage,
    AIResponse,
    AIProviderAdapter,
    OpenAICompatibleAdapter,
    ClaudeAdapter,
    get_ai_adapter,
)
from loopbrain.services.adapter.slack import (
    ActionAdapter,
    ActionResult,
    ChannelMessage,
    ReadResult,
    SlackActionAdapter,
    get_action_adapter,
    normalize_channel,
)

__all__ = [
    "ChatMessage",
    "AIResponse",
    "AIProviderAdapter",
    "OpenAICompatibleAdapter",
    "ClaudeAdapter",
    "get_ai_adapter",
    "ActionAdapter",
    "ActionResult",
    "ChannelMessage",
    "ReadResult",
    "SlackActionAdapter",
    "get_action_adapter",
    "normalize_channel",
]
