"""
Language-model adapters.

One adapter instance is built at startup and shared. OpenAI-compatible
APIs (OpenAI, DeepSeek) and Claude are supported; any transport or API
failure surfaces as ``LLMError`` with a generic message.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from loopbrain.core.config import settings
from loopbrain.core.exceptions import LLMError
from loopbrain.core.logging import get_logger, AIDebugLogger, ProviderCall

logger = get_logger(__name__)
debug_logger = AIDebugLogger(logger)


PROVIDER_CONFIG = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o-mini",
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com",
        "default_model": "deepseek-chat",
    },
    "claude": {
        "base_url": "https://api.anthropic.com/v1",
        "default_model": "claude-3-5-sonnet-20240620",
    },
}

REQUEST_TIMEOUT = 120.0
ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class AIResponse:
    content: str
    model: str = ""
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    @property
    def usage(self) -> dict:
        """Token usage in the response-metadata shape."""
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


def _api_error_detail(response: httpx.Response) -> str:
    try:
        body = response.json() if response.content else {}
    except ValueError:
        return response.text[:200]
    error = body.get("error", {}) if isinstance(body, dict) else {}
    if isinstance(error, dict):
        return error.get("message") or str(response.status_code)
    return str(error)


class AIProviderAdapter(ABC):
    """A chat-completion provider."""

    def __init__(self, api_key: str, base_url: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.provider_name = "unknown"

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AIResponse:
        pass

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AIResponse:
        """Single-turn completion: optional system preamble plus one user message."""
        messages = []
        if system_prompt:
            messages.append(ChatMessage("system", system_prompt))
        messages.append(ChatMessage("user", prompt))
        return await self.chat_completion(messages, temperature=temperature, max_tokens=max_tokens)

    async def _post(self, path: str, headers: dict, body: dict, call: ProviderCall) -> dict[str, Any]:
        """POST to the provider and return the decoded body; failures become LLMError."""
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                response = await client.post(f"{self.base_url}/{path}", headers=headers, json=body)
        except httpx.TimeoutException:
            call.fail("timeout", f"No response within {REQUEST_TIMEOUT}s")
            raise LLMError("AI request timed out, please try again")
        except httpx.HTTPError as e:
            call.fail(type(e).__name__, str(e))
            raise LLMError("AI request failed") from e

        if response.status_code != 200:
            call.fail("api_error", f"HTTP {response.status_code}: {_api_error_detail(response)}")
            raise LLMError(f"AI API Error: {response.status_code}")

        return response.json()


class OpenAICompatibleAdapter(AIProviderAdapter):
    """``/chat/completions`` APIs: OpenAI, DeepSeek and look-alikes."""

    def __init__(self, api_key: str, base_url: str, model: str, provider_name: str = "openai"):
        super().__init__(api_key, base_url, model)
        self.provider_name = provider_name

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AIResponse:
        with debug_logger.track_call(self.provider_name, self.model, "chat/completions") as call:
            call.record_request(messages, temperature=temperature, max_tokens=max_tokens)

            data = await self._post(
                "chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                body={
                    "model": self.model,
                    "messages": [m.to_dict() for m in messages],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                call=call,
            )

            choices = data.get("choices") or [{}]
            usage = data.get("usage") or {}
            result = AIResponse(
                content=(choices[0].get("message") or {}).get("content") or "",
                model=data.get("model") or self.model,
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
            )
            call.record_response(result.content, result.prompt_tokens, result.completion_tokens, result.total_tokens)
            return result


class ClaudeAdapter(AIProviderAdapter):
    """Anthropic ``/messages`` API. System messages move to the top-level ``system`` field."""

    def __init__(self, api_key: str, model: str = PROVIDER_CONFIG["claude"]["default_model"],
                 base_url: Optional[str] = None):
        super().__init__(api_key, base_url or PROVIDER_CONFIG["claude"]["base_url"], model)
        self.provider_name = "claude"

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AIResponse:
        system = "\n".join(m.content for m in messages if m.role == "system")
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
        }
        if system:
            body["system"] = system

        with debug_logger.track_call(self.provider_name, self.model, "messages") as call:
            call.record_request(messages, temperature=temperature, max_tokens=max_tokens)

            data = await self._post(
                "messages",
                headers={"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
                body=body,
                call=call,
            )

            usage = data.get("usage") or {}
            prompt_tokens = usage.get("input_tokens")
            completion_tokens = usage.get("output_tokens")
            result = AIResponse(
                content="".join(b.get("text", "") for b in data.get("content", []) if b.get("type") == "text"),
                model=data.get("model") or self.model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=(prompt_tokens or 0) + (completion_tokens or 0),
            )
            call.record_response(result.content, result.prompt_tokens, result.completion_tokens, result.total_tokens)
            return result


def get_ai_adapter() -> AIProviderAdapter:
    """
    Build the adapter selected by AI_PROVIDER (openai, deepseek or claude).

    Raises:
        ValueError: No API key configured for the provider
    """
    provider = settings.AI_PROVIDER.lower()
    api_key = settings.get_api_key(provider)
    if not api_key:
        raise ValueError(
            f"API key not set for provider '{provider}'. "
            f"Set {provider.upper()}_API_KEY or AI_API_KEY."
        )

    config = PROVIDER_CONFIG.get(provider, PROVIDER_CONFIG["openai"])
    base_url = settings.AI_BASE_URL or config["base_url"]
    model = settings.LOOPBRAIN_MODEL or settings.AI_MODEL or config["default_model"]

    logger.info("Initializing AI adapter", provider=provider, model=model, base_url=base_url)

    if provider == "claude":
        return ClaudeAdapter(api_key=api_key, model=model, base_url=base_url)
    return OpenAICompatibleAdapter(api_key=api_key, base_url=base_url, model=model, provider_name=provider)
