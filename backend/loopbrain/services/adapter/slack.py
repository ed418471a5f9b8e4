"""
Action adapters - external messaging actions Loopbrain can perform.

Slack implementation over the Web API. Available when SLACK_BOT_TOKEN
is configured.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from loopbrain.core.config import settings
from loopbrain.core.exceptions import ProviderError
from loopbrain.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChannelMessage:
    user: str
    text: str
    ts: str


@dataclass
class ActionResult:
    """Outcome of a send."""
    ok: bool
    ts: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ReadResult:
    """Outcome of a channel read."""
    ok: bool
    messages: List[ChannelMessage] = field(default_factory=list)
    error: Optional[str] = None


def normalize_channel(channel: str) -> str:
    """Ensure a leading '#'."""
    channel = channel.strip()
    return channel if channel.startswith("#") else f"#{channel}"


class ActionAdapter(ABC):
    """Messaging integration used by pre-actions and embedded commands."""
    
    name: str = "unknown"
    
    @abstractmethod
    async def is_available(self, workspace_id: str) -> bool:
        pass
    
    @abstractmethod
    async def send(self, workspace_id: str, channel: str, text: str) -> ActionResult:
        pass
    
    @abstractmethod
    async def read(self, workspace_id: str, channel: str, limit: int = 50) -> ReadResult:
        pass


class SlackActionAdapter(ActionAdapter):
    """Slack Web API: chat.postMessage, conversations.list, conversations.history."""
    
    name = "slack"
    
    def __init__(
        self,
        token: Optional[str],
        base_url: Optional[str] = None,
        timeout: float = 30.0
    ):
        self.token = token
        self.base_url = (base_url or settings.SLACK_BASE_URL).rstrip("/")
        self.timeout = timeout
    
    async def is_available(self, workspace_id: str) -> bool:
        return bool(self.token)
    
    async def _call(self, method: str, http_method: str = "POST", **payload) -> dict:
        """Invoke a Web API method; returns the decoded body."""
        headers = {"Authorization": f"Bearer {self.token}"}
        url = f"{self.base_url}/{method}"
        
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                if http_method == "GET":
                    response = await client.get(url, headers=headers, params=payload)
                else:
                    response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException:
            logger.error("Slack request timed out", method=method)
            raise ProviderError("Slack request timed out")
        except httpx.HTTPError as e:
            logger.error("Slack request failed", method=method, error=str(e))
            raise ProviderError("Slack request failed") from e
        
        if response.status_code != 200:
            logger.error("Slack API HTTP error", method=method, status_code=response.status_code)
            return {"ok": False, "error": f"http_{response.status_code}"}
        
        return response.json()
    
    async def _resolve_channel_id(self, channel: str) -> Optional[str]:
        name = channel.lstrip("#").strip().lower()
        data = await self._call(
            "conversations.list",
            http_method="GET",
            types="public_channel,private_channel",
            exclude_archived="true",
            limit=1000,
        )
        if not data.get("ok"):
            logger.warning("Failed to list Slack channels", error=data.get("error"))
            return None
        
        for c in data.get("channels", []):
            if c.get("name", "").lower() == name:
                return c.get("id")
        return None
    
    async def send(self, workspace_id: str, channel: str, text: str) -> ActionResult:
        if not self.token:
            return ActionResult(ok=False, error="not_authed")
        
        channel = normalize_channel(channel)
        data = await self._call("chat.postMessage", channel=channel, text=text)
        
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.warning("Slack send failed", workspace_id=workspace_id, channel=channel, error=error)
            return ActionResult(ok=False, error=error)
        
        logger.info("Loopbrain sent Slack message", workspace_id=workspace_id, channel=channel, ts=data.get("ts"))
        return ActionResult(ok=True, ts=data.get("ts"))
    
    async def read(self, workspace_id: str, channel: str, limit: int = 50) -> ReadResult:
        if not self.token:
            return ReadResult(ok=False, error="not_authed")
        
        channel = normalize_channel(channel)
        channel_id = await self._resolve_channel_id(channel)
        if channel_id is None:
            return ReadResult(ok=False, error="channel_not_found")
        
        data = await self._call("conversations.history", http_method="GET", channel=channel_id, limit=limit)
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.warning("Slack read failed", workspace_id=workspace_id, channel=channel, error=error)
            return ReadResult(ok=False, error=error)
        
        messages = [
            ChannelMessage(
                user=m.get("user") or m.get("username") or "unknown",
                text=m.get("text", ""),
                ts=m.get("ts", ""),
            )
            for m in data.get("messages", [])
        ]
        
        logger.info(
            "Loopbrain read Slack channel messages",
            workspace_id=workspace_id,
            channel=channel,
            message_count=len(messages),
        )
        return ReadResult(ok=True, messages=messages)


def get_action_adapter() -> SlackActionAdapter:
    """Factory for the configured action adapter."""
    return SlackActionAdapter(token=settings.SLACK_BOT_TOKEN)
