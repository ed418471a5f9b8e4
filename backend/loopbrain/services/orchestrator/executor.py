"""
Command Executor - runs parsed action commands against the action adapter
and substitutes each token with a confirmation or an inline note.

Commands run strictly in source order. A failing command never fails the
whole answer.
"""
from dataclasses import dataclass
from typing import List, Optional

from loopbrain.core.config import settings
from loopbrain.core.logging import get_logger
from loopbrain.prompts import LOOPBRAIN_SYSTEM_PROMPT, generate_channel_summary_prompt
from loopbrain.services.adapter.provider import AIProviderAdapter
from loopbrain.services.adapter.slack import ActionAdapter, ChannelMessage
from loopbrain.services.orchestrator.commands import ActionCommand, CommandVerb

logger = get_logger(__name__)


SUMMARY_MAX_TOKENS = 500


def _plural(count: int) -> str:
    return "message" if count == 1 else "messages"


async def summarize_channel(
    llm: AIProviderAdapter,
    channel: str,
    messages: List[ChannelMessage]
) -> str:
    """
    Summarize fetched channel messages with a small model call.
    Falls back to a plain count when summarization fails.
    """
    count = len(messages)
    try:
        response = await llm.generate(
            generate_channel_summary_prompt(channel, messages),
            system_prompt=LOOPBRAIN_SYSTEM_PROMPT,
            temperature=settings.LOOPBRAIN_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
        )
        summary = response.content.strip()
    except Exception as e:
        logger.error("Error generating channel summary", channel=channel, error=str(e))
        return f"📬 Found {count} {_plural(count)} in {channel}."

    return f"📬 **Summary of recent messages from {channel}** ({count} {_plural(count)}):\n\n{summary}"


@dataclass
class ExecutionResult:
    text: str
    executed: int = 0
    failed: int = 0


class CommandExecutor:
    """Executes SEND/READ commands and rewrites the answer text."""

    def __init__(self, actions: ActionAdapter, llm: AIProviderAdapter):
        self.actions = actions
        self.llm = llm

    async def execute(
        self,
        workspace_id: str,
        text: str,
        commands: List[ActionCommand]
    ) -> ExecutionResult:
        if not commands:
            return ExecutionResult(text=text)

        parts: List[str] = []
        cursor = 0
        failed = 0

        for command in commands:
            parts.append(text[cursor:command.start])
            cursor = command.end

            if command.verb == CommandVerb.SEND:
                replacement, failure = await self._send(workspace_id, command)
            else:
                replacement, failure = await self._read(workspace_id, command)

            parts.append(replacement)
            if failure:
                failed += 1

        parts.append(text[cursor:])
        result = "".join(parts)

        logger.info(
            "Action commands executed",
            workspace_id=workspace_id,
            executed=len(commands),
            failed=failed,
        )
        return ExecutionResult(text=result, executed=len(commands), failed=failed)

    async def _send(self, workspace_id: str, command: ActionCommand) -> tuple[str, Optional[str]]:
        channel = command.channel
        try:
            result = await self.actions.send(workspace_id, channel, command.text or "")
        except Exception as e:
            logger.error("Error executing send action", workspace_id=workspace_id, channel=channel, error=str(e))
            note = f"I had trouble sending to {channel}. Your Slack configuration may need attention."
            return f"\n_Note: {note}_", note

        if result.ok:
            logger.info("Send action succeeded", workspace_id=workspace_id, channel=channel, ts=result.ts)
            return f"\n✅ Message sent to {channel}", None

        error = result.error or ""
        logger.error("Send action failed", workspace_id=workspace_id, channel=channel, error=error)
        if "channel_not_found" in error:
            note = f"I couldn't send to {channel}. The channel may not exist or I may not have access to it."
        elif "not_authed" in error or "invalid_auth" in error:
            note = f"I couldn't send to {channel}. Your Slack integration may need to be reconnected."
        else:
            note = f"I had trouble sending to {channel}. Slack configuration may be incomplete."
        return f"\n_Note: {note}_", note

    async def _read(self, workspace_id: str, command: ActionCommand) -> tuple[str, Optional[str]]:
        channel = command.channel
        try:
            result = await self.actions.read(workspace_id, channel, command.limit)
        except Exception as e:
            logger.error("Error executing read action", workspace_id=workspace_id, channel=channel, error=str(e))
            note = f"I had trouble reading messages from {channel}. Your Slack configuration may need attention."
            return f"\n_Note: {note}_", note

        if not result.ok:
            error = result.error or ""
            logger.error("Read action failed", workspace_id=workspace_id, channel=channel, error=error)
            if "channel_not_found" in error:
                note = f"I couldn't access {channel}. The channel may not exist or I may not have access to it."
            else:
                note = f"I had trouble reading messages from {channel}. Your Slack configuration may need attention."
            return f"\n_Note: {note}_", note

        logger.info(
            "Read action succeeded",
            workspace_id=workspace_id,
            channel=channel,
            message_count=len(result.messages),
        )
        if not result.messages:
            return f"📭 No messages found in {channel}.", None

        return await summarize_channel(self.llm, channel, result.messages), None
