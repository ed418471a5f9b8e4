"""
Prompt Generators - Functions to construct prompts from fetched data.
"""
from datetime import datetime, timezone
from typing import List

from loopbrain.prompts.templates import (
    ACTION_CAPABILITY_PROMPT,
    CHANNEL_SUMMARY_PROMPT,
    INFORMATIONAL_EXAMPLES,
)
from loopbrain.services.adapter.slack import ChannelMessage


def _format_ts(ts: str) -> str:
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError):
        return ts


def generate_channel_summary_prompt(channel: str, messages: List[ChannelMessage]) -> str:
    """
    Generate the summarization prompt for messages read from a channel.
    One line per message: "[timestamp] user: text".
    """
    lines = "\n".join(f"[{_format_ts(m.ts)}] {m.user}: {m.text}" for m in messages)
    return CHANNEL_SUMMARY_PROMPT.format(channel=channel, messages=lines)


def generate_capability_prompt(mode: str) -> str:
    """Capability disclosure with informational examples for the given mode."""
    examples = INFORMATIONAL_EXAMPLES.get(mode, INFORMATIONAL_EXAMPLES["spaces"])
    return ACTION_CAPABILITY_PROMPT.format(informational_examples=examples)
