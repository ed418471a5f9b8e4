"""
Action Intent Detection - narrow, rule-based detection of explicit
send/read requests in the raw user query.

Detection deliberately requires several independent signals at once so
it never fires on an informational question.
"""
import re
from dataclasses import dataclass
from typing import Optional

from loopbrain.core.logging import get_logger
from loopbrain.services.orchestrator.commands import DEFAULT_READ_LIMIT, clamp_limit

logger = get_logger(__name__)


INTEGRATION_KEYWORD = "slack"
MIN_MESSAGE_LENGTH = 3

_CHANNEL_RE = re.compile(r"#([\w-]+)")
_READ_CHANNEL_FALLBACK_RE = re.compile(r"(?:from|in|channel|on)\s+#?([\w-]+)", re.IGNORECASE)
_SEND_VERB_RE = re.compile(r"\b(send|post|share|announce|message)\b")
_QUESTION_RE = re.compile(r"\b(what|who|which|where|when|how|why|show|list|tell me|give me)\b")
_READ_LIMIT_RE = re.compile(r"(?:last|recent|latest|show)\s+(\d+)", re.IGNORECASE)

READ_PHRASES = (
    "read slack",
    "read from slack",
    "read messages from",
    "read conversations from",
    "show slack messages",
    "show messages from",
    "get slack messages",
    "get messages from",
    "what was said",
    "what's in",
    "what's been said",
    "messages in",
    "conversation in",
    "recent messages",
    "latest messages",
    "tell me what",
)

_INSTRUCTION_RE = re.compile(r"slack|channel|message\s+should|send\s+to|post\s+to", re.IGNORECASE)
_QUOTED_INSTRUCTION_RE = re.compile(r"slack|channel|message\s+should|send|post|to\s+#", re.IGNORECASE)
_SHOULD_BE_INSTRUCTION_RE = re.compile(r"slack|channel|send|post", re.IGNORECASE)
_TRAILING_INSTRUCTION_RE = re.compile(r"slack|channel|message\s+should|send\s+to|post\s+to|on\s+slack", re.IGNORECASE)

_MESSAGE_SHOULD_BE_RE = re.compile(
    r"(?:the\s+)?(?:message|text|messgae|mesage)\s+should\s+be[:\s-]+[\"']([^\"']{3,})[\"']",
    re.IGNORECASE,
)
_SHOULD_BE_RE = re.compile(r"should\s+be[:\s-]+[\"']([^\"']{3,})[\"']", re.IGNORECASE)
_QUOTED_RE = re.compile(r"[\"']([^\"']{3,})[\"']")
_SAY_RE = re.compile(r"(?:say|saying|message|text|tell|inform)[:\s]+[\"']?([^\"']+)[\"']?", re.IGNORECASE)
_AFTER_SAY_RE = re.compile(r"(?:say|saying|tell|message|text)[:\s-]+(.+?)(?:\s*$|\.|$)", re.IGNORECASE)
_LEADING_FILLER_RE = re.compile(
    r"^(?:that|about|saying|say|tell|message|text|the\s+message\s+should\s+be)[:\s-]+",
    re.IGNORECASE,
)


@dataclass
class SendIntent:
    channel: str
    message: str


@dataclass
class ReadIntent:
    channel: str
    limit: int = DEFAULT_READ_LIMIT


def has_question(query: str) -> bool:
    """A '?' or an interrogative word anywhere in the query."""
    lowered = query.lower()
    return "?" in lowered or bool(_QUESTION_RE.search(lowered))


def detect_send_intent(query: str) -> Optional[SendIntent]:
    """
    Explicit send request: the integration keyword, a ``#channel`` token
    and a send verb must all be present, and a message must be extractable.
    """
    lowered = query.lower()
    if INTEGRATION_KEYWORD not in lowered:
        return None
    if not _SEND_VERB_RE.search(lowered):
        return None

    channel_match = _CHANNEL_RE.search(query)
    if not channel_match:
        return None

    channel_token = channel_match.group(0)
    message = extract_message(query, channel_token)
    if not message or len(message) < MIN_MESSAGE_LENGTH:
        logger.debug("Send intent without extractable message", channel=channel_token)
        return None

    return SendIntent(channel=channel_token, message=message)


def detect_read_intent(query: str) -> Optional[ReadIntent]:
    """
    Explicit read request: a read phrase plus a ``#channel`` token, or a
    read phrase plus the integration keyword and a channel named after
    from/in/channel/on.
    """
    lowered = query.lower()
    if not any(phrase in lowered for phrase in READ_PHRASES):
        return None

    channel = None
    channel_match = _CHANNEL_RE.search(query)
    if channel_match:
        channel = f"#{channel_match.group(1)}"
    elif INTEGRATION_KEYWORD in lowered:
        fallback = _READ_CHANNEL_FALLBACK_RE.search(query)
        if fallback and fallback.group(1).lower() != INTEGRATION_KEYWORD:
            channel = f"#{fallback.group(1)}"

    if not channel:
        return None

    limit = DEFAULT_READ_LIMIT
    limit_match = _READ_LIMIT_RE.search(query)
    if limit_match:
        limit = clamp_limit(int(limit_match.group(1)))

    return ReadIntent(channel=channel, limit=limit)


def extract_message(query: str, channel_token: str) -> Optional[str]:
    """
    Pull the literal message out of a send request.

    Tried in order: "message should be '...'", quoted text, say/tell
    phrasing, text after the channel, then "send X to #channel".
    Candidates that read like instructions are discarded.
    """
    chan = re.escape(channel_token)

    match = _MESSAGE_SHOULD_BE_RE.search(query)
    if match:
        return match.group(1).strip()

    match = _SHOULD_BE_RE.search(query)
    if match:
        candidate = match.group(1).strip()
        if not _SHOULD_BE_INSTRUCTION_RE.search(candidate):
            return candidate

    match = _QUOTED_RE.search(query)
    if match:
        candidate = match.group(1).strip()
        if not _QUOTED_INSTRUCTION_RE.search(candidate):
            return candidate

    match = _SAY_RE.search(query)
    if match:
        candidate = match.group(1).strip()
        if not _INSTRUCTION_RE.search(candidate):
            return candidate

    match = re.search(
        rf"{chan}[^#]*?(?:say|saying|tell|message|text|that|about)[:\s-]+[\"']?([^\"']+)[\"']?",
        query,
        re.IGNORECASE,
    )
    if match:
        candidate = match.group(1).strip()
        if not _INSTRUCTION_RE.search(candidate):
            return candidate

    match = _AFTER_SAY_RE.search(query)
    if match:
        candidate = re.sub(r"\s+", " ", match.group(1).strip().replace('"', "").replace("'", ""))
        candidate = re.sub(chan, "", candidate, flags=re.IGNORECASE).strip()
        if candidate and not _INSTRUCTION_RE.search(candidate):
            return candidate

    match = re.search(rf"{chan}[^#]*?[-\s]+(.+?)(?:\.|$)", query, re.IGNORECASE)
    if match:
        candidate = _LEADING_FILLER_RE.sub("", match.group(1).strip())
        candidate = candidate.replace('"', "").replace("'", "").rstrip(".").strip()
        if len(candidate) >= MIN_MESSAGE_LENGTH and not _TRAILING_INSTRUCTION_RE.search(candidate):
            return candidate

    match = re.search(
        rf"(?:send|post|share|announce|message)\s+([^#]+?)\s+(?:to|in)\s+{chan}",
        query,
        re.IGNORECASE,
    )
    if match:
        candidate = match.group(1).strip().replace('"', "").replace("'", "")
        if not _INSTRUCTION_RE.search(candidate):
            return candidate

    return None
