"""
Command Parser - finds action commands embedded in model output.

Grammar::

    [VERB:key=value:key=value]

VERB is SEND or READ, optionally prefixed by the integration name
(``SLACK_SEND``). Keys are case-insensitive. A ``text`` value runs to the
closing bracket, so it may itself contain ``:`` and ``=``. Tokens with an
unknown verb or a missing channel or text are not returned and stay in
the text untouched. A non-numeric READ limit falls back to the default.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from loopbrain.core.logging import get_logger
from loopbrain.services.adapter.slack import normalize_channel

logger = get_logger(__name__)


DEFAULT_READ_LIMIT = 50
MAX_READ_LIMIT = 100

_TOKEN_RE = re.compile(r"\[(?:SLACK_)?(SEND|READ):([^\]]*)\]", re.IGNORECASE)


class CommandVerb(str, Enum):
    SEND = "send"
    READ = "read"


@dataclass
class ActionCommand:
    """One parsed command and where it sits in the source text."""
    verb: CommandVerb
    channel: str
    raw: str
    start: int
    end: int
    text: Optional[str] = None
    limit: int = DEFAULT_READ_LIMIT


def clamp_limit(value: int) -> int:
    return max(1, min(value, MAX_READ_LIMIT))


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if value[:1] in ("'", '"'):
        value = value[1:]
    if value[-1:] in ("'", '"'):
        value = value[:-1]
    return value.strip()


class CommandParser:
    """Tokenizes ``[VERB:...]`` commands in source order."""

    def parse(self, text: str) -> List[ActionCommand]:
        commands = []
        for match in _TOKEN_RE.finditer(text or ""):
            command = self._build(match)
            if command is None:
                logger.warning("Ignoring malformed action command", verb=match.group(1).upper())
                continue
            commands.append(command)
        return commands

    def _fields(self, body: str) -> Optional[Dict[str, str]]:
        fields: Dict[str, str] = {}
        rest = body
        while rest:
            key, sep, remainder = rest.partition("=")
            if not sep:
                return None
            key = key.strip().lower()
            if not key:
                return None
            if key == "text":
                fields[key] = remainder
                break
            value, _, rest = remainder.partition(":")
            fields[key] = value
        return fields

    def _build(self, match: re.Match) -> Optional[ActionCommand]:
        verb = CommandVerb(match.group(1).lower())
        fields = self._fields(match.group(2))
        if not fields:
            return None

        channel = fields.get("channel", "").strip().strip("'\"")
        if not channel or channel == "#":
            return None

        command = ActionCommand(
            verb=verb,
            channel=normalize_channel(channel),
            raw=match.group(0),
            start=match.start(),
            end=match.end(),
        )

        if verb == CommandVerb.SEND:
            text = _strip_quotes(fields.get("text", ""))
            if not text:
                return None
            command.text = text
        else:
            limit = fields.get("limit", "").strip()
            if limit:
                try:
                    command.limit = clamp_limit(int(limit))
                except ValueError:
                    logger.warning("Non-numeric READ limit, using default", limit=limit)

        return command
