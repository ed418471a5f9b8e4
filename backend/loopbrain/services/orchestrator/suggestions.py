"""
Follow-up suggestions offered with every answer.
"""
from typing import List

from loopbrain.services.orchestrator.state import LoopMode, Suggestion


_MODE_SUGGESTIONS = {
    LoopMode.SPACES: [
        ("Create tasks from this answer", "create_tasks_from_answer"),
        ("Update project status", "update_project_status"),
    ],
    LoopMode.ORG: [
        ("Update role responsibilities", "update_role_responsibilities"),
    ],
    LoopMode.DASHBOARD: [
        ("Create meeting notes", "create_meeting_notes"),
        ("Log risks", "log_risks"),
    ],
}


def build_suggestions(mode: LoopMode, action_available: bool = False) -> List[Suggestion]:
    """Fixed per-mode set; the send action only when the integration is available."""
    suggestions = [Suggestion(label=label, action=action) for label, action in _MODE_SUGGESTIONS[mode]]
    if action_available:
        suggestions.append(Suggestion(
            label="Send to Slack",
            action="send_slack",
            payload={"integration": "slack"},
        ))
    return suggestions
