from loopbrain.prompts.templates import (
    LOOPBRAIN_SYSTEM_PROMPT,
    SPACES_SYSTEM_PROMPT,
    ORG_SYSTEM_PROMPT,
    DASHBOARD_SYSTEM_PROMPT,
)
from loopbrain.prompts.generators import (
    generate_channel_summary_prompt,
    generate_capability_prompt,
)

__all__ = [
    "LOOPBRAIN_SYSTEM_PROMPT",
    "SPACES_SYSTEM_PROMPT",
    "ORG_SYSTEM_PROMPT",
    "DASHBOARD_SYSTEM_PROMPT",
    "generate_channel_summary_prompt",
    "generate_capability_prompt",
]
