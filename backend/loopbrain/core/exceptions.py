"""
Error taxonomy for Loopbrain.

Messages on these exceptions may reach API clients, so they stay generic.
Details belong in the log.
"""


class LoopbrainError(Exception):
    """Base class for all Loopbrain errors."""


class RequestValidationError(LoopbrainError):
    """Request rejected before any context work (unknown mode, empty query)."""


class ProviderError(LoopbrainError):
    """An external provider (LLM, embeddings, messaging) failed."""


class EmbeddingError(ProviderError):
    pass


class LLMError(ProviderError):
    pass


class ContextItemNotFoundError(LoopbrainError):
    """A context item id the caller expected to exist is missing in the workspace."""

    def __init__(self, context_item_id: str):
        self.context_item_id = context_item_id
        super().__init__(f"Context item not found: {context_item_id}")


class WorkspaceMismatchError(LoopbrainError):
    """A stored item belongs to a different workspace than the caller's."""

    def __init__(self, context_item_id: str):
        self.context_item_id = context_item_id
        super().__init__(f"Workspace mismatch for context item {context_item_id}")
