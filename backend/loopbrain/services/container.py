"""
Service container - provider clients and components built once per process.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loopbrain.core.logging import get_logger
from loopbrain.services.adapter.provider import AIProviderAdapter, get_ai_adapter
from loopbrain.services.adapter.slack import ActionAdapter, get_action_adapter
from loopbrain.services.embedding.provider import EmbeddingProvider, get_embedding_provider
from loopbrain.services.embedding.service import EmbeddingService
from loopbrain.services.engine.engine import ContextEngine
from loopbrain.services.orchestrator.loaders import ContextLoader
from loopbrain.services.orchestrator.orchestrator import LoopbrainOrchestrator
from loopbrain.services.store.items import ContextItemStore
from loopbrain.services.store.summaries import SummaryStore
from loopbrain.services.store.vectors import VectorStore

logger = get_logger(__name__)


@dataclass
class LoopbrainServices:
    items: ContextItemStore
    vectors: VectorStore
    summaries: SummaryStore
    engine: ContextEngine
    embeddings: EmbeddingService
    orchestrator: LoopbrainOrchestrator


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    embedding_provider: Optional[EmbeddingProvider] = None,
    llm: Optional[AIProviderAdapter] = None,
    actions: Optional[ActionAdapter] = None,
) -> LoopbrainServices:
    """
    Wire every component around one set of provider clients.

    Providers not passed in are created from settings.
    """
    items = ContextItemStore(session_factory)
    vectors = VectorStore(session_factory)
    summaries = SummaryStore(session_factory)
    engine = ContextEngine(session_factory, items)
    embeddings = EmbeddingService(embedding_provider or get_embedding_provider(), items, vectors)

    orchestrator = LoopbrainOrchestrator(
        loader=ContextLoader(engine, embeddings),
        llm=llm or get_ai_adapter(),
        actions=actions or get_action_adapter(),
    )

    logger.info("Loopbrain services initialized")

    return LoopbrainServices(
        items=items,
        vectors=vectors,
        summaries=summaries,
        engine=engine,
        embeddings=embeddings,
        orchestrator=orchestrator,
    )
