#!/usr/bin/env python3
"""
Backfill embeddings for every stored context item of a workspace.

Usage:
    python scripts/backfill_embeddings.py WORKSPACE_ID [--type project] [--batch-size 10] [--delay-ms 1000]
"""
import argparse
import asyncio
import sys

from loopbrain.core.database import async_session_maker, engine
from loopbrain.core.logging import setup_logging, get_logger
from loopbrain.services.embedding import EmbeddingService, backfill_workspace_embeddings, get_embedding_provider
from loopbrain.services.store import ContextItemStore, VectorStore

logger = get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    items = ContextItemStore(async_session_maker)
    service = EmbeddingService(get_embedding_provider(), items, VectorStore(async_session_maker))

    try:
        result = await backfill_workspace_embeddings(
            service,
            args.workspace_id,
            type=args.type,
            batch_size=args.batch_size,
            delay_ms=args.delay_ms,
        )
    finally:
        await engine.dispose()

    print(f"Total: {result['total']}  processed: {result['processed']}  "
          f"succeeded: {result['succeeded']}  failed: {result['failed']}")
    for error in result["errors"]:
        print(f"  {error['context_item_id']}: {error['error']}")

    return 0 if result["failed"] == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill Loopbrain context embeddings")
    parser.add_argument("workspace_id", help="Workspace to backfill")
    parser.add_argument("--type", default=None, help="Only items of this context type")
    parser.add_argument("--batch-size", type=int, default=None, help="Items per batch (default from settings)")
    parser.add_argument("--delay-ms", type=int, default=None, help="Pause between batches (default from settings)")
    args = parser.parse_args()

    setup_logging()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
