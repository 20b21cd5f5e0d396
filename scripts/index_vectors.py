#!/usr/bin/env python
"""Index published content into the configured vector store.

Usage:
    python -m scripts.index_vectors --corpus data/content.json --checkpoint .index-checkpoint.json

Requires VECTOR_PROVIDER=pinecone or qdrant. Progress is checkpointed after
every batch; rerunning with the same checkpoint resumes where the last run
stopped. Exits non-zero if any kind failed.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from scripture_search.config import get_settings
from scripture_search.content.models import EntityKind
from scripture_search.content.store import InMemoryContentStore
from scripture_search.embeddings.service import create_embedding_service
from scripture_search.exceptions import SearchPlatformError
from scripture_search.indexing.pipeline import IndexingPipeline
from scripture_search.logging_config import get_logger, setup_logging
from scripture_search.vectorstore.service import create_vector_store

logger = get_logger(__name__)


def parse_kinds(value: str) -> list[EntityKind]:
    """argparse type for a comma-separated kind list."""
    try:
        return [EntityKind(part.strip()) for part in value.split(",") if part.strip()]
    except ValueError as e:
        choices = ", ".join(k.value for k in EntityKind)
        raise argparse.ArgumentTypeError(f"{e}; choose from: {choices}") from e


async def run_indexing(
    corpus_path: Path,
    kinds: list[EntityKind] | None,
    checkpoint_path: Path | None,
    reset: bool,
) -> bool:
    """Run the pipeline and print a summary.

    Returns:
        True if every kind was indexed.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)

    indexing = settings.indexing.model_copy(update={"checkpoint_path": checkpoint_path})
    if reset and checkpoint_path is not None and checkpoint_path.exists():
        logger.info(f"Discarding checkpoint {checkpoint_path}")
        checkpoint_path.unlink()

    store = InMemoryContentStore.from_file(corpus_path)
    embeddings = create_embedding_service(settings.embedding)
    vector_store = create_vector_store(settings)

    try:
        pipeline = IndexingPipeline(store, embeddings, vector_store, settings=indexing)
        report = await pipeline.run(kinds)
    finally:
        await embeddings.close()
        await vector_store.close()

    print("\n" + "=" * 60)
    print("INDEXING SUMMARY")
    print("=" * 60)
    print(f"Backend: {vector_store.backend.value}")
    print(f"Embedding model: {embeddings.model_name}")
    for kind, kind_report in report.kinds.items():
        status = "ok"
        if kind_report.error is not None:
            status = f"FAILED at offset {kind_report.resume_offset}"
        print(
            f"  {kind.value:<14} indexed={kind_report.indexed:<6} "
            f"skipped={kind_report.skipped:<4} batches={kind_report.batches:<4} {status}"
        )
    print(f"Total indexed: {report.total_indexed}")
    print(f"Total skipped: {report.total_skipped}")
    print("=" * 60)

    return report.succeeded


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Index content into the vector store",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--corpus",
        type=Path,
        default=settings.search.corpus_path,
        required=settings.search.corpus_path is None,
        help="Path to the JSON content snapshot",
    )
    parser.add_argument(
        "--kinds",
        type=parse_kinds,
        default=None,
        help="Comma-separated kinds to index (default: INDEXING_KINDS)",
    )
    parser.add_argument(
        "--checkpoint",
        type=Path,
        default=settings.indexing.checkpoint_path,
        help="Checkpoint file used to resume interrupted runs",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Ignore any existing checkpoint and index from the start",
    )

    args = parser.parse_args()

    try:
        succeeded = asyncio.run(
            run_indexing(
                corpus_path=args.corpus,
                kinds=args.kinds,
                checkpoint_path=args.checkpoint,
                reset=args.reset,
            )
        )
    except SearchPlatformError as e:
        logger.error(f"Indexing aborted: {e.message}", extra={"code": e.code.value})
        sys.exit(1)

    sys.exit(0 if succeeded else 1)


if __name__ == "__main__":
    main()
