#!/usr/bin/env python
"""Generate stored verse embeddings used by verse search.

Usage:
    python -m scripts.generate_verse_embeddings --corpus data/content.json --limit 100
    python -m scripts.generate_verse_embeddings --corpus data/content.json --dry-run --limit 5

Idempotent: verses whose stored embedding has the same model and content
hash are skipped. Exits non-zero if any batch failed.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from scripture_search.config import get_settings
from scripture_search.content.store import InMemoryContentStore
from scripture_search.embeddings.service import create_embedding_service
from scripture_search.exceptions import SearchPlatformError
from scripture_search.indexing.verse_embeddings import MAX_LIMIT, VerseEmbeddingGenerator
from scripture_search.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


async def run_generation(
    corpus_path: Path,
    model: str | None,
    limit: int | None,
    since_id: int | None,
    dry_run: bool,
) -> bool:
    """Generate embeddings and write the snapshot back.

    Returns:
        True if no batch failed.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)

    store = InMemoryContentStore.from_file(corpus_path)
    embeddings = create_embedding_service(settings.embedding)
    try:
        generator = VerseEmbeddingGenerator(store, embeddings, settings.indexing)
        stats = await generator.run(
            model=model,
            limit=limit,
            since_id=since_id,
            dry_run=dry_run,
        )
    finally:
        await embeddings.close()

    if not dry_run and stats.written:
        store.save(corpus_path)
        logger.info(f"Snapshot updated: {corpus_path}")

    print("\n" + "=" * 60)
    print("VERSE EMBEDDINGS" + (" (DRY RUN)" if dry_run else ""))
    print("=" * 60)
    print(f"Model:     {stats.model}")
    print(f"Planned:   {stats.planned}")
    print(f"Processed: {stats.processed}")
    print(f"Skipped:   {stats.skipped}")
    print(f"Written:   {stats.written}")
    print(f"Errors:    {stats.errors}")
    print("=" * 60)

    return stats.errors == 0


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Generate embeddings for Bible verses",
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
        "--model",
        default=None,
        help="Embedding model (default: EMBEDDING_MODEL)",
    )
    parser.add_argument(
        "--limit",
        type=positive_int,
        default=settings.indexing.verse_limit,
        help=f"Max verses to embed (capped at {MAX_LIMIT})",
    )
    parser.add_argument(
        "--since-id",
        type=int,
        default=None,
        help="Only process verses with a greater id",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan without embedding or writing",
    )

    args = parser.parse_args()

    try:
        ok = asyncio.run(
            run_generation(
                corpus_path=args.corpus,
                model=args.model,
                limit=args.limit,
                since_id=args.since_id,
                dry_run=args.dry_run,
            )
        )
    except SearchPlatformError as e:
        logger.error(f"Generation aborted: {e.message}", extra={"code": e.code.value})
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
