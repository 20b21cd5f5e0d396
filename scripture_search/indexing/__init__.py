"""Offline indexing: vector store pipeline and verse embedding generator."""

from scripture_search.indexing.models import IndexingCheckpoint, IndexingReport, KindReport
from scripture_search.indexing.pipeline import IndexingPipeline
from scripture_search.indexing.verse_embeddings import GenerationStats, VerseEmbeddingGenerator

__all__ = [
    "GenerationStats",
    "IndexingCheckpoint",
    "IndexingPipeline",
    "IndexingReport",
    "KindReport",
    "VerseEmbeddingGenerator",
]
