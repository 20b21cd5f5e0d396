"""Content records and canonical text.

The store lives in ``scripture_search.content.store``; it is not re-exported
here because configuration imports ``EntityKind`` from this package.
"""

from scripture_search.content.models import (
    CandidateVector,
    ContentSnapshot,
    EntityKind,
    SearchableEntity,
    VerseEmbeddingRecord,
    VerseRecord,
)
from scripture_search.content.text import (
    build_search_text,
    content_hash,
    normalize_text,
    verse_text,
)

__all__ = [
    "CandidateVector",
    "ContentSnapshot",
    "EntityKind",
    "SearchableEntity",
    "VerseEmbeddingRecord",
    "VerseRecord",
    "build_search_text",
    "content_hash",
    "normalize_text",
    "verse_text",
]
