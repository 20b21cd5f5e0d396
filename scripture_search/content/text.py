"""Canonical text for embedding and keyword matching."""

import hashlib
import re

from scripture_search.content.models import EntityKind, SearchableEntity, VerseRecord

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_LINE_EDGE = re.compile(r" ?\n ?")
_NEWLINES = re.compile(r"\n+")

# Fields joined (in order) into the text embedded for each kind.
SEARCH_TEXT_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.SITUATION: ("title", "description", "body"),
    EntityKind.PRAYER_POINT: ("title", "description", "body", "opening_prayer"),
    EntityKind.PLACE: (
        "title",
        "description",
        "biblical_context",
        "historical_info",
        "country",
        "region",
    ),
    EntityKind.PROFESSION: ("title", "description", "body"),
    EntityKind.NAME: ("title", "description", "character_description"),
    EntityKind.VERSE: ("description",),
}

# Fields a keyword term may appear in for a record to be considered.
KEYWORD_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.SITUATION: ("title", "description", "body", "category"),
    EntityKind.PRAYER_POINT: ("title", "description", "body", "category"),
    EntityKind.PLACE: (
        "title",
        "description",
        "biblical_context",
        "historical_info",
        "country",
        "region",
    ),
    EntityKind.PROFESSION: ("title", "description", "body"),
    EntityKind.NAME: ("title", "description", "character_description"),
    EntityKind.VERSE: ("description",),
}


def normalize_text(text: str) -> str:
    """Normalize whitespace deterministically.

    Trims, converts CR/CRLF to LF, collapses runs of spaces and tabs, then
    folds line breaks into single spaces.
    """
    text = text.strip().replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _LINE_EDGE.sub("\n", text)
    text = _NEWLINES.sub(" ", text)
    return text.strip()


def content_hash(model: str, normalized_text: str) -> str:
    """SHA-256 hex digest of ``"{model}\\n{text}"``."""
    return hashlib.sha256(f"{model}\n{normalized_text}".encode()).hexdigest()


def verse_text(verse: VerseRecord) -> str:
    """Normalized display text of a verse, or ``""`` if it has none."""
    raw = verse.raw_text()
    return normalize_text(raw) if raw else ""


def build_search_text(entity: SearchableEntity) -> str:
    """Join the kind's search fields with single spaces, skipping blanks."""
    parts: list[str] = []
    for name in SEARCH_TEXT_FIELDS[entity.kind]:
        value = entity.text_field(name)
        if value and value.strip():
            parts.append(normalize_text(value))
    return " ".join(parts)


def display_text(entity: SearchableEntity) -> str:
    """Text the keyword scorer grades: verse text for verses, else the title."""
    if entity.kind is EntityKind.VERSE:
        return entity.description
    return entity.title
