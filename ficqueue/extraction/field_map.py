"""
Label -> canonical field dictionary for the archive's <dt>/<dd> metadata blocks.

A label is the first CSS class of a <dt> (or its slugified text when the
<dt> has no class). Adding a field is a data change here, not a parser change.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional


class FieldKind(str, Enum):
    TAGS = "tags"  # ordered list of tag strings
    TEXT = "text"  # whitespace-collapsed decoded text
    COUNT = "count"  # integer statistic
    DATE = "date"  # YYYY-MM-DD date
    CONTAINER = "container"  # wraps a nested block, no value of its own


class FieldSpec(NamedTuple):
    name: str
    kind: FieldKind
    stats: bool = False


FIELD_MAP: Dict[str, FieldSpec] = {
    # Tag categories
    "rating": FieldSpec("rating", FieldKind.TEXT),
    "ratings": FieldSpec("rating", FieldKind.TEXT),
    "warning": FieldSpec("archive_warnings", FieldKind.TAGS),
    "warnings": FieldSpec("archive_warnings", FieldKind.TAGS),
    "archive_warnings": FieldSpec("archive_warnings", FieldKind.TAGS),
    "category": FieldSpec("category_tags", FieldKind.TAGS),
    "categories": FieldSpec("category_tags", FieldKind.TAGS),
    "category_tags": FieldSpec("category_tags", FieldKind.TAGS),
    "fandom": FieldSpec("fandom_tags", FieldKind.TAGS),
    "fandoms": FieldSpec("fandom_tags", FieldKind.TAGS),
    "fandom_tags": FieldSpec("fandom_tags", FieldKind.TAGS),
    "relationship": FieldSpec("relationship_tags", FieldKind.TAGS),
    "relationships": FieldSpec("relationship_tags", FieldKind.TAGS),
    "relationship_tags": FieldSpec("relationship_tags", FieldKind.TAGS),
    "character": FieldSpec("character_tags", FieldKind.TAGS),
    "characters": FieldSpec("character_tags", FieldKind.TAGS),
    "character_tags": FieldSpec("character_tags", FieldKind.TAGS),
    "freeform": FieldSpec("freeform_tags", FieldKind.TAGS),
    "freeform_tags": FieldSpec("freeform_tags", FieldKind.TAGS),
    "additional_tags": FieldSpec("freeform_tags", FieldKind.TAGS),
    "collections": FieldSpec("collections", FieldKind.TAGS),
    # Other meta fields
    "language": FieldSpec("language", FieldKind.TEXT),
    "series": FieldSpec("series", FieldKind.TEXT),
    "stats": FieldSpec("stats", FieldKind.CONTAINER),
    # Stats block
    "published": FieldSpec("published", FieldKind.DATE, stats=True),
    "updated": FieldSpec("updated", FieldKind.DATE, stats=True),
    "completed": FieldSpec("completed", FieldKind.DATE, stats=True),
    # The archive labels both "Updated:" and "Completed:" with class="status"
    "status": FieldSpec("updated", FieldKind.DATE, stats=True),
    "words": FieldSpec("words", FieldKind.COUNT, stats=True),
    "word_count": FieldSpec("words", FieldKind.COUNT, stats=True),
    "chapters": FieldSpec("chapters", FieldKind.TEXT, stats=True),
    "comments": FieldSpec("comments", FieldKind.COUNT, stats=True),
    "kudos": FieldSpec("kudos", FieldKind.COUNT, stats=True),
    "bookmarks": FieldSpec("bookmarks", FieldKind.COUNT, stats=True),
    "hits": FieldSpec("hits", FieldKind.COUNT, stats=True),
}


def lookup(label: str, label_text: str = "") -> Optional[FieldSpec]:
    """
    Map a label to its FieldSpec, or None if it is outside the vocabulary.
    ``label_text`` disambiguates the shared "status" label.
    """
    spec = FIELD_MAP.get(label)
    if spec is not None and label == "status" and label_text.lower().startswith("completed"):
        return FIELD_MAP["completed"]
    return spec
