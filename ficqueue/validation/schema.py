"""
Normalization of extracted records with pydantic.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ficqueue.core.errors import SchemaError

ANONYMOUS = "Anonymous"

RATINGS = (
    "general audiences",
    "teen and up audiences",
    "mature",
    "explicit",
    "not rated",
)


def normalize_rating(value: Optional[str]) -> str:
    if not value or not value.strip():
        return "not rated"
    rating = value.strip().lower()
    if rating.startswith("explicit"):
        return "explicit"
    if rating == "t":
        return "teen and up audiences"
    if rating in RATINGS:
        return rating
    return "not rated"


def _flatten(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    flat: List[str] = []
    for item in value:
        flat.extend(_flatten(item))
    return flat


def _coerce_count(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"expected a whole number, got {value}")
        return int(value)
    text = str(value).replace(",", "").strip()
    if not text:
        return None
    if not text.isdigit():
        raise ValueError(f"expected a number, got '{value}'")
    return int(text)


class NormalizedMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = None
    title: str = Field(min_length=1)
    authors: List[str]
    summary: Optional[str] = None
    rating: str = "not rated"
    status: Optional[str] = None
    language: Optional[str] = None
    series: Optional[str] = None
    chapters: Optional[str] = None

    published: Optional[str] = None
    updated: Optional[str] = None
    completed: Optional[str] = None

    words: Optional[int] = None
    comments: Optional[int] = None
    kudos: Optional[int] = None
    bookmarks: Optional[int] = None
    hits: Optional[int] = None

    archive_warnings: List[str] = Field(default_factory=list)
    category_tags: List[str] = Field(default_factory=list)
    fandom_tags: List[str] = Field(default_factory=list)
    relationship_tags: List[str] = Field(default_factory=list)
    character_tags: List[str] = Field(default_factory=list)
    freeform_tags: List[str] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)

    unknown_fields: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("authors", mode="before")
    @classmethod
    def default_authors(cls, value):
        authors = [a.strip() for a in _flatten(value) if a and a.strip()]
        return authors or [ANONYMOUS]

    @field_validator("rating", mode="before")
    @classmethod
    def coerce_rating(cls, value):
        return normalize_rating(value)

    @field_validator("words", "comments", "kudos", "bookmarks", "hits", mode="before")
    @classmethod
    def coerce_counts(cls, value):
        return _coerce_count(value)

    @field_validator(
        "archive_warnings",
        "category_tags",
        "fandom_tags",
        "relationship_tags",
        "character_tags",
        "freeform_tags",
        "collections",
        mode="before",
    )
    @classmethod
    def flatten_tags(cls, value):
        return [tag.strip() for tag in _flatten(value) if tag and tag.strip()]


def _schema_message(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "record"
        problems.append(f"{location}: {item['msg']}")
    return "Metadata failed validation: " + "; ".join(problems)


def validate(record: Dict[str, Any]) -> NormalizedMetadata:
    """
    Normalize an extracted record. Raises SchemaError on any mismatch.
    """
    try:
        return NormalizedMetadata.model_validate(record)
    except ValidationError as e:
        raise SchemaError(_schema_message(e)) from e


class NormalizedSeries(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = None
    title: str = Field(min_length=1)
    authors: List[str]
    summary: Optional[str] = None
    work_count: Optional[int] = None
    word_count: Optional[int] = None
    warnings: List[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("authors", mode="before")
    @classmethod
    def default_authors(cls, value):
        authors = [a.strip() for a in _flatten(value) if a and a.strip()]
        return authors or [ANONYMOUS]

    @field_validator("work_count", "word_count", mode="before")
    @classmethod
    def coerce_counts(cls, value):
        return _coerce_count(value)


def validate_series(record: Dict[str, Any]) -> NormalizedSeries:
    try:
        return NormalizedSeries.model_validate(record)
    except ValidationError as e:
        raise SchemaError(_schema_message(e)) from e
