from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ExtractedMetadata:
    """
    Raw work metadata as read from a rendered work page.

    ``fields`` holds every recognized label under its canonical name.
    Labels outside the canonical vocabulary are kept verbatim in
    ``unknown_fields``; structural anomalies are appended to ``warnings``.
    """

    url: Optional[str] = None
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    status: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    unknown_fields: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the dict shape consumed by the schema validator."""
        record: Dict[str, Any] = dict(self.fields)
        record.update(
            url=self.url,
            title=self.title,
            authors=list(self.authors),
            summary=self.summary,
            status=self.status,
            unknown_fields=dict(self.unknown_fields),
            warnings=list(self.warnings),
        )
        return record


@dataclass
class SeriesWork:
    title: str
    url: Optional[str]
    authors: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    rating: Optional[str] = None
    status: Optional[str] = None
    tags: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class SeriesMetadata:
    """Metadata for a collection page and its ordered member works."""

    url: Optional[str] = None
    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    work_count: Optional[int] = None
    word_count: Optional[int] = None
    works: List[SeriesWork] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
