from typing import Any, Dict, List

from ficqueue.store.models import Series, Work

SUMMARY_LIMIT = 400


def _shorten(text, limit: int = SUMMARY_LIMIT):
    if not text or len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def completion_content(url: str) -> str:
    return f"Your fic parsing job is done!\n\n{url}"


def render_work_summary(work: Work) -> Dict[str, Any]:
    payload = work.payload or {}
    return {
        "kind": "work",
        "id": work.id,
        "url": work.url,
        "title": work.title,
        "authors": payload.get("authors", []),
        "rating": payload.get("rating"),
        "status": payload.get("status"),
        "words": payload.get("words"),
        "chapters": payload.get("chapters"),
        "fandoms": payload.get("fandom_tags", []),
        "relationships": payload.get("relationship_tags", []),
        "archive_warnings": payload.get("archive_warnings", []),
        "summary": _shorten(payload.get("summary")),
    }


def render_series_summary(series: Series, works: List[Work]) -> Dict[str, Any]:
    payload = series.payload or {}
    return {
        "kind": "series",
        "id": series.id,
        "url": series.url,
        "title": series.title,
        "authors": payload.get("authors", []),
        "work_count": payload.get("work_count") or len(works),
        "word_count": payload.get("word_count"),
        "summary": _shorten(payload.get("summary")),
        "works": [{"id": w.id, "title": w.title, "url": w.url} for w in works],
    }
