import logging
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ficqueue.core.errors import ExtractionError
from ficqueue.core.models import SeriesMetadata, SeriesWork
from ficqueue.extraction.extractor import check_page_guards
from ficqueue.extraction.text import clean_text

logger = logging.getLogger(__name__)

ARCHIVE_ROOT = "https://archiveofourown.org"
SERIES_URL = re.compile(r"/series/\d+")

WORK_TAG_GROUPS = {
    "warnings": "archive_warnings",
    "relationships": "relationship_tags",
    "characters": "character_tags",
    "freeforms": "freeform_tags",
}


def is_series_url(url: Optional[str]) -> bool:
    return bool(url and SERIES_URL.search(url))


def parse_series(markup: str, url: Optional[str] = None) -> SeriesMetadata:
    """
    Parse a series page into its own metadata plus the ordered member list.
    """
    if not markup or not markup.strip():
        raise ExtractionError(f"Empty document for {url or 'unknown URL'}")
    check_page_guards(markup)

    soup = BeautifulSoup(markup, "html.parser")
    if soup.body is None:
        raise ExtractionError(f"Document for {url or 'unknown URL'} has no body")

    series = SeriesMetadata(url=url)

    heading = soup.select_one("h2.heading")
    series.title = clean_text(heading.get_text(" ")) if heading is not None else None

    series.authors = [
        clean_text(a.get_text()) for a in soup.select("h3.byline.heading a[rel='author']")
    ]
    if not series.authors:
        byline = soup.select_one("h3.byline.heading")
        if byline is not None:
            text = re.sub(r"^by\s+", "", clean_text(byline.get_text(" ")), flags=re.I)
            if text:
                series.authors = [text]

    summary = soup.select_one("div.summary.module blockquote.userstuff")
    if summary is not None:
        series.summary = clean_text(summary.get_text(" ")) or None

    base = url or ARCHIVE_ROOT
    for item in soup.select("ul.series.work.index.group li.work"):
        link = item.select_one("h4.heading a")
        if link is None:
            series.warnings.append("Series entry without a title link was skipped")
            continue
        href = link.get("href")
        work = SeriesWork(
            title=clean_text(link.get_text()),
            url=urljoin(base, href) if href else None,
            authors=[clean_text(a.get_text()) for a in item.select("a[rel='author']")],
        )
        work_summary = item.select_one("blockquote.userstuff")
        if work_summary is not None:
            work.summary = clean_text(work_summary.get_text(" ")) or None

        for css_group, field_name in WORK_TAG_GROUPS.items():
            work.tags[field_name] = [
                clean_text(a.get_text())
                for a in item.select(f"ul.tags.commas li.{css_group} a.tag")
            ]

        rating = item.select_one("ul.required-tags span.rating span.text")
        if rating is not None:
            work.rating = clean_text(rating.get_text())
        status = item.select_one(
            "ul.required-tags span.complete-yes span.text, ul.required-tags span.complete-no span.text"
        )
        if status is not None:
            work.status = clean_text(status.get_text())

        series.works.append(work)

    meta_group = soup.select_one("dl.series.meta.group")
    if meta_group is not None:
        stats_text = clean_text(meta_group.get_text(" "))
        works_match = re.search(r"Works:\s*([\d,]+)", stats_text, re.I)
        if works_match:
            series.work_count = int(works_match.group(1).replace(",", ""))
        words_match = re.search(r"Words:\s*([\d,]+)", stats_text, re.I)
        if words_match:
            series.word_count = int(words_match.group(1).replace(",", ""))

    logger.info(f"Parsed series '{series.title}' with {len(series.works)} works")
    return series
