"""
Work page extractor.

Turns the rendered markup of a single work page into ExtractedMetadata.
Missing optional fields never fail extraction; anomalies become warnings.
"""

import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from ficqueue.core.errors import ExtractionError, PageBlockedError
from ficqueue.core.models import ExtractedMetadata
from ficqueue.extraction.meta import parse_meta_group
from ficqueue.extraction.scan import scan_pairs
from ficqueue.extraction.stats import parse_stats_group
from ficqueue.extraction.text import clean_text

logger = logging.getLogger(__name__)

SITE_TITLE_SUFFIX = re.compile(r"\s*\[Archive of Our Own\]\s*$")
SEARCH_RESULTS_TITLE = re.compile(r"<title>\s*Search Works \| Archive of Our Own\s*</title>", re.I)
TITLE_TAG = re.compile(r"<title>([^<]*)</title>", re.I)
H1_TAG = re.compile(r"<h1[^>]*>([^<]*)</h1>", re.I)
ANTI_BOT = re.compile(
    r"rate limit|too many requests|prove you are human|unusual traffic|captcha", re.I
)
CHAPTER_RATIO = re.compile(r"^(\d+)\s*/\s*(\d+|\?)")

ABANDONED_TAG = "Abandoned Work - Unfinished and Discontinued"

STATUS_COMPLETE = "Complete"
STATUS_IN_PROGRESS = "In Progress"
STATUS_ABANDONED = "Abandoned"
STATUS_UNKNOWN = "Unknown"


def check_page_guards(markup: str):
    """Raise PageBlockedError when the markup is not a work page at all."""
    if SEARCH_RESULTS_TITLE.search(markup):
        raise PageBlockedError("Archive returned a search results page instead of the work")

    if (
        "<title>New Session" in markup
        or "Please log in to continue" in markup
        or 'name="user_session"' in markup
    ):
        raise PageBlockedError("Archive session required: work is restricted to logged-in users")

    title_match = TITLE_TAG.search(markup)
    title = title_match.group(1) if title_match else ""
    header_match = H1_TAG.search(markup)
    header = header_match.group(1) if header_match else ""
    if re.search("cloudflare", title, re.I) or re.search("cloudflare", header, re.I):
        raise PageBlockedError("Site protection page detected")
    if ANTI_BOT.search(title):
        raise PageBlockedError("Archive rate limit page detected")


def _extract_title(soup: BeautifulSoup) -> Optional[str]:
    heading = soup.select_one("h2.title.heading")
    if heading is not None:
        text = clean_text(heading.get_text(" "))
        if text:
            return text
    if soup.title is not None:
        text = SITE_TITLE_SUFFIX.sub("", clean_text(soup.title.get_text()))
        if text:
            return text
    return None


def _extract_authors(soup: BeautifulSoup, markup: str) -> List[str]:
    authors = [clean_text(a.get_text()) for a in soup.select("a[rel='author']")]
    authors = [a for a in authors if a]
    if authors:
        return authors

    byline = soup.select_one("h3.byline.heading")
    if byline is not None:
        text = re.sub(r"^by\s+", "", clean_text(byline.get_text(" ")), flags=re.I)
        if text:
            return [text]

    if re.search("orphan_account", markup, re.I):
        return ["orphan_account"]
    return []


def _extract_summary(soup: BeautifulSoup) -> Optional[str]:
    block = soup.select_one("div.summary.module blockquote.userstuff")
    if block is None:
        return None
    return clean_text(block.get_text(" ")) or None


def derive_status(soup: BeautifulSoup, fields: dict) -> str:
    """
    Completion status, by priority: abandoned tag, completion icon,
    chapter ratio, completed date.
    """
    freeform = [t.strip().lower() for t in fields.get("freeform_tags") or []]
    if ABANDONED_TAG.lower() in freeform:
        return STATUS_ABANDONED

    if soup.select_one('img[src$="complete-yes.png"]') is not None:
        return STATUS_COMPLETE
    if soup.select_one('img[src$="complete-no.png"]') is not None:
        return STATUS_IN_PROGRESS

    chapters = fields.get("chapters")
    if isinstance(chapters, str):
        match = CHAPTER_RATIO.match(chapters.replace(",", ""))
        if match:
            written = int(match.group(1))
            total = None if match.group(2) == "?" else int(match.group(2))
            if total is not None and written == total and written > 0:
                return STATUS_COMPLETE
            if total is None or written < total:
                return STATUS_IN_PROGRESS

    if fields.get("completed"):
        return STATUS_COMPLETE
    return STATUS_UNKNOWN


def extract(markup: str, url: Optional[str] = None) -> ExtractedMetadata:
    """
    Parse a rendered work page.

    Raises ExtractionError for an empty or body-less document and
    PageBlockedError for interstitials; everything else degrades to warnings.
    """
    if not markup or not markup.strip():
        raise ExtractionError(f"Empty document for {url or 'unknown URL'}")

    check_page_guards(markup)

    soup = BeautifulSoup(markup, "html.parser")
    if soup.body is None:
        raise ExtractionError(f"Document for {url or 'unknown URL'} has no body")

    metadata = ExtractedMetadata(url=url)
    if "</html>" not in markup or "</body>" not in markup:
        metadata.warnings.append("Incomplete document: missing closing </body> or </html>")
        logger.warning(f"Incomplete HTML for {url}")

    scan = scan_pairs(soup)
    meta = parse_meta_group(soup, scan)
    stats = parse_stats_group(soup, scan)

    metadata.fields.update(meta.fields)
    metadata.fields.update(stats)
    metadata.unknown_fields.update(meta.unknown_fields)
    metadata.warnings.extend(meta.warnings)

    metadata.title = _extract_title(soup)
    metadata.authors = _extract_authors(soup, markup)
    metadata.summary = _extract_summary(soup)
    metadata.status = derive_status(soup, metadata.fields)

    logger.info(
        f"Extracted '{metadata.title}' ({len(metadata.fields)} fields, "
        f"{len(metadata.warnings)} warnings)"
    )
    return metadata
