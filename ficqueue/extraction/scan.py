"""
Document-order scan of <dt>/<dd> label/value pairs.

Both the meta and stats passes consume the same pair stream; they differ
only in which labels they keep and how repeated values are resolved.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from ficqueue.extraction.text import clean_text, slugify_label

SKIPPED_ANCESTORS = ["form", "fieldset"]


@dataclass
class LabelValue:
    label: str
    label_text: str
    value: Tag


@dataclass
class ScanResult:
    pairs: List[LabelValue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def label_of(dt: Tag) -> str:
    classes = dt.get("class") or []
    if classes:
        return classes[0]
    return slugify_label(dt.get_text(" "))


def scan_pairs(soup: BeautifulSoup) -> ScanResult:
    result = ScanResult()
    pending: Optional[Tag] = None

    for node in soup.find_all(["dt", "dd"]):
        if node.find_parent(SKIPPED_ANCESTORS) is not None:
            continue

        if node.name == "dt":
            if pending is not None:
                result.warnings.append(
                    f"Label '{label_of(pending)}' has no value and was dropped"
                )
            pending = node
            continue

        if pending is None:
            # <dd> without a label
            continue
        result.pairs.append(
            LabelValue(
                label=label_of(pending),
                label_text=clean_text(pending.get_text(" ")),
                value=node,
            )
        )
        pending = None

    if pending is not None:
        result.warnings.append(f"Label '{label_of(pending)}' has no value and was dropped")
    return result


def tag_texts(value: Tag) -> List[str]:
    """Tag strings of one <dd>, in document order, duplicates kept."""
    links = value.select("a.tag") or value.find_all("a")
    return [text for text in (clean_text(a.get_text()) for a in links) if text]


def value_text(value: Tag) -> str:
    return clean_text(value.get_text(" "))
