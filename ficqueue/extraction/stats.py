from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from ficqueue.extraction.field_map import FieldKind, lookup
from ficqueue.extraction.scan import ScanResult, scan_pairs, tag_texts, value_text
from ficqueue.extraction.text import parse_count, parse_date


def parse_stats_group(soup: BeautifulSoup, scan: Optional[ScanResult] = None) -> Dict[str, Any]:
    """
    Collect statistics across every stats block in the document.

    A page may render the stats block more than once. Counts keep the most
    recently seen distinct value, dates keep the later date, and tag lists
    come from the current block only.
    """
    scan = scan or scan_pairs(soup)
    stats: Dict[str, Any] = {}

    for pair in scan.pairs:
        spec = lookup(pair.label, pair.label_text)
        if spec is None or not spec.stats:
            continue

        if spec.kind == FieldKind.COUNT:
            value = parse_count(value_text(pair.value))
            if isinstance(value, int):
                if stats.get(spec.name) != value:
                    stats[spec.name] = value
            elif value and spec.name not in stats:
                stats[spec.name] = value
        elif spec.kind == FieldKind.DATE:
            parsed = parse_date(value_text(pair.value))
            if parsed is None:
                continue
            current = parse_date(stats.get(spec.name))
            if current is None or parsed > current:
                stats[spec.name] = parsed.isoformat()
        elif spec.kind == FieldKind.TAGS:
            stats[spec.name] = tag_texts(pair.value)
        else:
            stats[spec.name] = value_text(pair.value)

    return stats
