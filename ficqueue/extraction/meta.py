import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from ficqueue.extraction.field_map import FieldKind, lookup
from ficqueue.extraction.scan import ScanResult, scan_pairs, tag_texts, value_text

logger = logging.getLogger(__name__)


@dataclass
class MetaGroup:
    fields: Dict[str, Any] = field(default_factory=dict)
    unknown_fields: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def parse_meta_group(soup: BeautifulSoup, scan: Optional[ScanResult] = None) -> MetaGroup:
    """
    Collect every non-stats label into its canonical field.

    Tag categories become lists (a later block of the same category replaces
    an earlier one); everything else is collapsed text. Unknown labels are
    kept verbatim with a single warning each.
    """
    scan = scan or scan_pairs(soup)
    group = MetaGroup(warnings=list(scan.warnings))

    for pair in scan.pairs:
        spec = lookup(pair.label, pair.label_text)
        if spec is None:
            if pair.label not in group.unknown_fields:
                group.warnings.append(f"Unknown field: '{pair.label}'")
                logger.debug(f"Unknown metadata label '{pair.label}'")
            group.unknown_fields[pair.label] = value_text(pair.value)
            continue
        if spec.stats or spec.kind == FieldKind.CONTAINER:
            continue
        if spec.kind == FieldKind.TAGS:
            group.fields[spec.name] = tag_texts(pair.value)
        else:
            group.fields[spec.name] = value_text(pair.value)

    return group
