import html
import re
from datetime import date
from typing import Optional, Union

_WHITESPACE = re.compile(r"\s+")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_NUMBER = re.compile(r"^\d+$")


def clean_text(value: Optional[str]) -> str:
    """Decode entities left in the text and collapse runs of whitespace."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", html.unescape(value)).strip()


def slugify_label(value: str) -> str:
    """Turn a visible label like 'Word Count:' into 'word_count'."""
    text = clean_text(value).lower().rstrip(":").strip()
    return re.sub(r"[^a-z0-9]+", "_", text).strip("_")


def parse_count(value: str) -> Union[int, str]:
    """'12,345' -> 12345. Non-numeric text is returned stripped."""
    text = clean_text(value).replace(",", "")
    if _NUMBER.match(text):
        return int(text)
    return text


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    match = _ISO_DATE.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None
