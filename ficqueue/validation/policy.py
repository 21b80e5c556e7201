import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ficqueue.config.settings import settings


@dataclass(frozen=True)
class PolicyDecision:
    accepted: bool
    reason: Optional[str] = None


def _pairing_pattern(canonical_pairing: str) -> re.Pattern:
    left, _, right = canonical_pairing.partition("/")
    return re.compile(
        rf"^{re.escape(left.strip())}\s*//?\s*{re.escape(right.strip())}$", re.I
    )


def check_acceptance(
    fandom_tags: Sequence[str],
    relationship_tags: Sequence[str],
    required_fandom: str = settings.REQUIRED_FANDOM,
    canonical_pairing: str = settings.CANONICAL_PAIRING,
) -> PolicyDecision:
    """
    Decide whether a work belongs in the library.

    The required fandom must be tagged. Works with no relationships are
    accepted, as are works tagging the canonical pairing. Otherwise any
    romantic pairing involving either half of the canonical pairing is
    rejected, except friendships (``&``) and past/minor pairings.
    """
    wanted = required_fandom.strip().lower()
    if not any(f.strip().lower() == wanted for f in fandom_tags or []):
        return PolicyDecision(False, f"Missing {required_fandom} fandom tag.")

    if not relationship_tags:
        return PolicyDecision(True)

    canonical = _pairing_pattern(canonical_pairing)
    if any(canonical.match(tag.strip()) for tag in relationship_tags):
        return PolicyDecision(True)

    halves = {part.strip().lower() for part in canonical_pairing.split("/") if part.strip()}
    for tag in relationship_tags:
        text = tag.strip()
        if "&" in text:
            continue
        if re.search(r"past|minor", text, re.I):
            continue
        parts = [p.strip().lower() for p in text.split("/") if p.strip()]
        if halves & set(parts):
            return PolicyDecision(False, f"Detected Multishipping: {tag}")

    return PolicyDecision(True)
