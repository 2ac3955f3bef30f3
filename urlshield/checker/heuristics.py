"""Local heuristic pre-check — pattern definitions and scanner.

Runs BEFORE the lookup call. A match short-circuits the check to UNSAFE
without contacting the provider. This is a best-effort, high-false-positive
filter; its categories are always prefixed ``HEURISTIC_`` so they are never
confused with provider-confirmed categories.

Pattern groups:
  - HEURISTIC_MALWARE_TERM      — malware / piracy vocabulary
  - HEURISTIC_ADULT_CONTENT     — adult-content vocabulary
  - HEURISTIC_PRIZE_SCAM        — prize / lottery scam vocabulary
  - HEURISTIC_RAW_IPV4_HOST     — dotted-IPv4 literal as the host (userinfo is skipped)

All patterns are pre-compiled at module load time using google-re2.

IMPORT RULES:
  - ``import re2`` ONLY — ``import re`` is PROHIBITED in this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import re2  # google-re2, NOT stdlib re

CATEGORY_MALWARE_TERM = "HEURISTIC_MALWARE_TERM"
CATEGORY_ADULT_CONTENT = "HEURISTIC_ADULT_CONTENT"
CATEGORY_PRIZE_SCAM = "HEURISTIC_PRIZE_SCAM"
CATEGORY_RAW_IPV4_HOST = "HEURISTIC_RAW_IPV4_HOST"


@dataclass(frozen=True)
class HeuristicPattern:
    """A single compiled heuristic with metadata.

    Fields:
        pattern:  Pre-compiled re2 pattern object. Compiled at module load time.
        category: Heuristic category reported on match.
        slug:     Kebab-case identifier for logs (e.g. ``"term-malware"``).
    """
    pattern: Any           # re2._Regexp
    category: str
    slug: str


@dataclass(frozen=True)
class HeuristicMatch:
    """First matching heuristic for a URL."""

    category: str
    slug: str


def _terms(category: str, terms: tuple[str, ...]) -> list[HeuristicPattern]:
    return [
        HeuristicPattern(
            pattern=re2.compile(re2.escape(term)),
            category=category,
            slug=f"term-{term}",
        )
        for term in terms
    ]


MALWARE_TERMS: tuple[str, ...] = (
    "malware", "phishing", "virus", "trojan", "worm", "spyware", "ransomware",
    "hack", "crack", "keygen", "pirate", "warez",
)
ADULT_CONTENT_TERMS: tuple[str, ...] = ("xxx", "porn", "adult")
PRIZE_SCAM_TERMS: tuple[str, ...] = (
    "free-iphone", "free-gift", "win-prize", "you-won", "lottery",
)

# Raw IPv4 authority: the whole host is four dotted digit groups, after any userinfo.
RAW_IPV4_HOST_PATTERN = HeuristicPattern(
    pattern=re2.compile(r"^https?://(?:[^/?#@]*@)?\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}(?:[.:/?#]|$)"),
    category=CATEGORY_RAW_IPV4_HOST,
    slug="raw-ipv4-host",
)

ALL_PATTERNS: list[HeuristicPattern] = [
    *_terms(CATEGORY_MALWARE_TERM, MALWARE_TERMS),
    *_terms(CATEGORY_ADULT_CONTENT, ADULT_CONTENT_TERMS),
    *_terms(CATEGORY_PRIZE_SCAM, PRIZE_SCAM_TERMS),
    RAW_IPV4_HOST_PATTERN,
]


def heuristic_scan(url: str) -> Optional[HeuristicMatch]:
    """Scan the lower-cased URL text against every heuristic pattern.

    First match wins (denylist terms are checked before the IPv4 pattern).

    Args:
        url: Canonical URL string.

    Returns:
        HeuristicMatch for the first matching pattern, or None.
    """
    lowered = url.lower()
    for entry in ALL_PATTERNS:
        if entry.pattern.search(lowered):
            return HeuristicMatch(category=entry.category, slug=entry.slug)
    return None
