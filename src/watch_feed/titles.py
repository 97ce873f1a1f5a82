"""Title normalization and fuzzy matching used by enrichment and grouping."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlsplit

from watch_feed.services.rules import RULES

_SEPARATORS = r"[•\-–—|:]"

_EPISODE_MARKERS = [
    re.compile(r"\(\s*(S\d+\s*[:x]?\s*E\d+|Episode\s*\d+|Ep\.?\s*\d+)\s*\)", re.IGNORECASE),
    re.compile(r"\bS\d{1,2}\s*[:x]?\s*E\d{1,3}\b", re.IGNORECASE),
    re.compile(r"\bS\d{1,2}E\d{1,3}\b", re.IGNORECASE),
    re.compile(r"\bSeason\s*\d+\b", re.IGNORECASE),
    re.compile(r"\bEpisode\s*\d+\b", re.IGNORECASE),
    re.compile(r"\bEp\.?\s*\d+\b", re.IGNORECASE),
    re.compile(r"\bChapter\s*\d+\b", re.IGNORECASE),
    re.compile(r"\bPart\s*\d+\b", re.IGNORECASE),
]

_SERVICE_NAMES = sorted(
    {name for rule in RULES.values() for name in rule.display_names},
    key=len,
    reverse=True,
)
_SERVICE_SUFFIX = re.compile(
    rf"\s*{_SEPARATORS}\s*(?:{'|'.join(re.escape(n) for n in _SERVICE_NAMES)})(?!\w)",
    re.IGNORECASE,
)
_MARKETING_NOISE = re.compile(
    r"\b(Superfan Episodes|Extras|Bonus|Extended Cut|Director'?s Cut|Unrated|Extended|Official Site)\b",
    re.IGNORECASE,
)
_LEFTOVER_SEPARATORS = re.compile(rf"\s*{_SEPARATORS}\s*")
_DISPLAY_NAMES = {
    service: frozenset(name.lower() for name in rule.display_names)
    for service, rule in RULES.items()
}


def normalize_series_title(raw: str | None) -> str | None:
    """Strip season/episode markers, service suffixes and marketing noise.

    "The Office S2:E3 - Peacock" becomes "The Office". Returns None when
    nothing is left.
    """
    if not raw:
        return None
    title = str(raw)
    for pattern in _EPISODE_MARKERS:
        title = pattern.sub("", title)
    title = _SERVICE_SUFFIX.sub("", title)
    title = _MARKETING_NOISE.sub("", title)
    title = _LEFTOVER_SEPARATORS.sub(" ", title)
    title = re.sub(r"\s{2,}", " ", title).strip()
    return title or None


def canonical_title(title: str | None) -> str:
    if not title:
        return ""
    title = re.sub(r"[^a-z0-9\s]", " ", title.lower())
    return re.sub(r"\s+", " ", title).strip()


def titles_loose_match(expected: str | None, candidate: str | None) -> bool:
    """Accept ``candidate`` if half the expected tokens appear in it, or either contains the other."""
    expected = canonical_title(expected)
    candidate = canonical_title(candidate)
    if not expected or not candidate:
        return False
    expected_tokens = expected.split()
    candidate_tokens = set(candidate.split())
    hits = sum(1 for token in expected_tokens if token in candidate_tokens)
    if hits / len(expected_tokens) >= 0.5:
        return True
    return expected in candidate or candidate in expected


def guess_title_from_url(service: str, url: str | None) -> str | None:
    """Turn a show/movie slug such as ``/series/the-bear`` into "the bear"."""
    prefixes = RULES[service].title_slug_prefixes
    if not url or not prefixes:
        return None
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return None
    for prefix in prefixes:
        if not path.startswith(prefix):
            continue
        slug = path[len(prefix):].split("/", 1)[0]
        guess = unquote(slug).replace("-", " ").strip()
        return guess or None
    return None


def is_service_name_title(service: str, title: str | None) -> bool:
    """True when ``title`` is just the service id or one of its display names (any case)."""
    if not title:
        return False
    name = title.strip().lower()
    return name == service or name in _DISPLAY_NAMES[service]


def is_placeholder_title(service: str, title: str | None) -> bool:
    """True for a missing title or one that only names the service."""
    return not title or not title.strip() or is_service_name_title(service, title)
