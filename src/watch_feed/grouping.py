"""Collapse visits to the same show or movie into one most-recent entry.

Everything here is pure: no I/O, no network, no history access.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from watch_feed.models import ContentItem
from watch_feed.services.rules import RULES
from watch_feed.titles import is_placeholder_title, is_service_name_title, normalize_series_title


def _path(url: str | None) -> str | None:
    if not url:
        return None
    try:
        return urlsplit(url).path or "/"
    except ValueError:
        return None


def url_series_key(item: ContentItem) -> str | None:
    """Key from a show/movie slug or title id in the canonical URL."""
    rule = RULES[item.service]
    if not rule.episodic:
        return None
    path = _path(item.canonical_url or item.url)
    if path is None:
        return None
    path = path.lower()
    for label, pattern in rule.series_key_patterns:
        match = pattern.search(path)
        if match:
            return f"{item.service}:{label}:{match.group(1)}"
    return None


def thumb_key(item: ContentItem) -> str | None:
    """Image filename as a last-resort fingerprint."""
    path = _path(item.thumb)
    if path is None:
        return None
    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    return f"{item.service}:thumb:{segments[-1].lower()}"


def series_key(item: ContentItem) -> str | None:
    """Grouping key: URL slug, then normalized title, then thumbnail.

    Keys are prefixed with the service so equal titles on two services never
    merge. YouTube items and items with nothing to key on return None.
    """
    rule = RULES[item.service]
    if not rule.episodic:
        return None

    key = url_series_key(item)
    if key:
        return key

    if not is_placeholder_title(item.service, item.title):
        title = normalize_series_title(item.title) or item.title.strip()
        if title:
            return f"{item.service}:title:{title.lower()}"

    if rule.group_by_thumb:
        return thumb_key(item)
    return None


def is_non_content(item: ContentItem) -> bool:
    """Landing pages, home-page or bare service-name titles, and untitled items without an id."""
    rule = RULES[item.service]
    path = _path(item.canonical_url or item.url) or ""
    title = (item.title or "").strip().lower()

    if path in rule.non_content_paths:
        return True
    if path.lower().startswith(rule.non_content_path_prefixes):
        return True
    if title in rule.non_content_titles:
        return True
    if any(fragment in title for fragment in rule.non_content_title_fragments):
        return True
    if is_service_name_title(item.service, item.title):
        return True
    return not item.id and is_placeholder_title(item.service, item.title)


def _recency_rank(item: ContentItem) -> tuple:
    # Ties on last_visited fall back to URLs so the winner never depends on input order.
    return (item.last_visited or 0, item.canonical_url or "", item.url)


def dedupe_series(items: list[ContentItem]) -> list[ContentItem]:
    """Keep the most recent item per series key, drop non-content, newest first."""
    latest_by_series: dict[str, ContentItem] = {}
    keep_as_is: list[ContentItem] = []

    for item in items:
        key = series_key(item)
        if key is None:
            keep_as_is.append(item)
            continue
        previous = latest_by_series.get(key)
        if previous is None or _recency_rank(item) > _recency_rank(previous):
            latest_by_series[key] = item

    survivors = [
        item
        for item in [*latest_by_series.values(), *keep_as_is]
        if not is_non_content(item)
    ]
    survivors.sort(key=_recency_rank, reverse=True)
    return survivors
