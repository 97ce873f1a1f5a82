"""Turn raw history rows into content candidates, one service at a time."""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlsplit

from watch_feed.history.models import VisitRecord
from watch_feed.history.reader import chrome_time_to_ms
from watch_feed.models import ContentItem
from watch_feed.services.canonical import canonicalize_item
from watch_feed.services.context import ContextResolver
from watch_feed.services.rules import DomainRule, ServiceRule, rule_for_host
from watch_feed.services.youtube import extract_youtube_id, youtube_thumb_url, youtube_watch_url

logger = logging.getLogger(__name__)

YOUTUBE_PLACEHOLDER_TITLE = "YouTube Video"


def _is_recent(last_visited: int, now_ms: int, recency_ms: int) -> bool:
    return now_ms - last_visited <= recency_ms


def is_content_url(rule: ServiceRule, domain: DomainRule, url: str) -> bool:
    """Decide whether ``url`` on a streaming host is a watchable page.

    Hosts with preferred patterns need a match. Hosts without them fall back
    to the service's non-content set and positive path/query heuristic.
    """
    parts = urlsplit(url)
    path = parts.path or "/"

    if domain.prefer is not None:
        return domain.is_preferred(path + (f"?{parts.query}" if parts.query else ""))

    if not rule.content_path_prefixes and not rule.content_query_params:
        return True
    if path in rule.non_content_paths:
        return False
    if path.startswith(rule.content_path_prefixes):
        return True
    query = parse_qs(parts.query)
    return any(param in query for param in rule.content_query_params)


def extract_youtube_items(
    rows: list[VisitRecord],
    now_ms: int,
    recency_ms: int,
) -> list[ContentItem]:
    """Build YouTube items, keeping the first (most recent) visit per video id."""
    items: list[ContentItem] = []
    seen: set[str] = set()

    for row in rows:
        last_visited = chrome_time_to_ms(row.visit_time_raw)
        if not _is_recent(last_visited, now_ms, recency_ms):
            continue
        video_id = extract_youtube_id(row.url)
        if not video_id or video_id in seen:
            continue
        seen.add(video_id)
        items.append(ContentItem(
            service="youtube",
            id=video_id,
            url=row.url,
            canonical_url=youtube_watch_url(video_id),
            title=row.title or YOUTUBE_PLACEHOLDER_TITLE,
            thumb=youtube_thumb_url(video_id),
            last_visited=last_visited,
        ))

    return items


def extract_domain_items(
    rows: list[VisitRecord],
    now_ms: int,
    recency_ms: int,
    resolver: ContextResolver | None = None,
) -> list[ContentItem]:
    """Build items for the non-YouTube services.

    Rows must be newest first; the first item per canonical URL is kept.
    Prime pages that match no preferred shape get one chance to be replaced
    by a detail/watch page reached from the same visit.
    """
    items: list[ContentItem] = []
    seen_canonical: set[str] = set()

    for row in rows:
        last_visited = chrome_time_to_ms(row.visit_time_raw)
        if not _is_recent(last_visited, now_ms, recency_ms):
            continue

        try:
            host = urlsplit(row.url).hostname or ""
            match = rule_for_host(host)
            if match is None:
                continue
            rule, domain = match

            url = row.url
            if not is_content_url(rule, domain, url):
                forward = None
                if resolver is not None and rule.forward_context:
                    forward = resolver.forward_context(row.visit_id, rule.service)
                if not forward:
                    continue
                url = forward
        except ValueError as e:
            logger.debug("Skipping unparseable history URL %r: %s", row.url, e)
            continue

        item = canonicalize_item(ContentItem(
            service=rule.service,
            url=url,
            title=row.title or rule.service,
            last_visited=last_visited,
        ))
        if item is None or item.canonical_url in seen_canonical:
            continue
        seen_canonical.add(item.canonical_url)
        items.append(item)

    return items
