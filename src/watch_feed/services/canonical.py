"""Canonicalize content URLs for dedup while keeping the launch URL intact."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Callable
from urllib.parse import SplitResult, parse_qs, urlsplit, urlunsplit

from watch_feed.models import ContentItem
from watch_feed.services.rules import PEACOCK_ID_PARAMS, RULES
from watch_feed.services.youtube import extract_youtube_id, youtube_watch_url

logger = logging.getLogger(__name__)

UUID_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)

_PEACOCK_WATCH_RE = re.compile(r"/watch/(playback|asset|play)/([^/?#]+)", re.IGNORECASE)
_PRIME_DETAIL_RE = re.compile(r"/detail/([^/?]+)")
_PRIME_WATCH_RE = re.compile(r"/watch/([^/?]+)")
_AMAZON_VIDEO_RE = re.compile(r"/gp/video/(?:detail|title|play)/([^/?]+)")


def extract_uuid(text: str | None) -> str | None:
    match = UUID_RE.search(str(text or ""))
    return match.group(0) if match else None


def _first_param(query: dict[str, list[str]], names: tuple[str, ...]) -> str | None:
    for name in names:
        values = query.get(name)
        if values and values[0]:
            return values[0]
    return None


def _rewrite_peacock(parts: SplitResult, query: dict[str, list[str]]) -> str | None:
    path = parts.path
    if path.startswith("/watch"):
        match = _PEACOCK_WATCH_RE.search(path)
        if match:
            return f"/watch/{match.group(1).lower()}/{match.group(2)}"
        asset = _first_param(query, ("playbackId", "assetId", "asset_id", "id"))
        if asset:
            return f"/watch/playback/{asset}"
        return None
    if path.startswith(("/shows/", "/movies/")) and path.endswith("/"):
        return path.rstrip("/")
    return None


def _rewrite_prime(parts: SplitResult, query: dict[str, list[str]]) -> str | None:
    host = (parts.hostname or "").lower()
    if "primevideo.com" in host:
        match = _PRIME_DETAIL_RE.search(parts.path)
        if match:
            return f"/detail/{match.group(1)}"
        match = _PRIME_WATCH_RE.search(parts.path)
        if match:
            return f"/watch/{match.group(1)}"
    elif "amazon.com" in host:
        match = _AMAZON_VIDEO_RE.search(parts.path)
        if match:
            return f"/gp/video/detail/{match.group(1)}"
    return None


# Each rewriter returns the minimal identifying path, or None when no rule applies.
_PATH_REWRITERS: dict[str, Callable[[SplitResult, dict[str, list[str]]], str | None]] = {
    "peacock": _rewrite_peacock,
    "prime": _rewrite_prime,
}


def peacock_asset_id(url: str) -> str | None:
    """Pull the UUID Peacock's image service keys on from a path or query."""
    try:
        parts = urlsplit(url)
        query = parse_qs(parts.query)
    except ValueError:
        return None
    match = _PEACOCK_WATCH_RE.search(parts.path)
    candidate = match.group(2) if match else _first_param(query, PEACOCK_ID_PARAMS)
    return extract_uuid(candidate) or extract_uuid(url)


def is_non_content_url(service: str, url: str) -> bool:
    rule = RULES[service]
    try:
        path = urlsplit(url).path or "/"
    except ValueError:
        return False
    return path in rule.non_content_paths


def canonical_url(service: str, url: str) -> str:
    """Normalize ``url`` for ``service``; unparseable URLs come back unchanged."""
    if service == "youtube":
        video_id = extract_youtube_id(url)
        return youtube_watch_url(video_id) if video_id else url

    rewriter = _PATH_REWRITERS.get(service)
    if rewriter is None:
        return url
    try:
        parts = urlsplit(url)
        new_path = rewriter(parts, parse_qs(parts.query))
    except ValueError as e:
        logger.debug("Cannot canonicalize %s: %s", url, e)
        return url
    if new_path is None:
        return url
    return urlunsplit((parts.scheme, parts.netloc, new_path, "", ""))


def content_id(service: str, url: str) -> str | None:
    """Stable identifier from the service's id patterns, if any match."""
    if service == "youtube":
        return extract_youtube_id(url)
    rule = RULES[service]
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    target = parts.path + (f"?{parts.query}" if parts.query else "")
    for pattern in rule.id_patterns:
        match = pattern.search(target)
        if match:
            return match.group(1)
    if rule.id_query_params:
        return _first_param(parse_qs(parts.query), rule.id_query_params)
    return None


def canonicalize_item(item: ContentItem) -> ContentItem | None:
    """Return a copy with ``canonical_url``, ``id`` and auxiliary ids filled in.

    Returns None when the URL is one of the service's pure non-content pages.
    Always derived from ``item.url``, so repeated calls give the same result.
    """
    if is_non_content_url(item.service, item.url):
        return None

    canonical = canonical_url(item.service, item.url)
    asset_id = peacock_asset_id(item.url) if item.service == "peacock" else None
    return replace(
        item,
        canonical_url=canonical,
        id=item.id or content_id(item.service, canonical),
        peacock_asset_id=asset_id or item.peacock_asset_id,
    )


def normalize_items(items: list[ContentItem]) -> list[ContentItem]:
    """Canonicalize every item, dropping non-content pages."""
    normalized = []
    for item in items:
        canonical = canonicalize_item(item)
        if canonical is not None:
            normalized.append(canonical)
    return normalized
