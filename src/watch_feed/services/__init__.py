"""URL classification, canonicalization and visit-graph context per streaming service."""

from watch_feed.services.canonical import canonical_url, canonicalize_item, extract_uuid, normalize_items
from watch_feed.services.classifier import extract_domain_items, extract_youtube_items, is_content_url
from watch_feed.services.context import ContextResolver
from watch_feed.services.rules import RULES, ServiceRule, rule_for_host
from watch_feed.services.youtube import extract_youtube_id, youtube_watch_url

__all__ = [
    "canonical_url",
    "canonicalize_item",
    "extract_uuid",
    "normalize_items",
    "extract_domain_items",
    "extract_youtube_items",
    "is_content_url",
    "ContextResolver",
    "RULES",
    "ServiceRule",
    "rule_for_host",
    "extract_youtube_id",
    "youtube_watch_url",
]
