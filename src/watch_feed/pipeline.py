"""Compose history extraction, canonicalization, enrichment and grouping."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

import httpx

from watch_feed.config import FeedSettings
from watch_feed.grouping import dedupe_series
from watch_feed.history.models import BrowserProfile
from watch_feed.history.reader import BraveHistoryStore, HistoryStore, list_profiles, resolve_history_path
from watch_feed.metadata.cache import MetadataCache
from watch_feed.metadata.enricher import MetadataEnricher
from watch_feed.models import ContentItem, FeedResult
from watch_feed.services.canonical import normalize_items
from watch_feed.services.classifier import extract_domain_items, extract_youtube_items
from watch_feed.services.context import ContextResolver
from watch_feed.services.rules import streaming_domain_fragments

logger = logging.getLogger(__name__)


class FeedAggregator:
    """Build the "continue watching" feed on demand.

    One instance keeps the metadata cache alive across calls; nothing else is
    shared between requests. The history profile is passed per call.

    Args:
        settings: Pipeline settings; defaults to ``FeedSettings.from_env()``.
        cache: Metadata cache; defaults to one sized by the settings.
        store_factory: Builds a history store for a DB path (tests inject fakes).
        transport: Optional httpx transport for the enrichment client.
    """

    def __init__(
        self,
        settings: FeedSettings | None = None,
        cache: MetadataCache | None = None,
        store_factory: Callable[[Path], HistoryStore] = BraveHistoryStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or FeedSettings.from_env()
        self.cache = cache if cache is not None else MetadataCache(self.settings.cache_max_entries)
        self.store_factory = store_factory
        self.transport = transport

    def list_profiles(self) -> list[BrowserProfile]:
        return list_profiles(self.settings.profile_dir)

    async def aggregate(self, profile: str | None = None, now_ms: int | None = None) -> FeedResult:
        """Return the deduplicated, enriched feed for the recency window.

        Raises:
            HistorySourceNotFoundError: No history DB for the request.
            HistoryReadError: The DB exists but cannot be read at all.
        """
        settings = self.settings
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        history_path = resolve_history_path(settings, profile)

        with self.store_factory(history_path) as store:
            resolver = ContextResolver(store)
            youtube_rows = store.recent_youtube_visits(settings.youtube_limit)
            domain_rows = store.recent_domain_visits(streaming_domain_fragments(), settings.domain_limit)

            items: list[ContentItem] = [
                *extract_youtube_items(youtube_rows, now_ms, settings.recency_ms),
                *extract_domain_items(domain_rows, now_ms, settings.recency_ms, resolver),
            ]
            items.sort(key=lambda it: it.last_visited, reverse=True)
            items = normalize_items(items)
            logger.info(
                "Extracted %d content items from %s (%d youtube rows, %d streaming rows)",
                len(items), history_path, len(youtube_rows), len(domain_rows),
            )

            async with httpx.AsyncClient(
                timeout=settings.request_timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                enricher = MetadataEnricher(
                    client,
                    cache=self.cache,
                    tmdb_api_key=settings.tmdb_api_key,
                    resolver=resolver,
                    limit=settings.enrich_limit,
                    max_concurrency=settings.max_concurrency,
                    resolve_hosts=settings.resolve_hosts,
                    max_response_bytes=settings.max_response_bytes,
                )
                await enricher.enrich(items)

        return FeedResult(recency_days=settings.recency_days, items=dedupe_series(items))

    def aggregate_sync(self, profile: str | None = None, now_ms: int | None = None) -> FeedResult:
        """Synchronous wrapper around :meth:`aggregate`."""
        return asyncio.run(self.aggregate(profile=profile, now_ms=now_ms))
