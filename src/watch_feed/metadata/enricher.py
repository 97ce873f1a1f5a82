"""Fill in missing titles and thumbnails through a chain of providers."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable
from urllib.parse import urlsplit

import httpx

from watch_feed.exceptions import MetadataProviderError
from watch_feed.metadata.cache import CacheKey, MetadataCache
from watch_feed.metadata.models import MetadataHit
from watch_feed.metadata.probe import ImageProbe
from watch_feed.metadata.providers import (
    ItunesProvider,
    PageMetadataProvider,
    TitleSearchProvider,
    TmdbProvider,
    TvMazeProvider,
    peacock_image_candidates,
)
from watch_feed.models import ContentItem
from watch_feed.services.context import ContextResolver
from watch_feed.services.rules import RULES
from watch_feed.titles import (
    guess_title_from_url,
    is_placeholder_title,
    normalize_series_title,
    titles_loose_match,
)

logger = logging.getLogger(__name__)


def has_generic_thumb(item: ContentItem) -> bool:
    markers = RULES[item.service].generic_thumb_markers
    return bool(item.thumb) and any(marker in item.thumb for marker in markers)


def infer_content_type(item: ContentItem) -> str:
    """Return "tv" or "movie" from URL shape first, then the title."""
    rule = RULES[item.service]
    title = (item.title or "").lower()
    try:
        path = urlsplit(item.canonical_url or item.url).path.lower()
    except ValueError:
        path = ""

    if path.startswith(rule.movie_path_prefixes):
        return "movie"
    if path.startswith(rule.tv_path_prefixes):
        return "tv"
    if any(marker in title for marker in rule.tv_title_markers):
        return "tv"
    return "tv" if ":" in title else "movie"


def expected_title(item: ContentItem) -> str | None:
    """Title to search providers with: cleaned page title, else URL slug."""
    title = None if is_placeholder_title(item.service, item.title) else item.title
    return (
        normalize_series_title(title)
        or guess_title_from_url(item.service, item.canonical_url or item.url)
        or title
    )


def meta_url_for(item: ContentItem, resolver: ContextResolver | None = None) -> str:
    """Pick the page most likely to carry show-level metadata."""
    rule = RULES[item.service]
    target = item.canonical_url or item.url
    try:
        path = urlsplit(target).path
    except ValueError:
        return item.url

    for pattern, template in rule.meta_rewrites:
        match = pattern.search(path)
        if match:
            return template.format(*match.groups())
    if path.lower().startswith(rule.meta_path_prefixes):
        return target
    if resolver is not None and path.lower().startswith(rule.backward_context_trigger):
        context_url = resolver.backward_context(item.url, item.service)
        if context_url:
            return context_url
    return item.url


def apply_hit(item: ContentItem, hit: MetadataHit | None, replace_thumb: bool = False) -> None:
    """Fill gaps only: never overwrite a real title or a non-generic thumbnail."""
    if hit is None:
        return
    if hit.thumb and (replace_thumb or not item.thumb):
        item.thumb = hit.thumb
    if hit.title and is_placeholder_title(item.service, item.title):
        item.title = hit.title


class MetadataEnricher:
    """Enrich items in place using page metadata and title-search providers.

    Args:
        client: Shared async HTTP client; timeouts are configured on it.
        cache: Lookup cache that outlives a single request.
        tmdb_api_key: Enables the TMDB step when set.
        resolver: Visit-graph resolver for services with opaque watch links.
        limit: Only the first ``limit`` items are considered.
        max_concurrency: Maximum lookups in flight at once.
        resolve_hosts: Refuse page and image URLs that resolve to private addresses.
        max_response_bytes: Largest content page that will be parsed.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: MetadataCache | None = None,
        tmdb_api_key: str | None = None,
        resolver: ContextResolver | None = None,
        limit: int = 40,
        max_concurrency: int = 8,
        resolve_hosts: bool = True,
        max_response_bytes: int = 1_048_576,
    ):
        self.cache = cache if cache is not None else MetadataCache()
        self.resolver = resolver
        self.limit = limit
        self.max_concurrency = max(1, max_concurrency)
        self.page = PageMetadataProvider(
            client, resolve_hosts=resolve_hosts, max_response_bytes=max_response_bytes
        )
        self.tmdb = TmdbProvider(client, tmdb_api_key) if tmdb_api_key else None
        self.tvmaze = TvMazeProvider(client)
        self.itunes = ItunesProvider(client, media="movie")
        self.probe = ImageProbe(client, resolve_hosts=resolve_hosts)

    async def enrich(self, items: list[ContentItem]) -> None:
        """Run lookups for the first ``limit`` items; failures leave items as they were."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = []
        for item in items[: self.limit]:
            generic = has_generic_thumb(item)
            if item.thumb and not generic and item.title:
                continue
            if not item.url:
                continue

            key = MetadataCache.key_for(item)
            found, cached = self.cache.lookup(key)
            if found and not generic:
                apply_hit(item, cached)
                continue
            # History lookups stay on the calling thread, before any task starts.
            meta_url = meta_url_for(item, self.resolver)
            tasks.append(self._enrich_one(item, key, generic, meta_url, semaphore))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Metadata enrichment task failed: %s", result)

    async def _enrich_one(
        self,
        item: ContentItem,
        key: CacheKey,
        generic: bool,
        meta_url: str,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            hit = await self.lookup(item, meta_url)
        self.cache.store(key, hit)
        apply_hit(item, hit, replace_thumb=generic)

    async def lookup(self, item: ContentItem, meta_url: str | None = None) -> MetadataHit | None:
        """Walk the fallback chain; each step runs only while no thumbnail is found.

        ``meta_url`` overrides the page to scrape; by default it is derived from
        the item, which may query the history store.
        """
        title: str | None = None
        thumb: str | None = None
        verified = False

        if item.service == "peacock" and item.peacock_asset_id:
            thumb = await self._choose_peacock_image(item.peacock_asset_id)
            verified = thumb is not None

        if not thumb:
            if meta_url is None:
                meta_url = meta_url_for(item, self.resolver)
            page = await self._safely(self.page.fetch(meta_url))
            if page:
                title, thumb = page.title, page.thumb

        wanted = expected_title(item)
        if not thumb and wanted and item.service != "youtube":
            providers: list[TitleSearchProvider] = []
            if self.tmdb is not None:
                providers.append(self.tmdb)
            providers.append(self.tvmaze if infer_content_type(item) == "tv" else self.itunes)
            for provider in providers:
                found = await self._safely(provider.search(wanted))
                if found and titles_loose_match(wanted, found.title):
                    title = title or found.title
                    thumb = found.thumb
                    break
                if found:
                    logger.debug("%s result %r rejected for %r", provider.name, found.title, wanted)

        if thumb and not verified and not RULES[item.service].trust_thumbs:
            if not await self.probe.is_reachable(thumb):
                logger.debug("Discarding unreachable thumbnail %s", thumb)
                thumb = None

        if not title and not thumb:
            return None
        return MetadataHit(title=title, thumb=thumb)

    async def _choose_peacock_image(self, asset_id: str) -> str | None:
        for url in peacock_image_candidates(asset_id):
            if await self.probe.is_reachable(url):
                return url
        return None

    @staticmethod
    async def _safely(call: Awaitable[MetadataHit | None]) -> MetadataHit | None:
        try:
            return await call
        except MetadataProviderError as e:
            logger.debug("%s", e)
            return None
