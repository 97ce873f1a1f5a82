"""Title and artwork enrichment from external metadata sources."""

from watch_feed.metadata.cache import MetadataCache
from watch_feed.metadata.enricher import MetadataEnricher, infer_content_type
from watch_feed.metadata.models import MetadataHit
from watch_feed.metadata.probe import ImageProbe
from watch_feed.metadata.providers import (
    ItunesProvider,
    PageMetadataProvider,
    TmdbProvider,
    TvMazeProvider,
    parse_page_metadata,
    peacock_image_url,
)
from watch_feed.metadata.safety import validate_url

__all__ = [
    "MetadataCache",
    "MetadataEnricher",
    "infer_content_type",
    "MetadataHit",
    "ImageProbe",
    "ItunesProvider",
    "PageMetadataProvider",
    "TmdbProvider",
    "TvMazeProvider",
    "parse_page_metadata",
    "peacock_image_url",
    "validate_url",
]
