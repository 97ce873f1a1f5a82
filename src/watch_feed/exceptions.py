"""Unified exception hierarchy for watch-feed."""


class FeedError(Exception):
    """Base exception for all watch-feed errors."""


# History store
class HistoryError(FeedError):
    """Base exception for browser history operations."""


class HistorySourceNotFoundError(HistoryError):
    """No browser history database could be located."""


class HistoryReadError(HistoryError):
    """The history database exists but could not be copied, opened or queried."""


# Metadata
class MetadataError(FeedError):
    """Base exception for metadata enrichment operations."""


class MetadataProviderError(MetadataError):
    """An external metadata or image provider failed or returned no usable data."""


class UnsafeURLError(MetadataProviderError):
    """A URL or redirect target was refused: non-http scheme or private/internal address."""
